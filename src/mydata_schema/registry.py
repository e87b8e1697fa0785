"""Process-wide registry of resource kinds.

A :class:`ResourceRegistry` maps kind names to :class:`Resource` subclasses
and owns the collaborators every kind in it shares:

* ``caster``: a :class:`~mydata_schema.type_caster.TypeCaster` used to check
  declared types and coerce assigned values.
* ``structure``: the XSD structure source consulted by ``xsd_doc`` and
  ``xsd_complex_type`` declarations (lazily loaded from ``MYDATA_XSD_PATH``
  when not given).
* ``renderer``: callable turning a resource into XML text.

Kinds register themselves when their class is created. Registration and
XSD-driven declarations run under the registry lock so concurrent imports
of the same module cannot interleave a half-built schema.

Example:
    from mydata_schema import Resource, ResourceRegistry

    registry = ResourceRegistry()

    class Base(Resource, abstract=True, registry=registry):
        pass

    class LineItem(Base):
        ...

    registry.resolve("LineItem") is LineItem  # True
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterator, List, Optional

from .exceptions import SchemaDeclarationError, UnresolvedResourceError
from .type_caster import TypeCaster

if TYPE_CHECKING:  # pragma: no cover - for type checkers only
    from .xsd_structure import XsdStructure  # noqa: F401

logger = logging.getLogger(__name__)


class ResourceRegistry:
    """Registry of resource kinds plus their shared collaborators."""

    def __init__(
        self,
        caster: Optional[TypeCaster] = None,
        structure: Optional["XsdStructure"] = None,
        renderer: Optional[Callable[[Any], str]] = None,
    ) -> None:
        self.caster = caster or TypeCaster()
        self._structure = structure
        self._renderer = renderer
        self._kinds: Dict[str, type] = {}
        self.lock = threading.RLock()

    def register(self, resource: type, name: Optional[str] = None) -> None:
        """Register ``resource`` under ``name`` (defaults to its class name).

        Raises:
            SchemaDeclarationError: If another class already uses the name.
        """
        kind = name or resource.__name__
        with self.lock:
            existing = self._kinds.get(kind)
            if existing is not None and existing is not resource:
                raise SchemaDeclarationError(
                    f"Resource kind '{kind}' is already registered by "
                    f"{existing.__module__}.{existing.__qualname__}"
                )
            self._kinds[kind] = resource
        logger.debug(f"Registered resource kind {kind}")

    def unregister(self, name: str) -> None:
        """Drop the kind registered as ``name`` (no-op when absent)."""
        with self.lock:
            self._kinds.pop(name, None)

    def resolve(self, name: str) -> type:
        """Return the resource class registered as ``name``.

        Raises:
            UnresolvedResourceError: If no kind with that name exists.
        """
        try:
            return self._kinds[name]
        except KeyError:
            raise UnresolvedResourceError(
                f"Unknown resource kind '{name}'"
            ) from None

    def __contains__(self, name: object) -> bool:
        return name in self._kinds

    def __iter__(self) -> Iterator[str]:
        return iter(self._kinds)

    def __len__(self) -> int:
        return len(self._kinds)

    def names(self) -> List[str]:
        return list(self._kinds)

    @property
    def structure(self) -> "XsdStructure":
        """XSD structure source, loaded via :func:`cache.get_structure` if unset."""
        if self._structure is None:
            from .cache import get_structure

            self._structure = get_structure()
        return self._structure

    @structure.setter
    def structure(self, value: "XsdStructure") -> None:
        self._structure = value

    @property
    def renderer(self) -> Callable[[Any], str]:
        if self._renderer is None:
            from .xml_generator import render_xml

            return render_xml
        return self._renderer

    @renderer.setter
    def renderer(self, value: Callable[[Any], str]) -> None:
        self._renderer = value


default_registry = ResourceRegistry()
