"""Core data structures describing resource schemas.

These dataclasses hold the declaration-time metadata of a resource kind and
are consumed by the accessor facade, the validation cascade, the serializers
and the XML generator. They avoid any dependency on :class:`Resource` itself
so they can be inspected, copied and printed on their own.

Overview:
        * ``AttributeMapping`` describes one declared attribute: its type tag,
            the resolved nested resource class (for ``"resource"`` attributes),
            the collection flag and the optional XML element name used to
            wrap collection items.
        * ``Container`` carries the XML root element name and attributes.
        * ``ResourceSchema`` is the per-kind table: ordered attribute names,
            mappings, container metadata and registered validators.

Typical construction (normally done by :class:`~mydata_schema.resource.Resource`)::

        from mydata_schema.models import ResourceSchema

        schema = ResourceSchema("LineItem")
        schema.add_mapping(AttributeMapping(name="sku", type="string"))
        schema.add_mapping(AttributeMapping(name="qty", type="integer"))
        schema.attributes  # ['sku', 'qty']

Design notes:
        * ``attributes`` is a plain list so declaration order is the iteration
            order everywhere (snapshots, serialization, XML).
        * A schema is sealed once the first instance of its kind is built;
            later declarations raise :class:`SchemaDeclarationError`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .exceptions import SchemaDeclarationError, UnknownAttributeError


def camelize(name: str) -> str:
    """Convert an attribute or element name to a resource kind name.

    Example:
        >>> camelize("line_item")
        'LineItem'
        >>> camelize("invoiceHeader")
        'InvoiceHeader'
    """
    return "".join(part[:1].upper() + part[1:] for part in re.split(r"[_\-]", name) if part)


@dataclass(frozen=True)
class AttributeMapping:
    """Immutable descriptor for a single declared attribute.

    Attributes:
        name: Attribute name, unique within the kind.
        type: Type tag (``"string"``, ``"integer"``, ..., or ``"resource"``).
        resource: Nested resource class when ``type == "resource"``.
        collection: True when the attribute holds a list of values.
        collection_element_name: Element name wrapping each collection item
            in XML output (collections only).

    Example:
        >>> mapping = AttributeMapping(name="qty", type="integer")
        >>> mapping.is_resource
        False
    """

    name: str
    type: str
    resource: Optional[type] = None
    collection: bool = False
    collection_element_name: Optional[str] = None

    @property
    def is_resource(self) -> bool:
        return self.resource is not None

    @property
    def type_label(self) -> str:
        """Human readable type, bracketed for collections (``[LineItem]``)."""
        label = self.resource.__name__ if self.resource is not None else self.type
        return f"[{label}]" if self.collection else label

    def to_dict(self) -> dict:
        """Return a JSON-serializable description of the mapping."""
        return {
            "name": self.name,
            "type": self.type,
            "resource": self.resource.__name__ if self.resource is not None else None,
            "collection": self.collection,
            "collection_element_name": self.collection_element_name,
        }


@dataclass
class Container:
    """XML root element metadata for a resource kind."""

    name: str
    attributes: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ResourceSchema:
    """Per-kind table of declared attributes.

    Attributes:
        kind: Name of the resource kind.
        attributes: Attribute names in declaration order.
        mappings: Attribute name to :class:`AttributeMapping`.
        container: XML container metadata (defaults to the kind name).
        validators: Local validators run by the validation cascade.
        sealed: True once an instance of the kind has been constructed.
    """

    kind: str
    attributes: List[str] = field(default_factory=list)
    mappings: Dict[str, AttributeMapping] = field(default_factory=dict)
    container: Optional[Container] = None
    validators: List[Any] = field(default_factory=list)
    sealed: bool = False

    def __post_init__(self) -> None:
        if self.container is None:
            self.container = Container(name=self.kind)

    def ensure_writable(self) -> None:
        """Raise if the schema is already in use by instances."""
        if self.sealed:
            raise SchemaDeclarationError(
                f"{self.kind}: schema is sealed, declarations must happen before "
                "the first instance is created"
            )

    def add_mapping(self, mapping: AttributeMapping) -> None:
        """Append a new attribute mapping, rejecting duplicate names."""
        self.ensure_writable()
        if mapping.name in self.mappings:
            raise SchemaDeclarationError(
                f"{self.kind}: attribute '{mapping.name}' is already declared"
            )
        self.attributes.append(mapping.name)
        self.mappings[mapping.name] = mapping

    def add_validator(self, validator: Any) -> None:
        self.ensure_writable()
        self.validators.append(validator)

    def set_container(self, name: str, attributes: Dict[str, Any]) -> None:
        self.ensure_writable()
        self.container = Container(name=name, attributes=dict(attributes))

    def mapping_for(self, name: str) -> AttributeMapping:
        """Return the mapping for ``name`` or raise :class:`UnknownAttributeError`."""
        try:
            return self.mappings[name]
        except KeyError:
            raise UnknownAttributeError(
                f"{self.kind} has no attribute '{name}'"
            ) from None

    def resource_attributes(self) -> List[str]:
        """Names of attributes that hold nested resources, in order."""
        return [name for name in self.attributes if self.mappings[name].is_resource]

    def inherit(self, parent: "ResourceSchema") -> None:
        """Copy declarations and validators from a parent kind's schema."""
        for name in parent.attributes:
            self.add_mapping(parent.mappings[name])
        for validator in parent.validators:
            self.add_validator(validator)
        if parent.container is not None and parent.container.name != parent.kind:
            self.set_container(parent.container.name, parent.container.attributes)

    def describe(self) -> str:
        """Return ``"Kind name: type, ..."`` with collections bracketed."""
        parts = [f"{name}: {self.mappings[name].type_label}" for name in self.attributes]
        return f"{self.kind} {', '.join(parts)}".rstrip()

    def to_dict(self) -> dict:
        """Convert the schema into a JSON-serializable dictionary."""
        container = self.container or Container(name=self.kind)
        return {
            "kind": self.kind,
            "attributes": list(self.attributes),
            "mappings": {name: self.mappings[name].to_dict() for name in self.attributes},
            "container": {"name": container.name, "attributes": dict(container.attributes)},
        }
