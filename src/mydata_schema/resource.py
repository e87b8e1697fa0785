"""Declarative resource base class.

A resource kind is a :class:`Resource` subclass whose attributes are declared
once, either in the class body::

    class LineItem(Resource):
        sku = Attribute("string")
        qty = Attribute("integer")

    class Order(Resource):
        id = Attribute("integer")
        items = Attribute("resource", class_name="LineItem", collection=True)

    LineItem.validates_presence_of("sku")

or imperatively with :meth:`Resource.declare_attribute`, or from an XSD with
``class Invoice(Resource, xsd="complex_type")``.

Instances store values in a private value bag and expose them through an
accessor facade interpreted from the kind's :class:`ResourceSchema` at call
time: ``order.id``, ``order.read_attribute("id")`` and
``order.write_attribute("id", "7")`` all go through the same mapping lookup
and type caster. Every instance gets for free:

* type coercion on assignment (``Order(id="7").id == 7``);
* ``[]`` for collection attributes that were never set;
* bulk snapshots and overlay updates (:attr:`attributes`,
  :meth:`assign_attributes`);
* validation cascading into nested resources (:meth:`validate`);
* ordered dictionaries, JSON and XML output.

Bulk assignment policy:
    :meth:`assign_attributes` ignores keys that are not declared attributes.
    Loosely-shaped input (API payloads, XML converted to dictionaries) can be
    applied as an overlay without pre-filtering.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Callable, Dict, List, Optional, Tuple

from . import serialization, validation
from .exceptions import (
    SchemaDeclarationError,
    TypeCastError,
    UnknownAttributeError,
    UnknownTypeError,
    UnsupportedOptionError,
)
from .models import AttributeMapping, ResourceSchema, camelize
from .registry import ResourceRegistry, default_registry
from .validation import Errors, PresenceValidator, ValidationResult, as_validator
from .xml_generator import XmlReader
from .xsd_structure import XSD_MODES

logger = logging.getLogger(__name__)

ALLOWED_ATTRIBUTE_OPTIONS = frozenset(
    {"class_name", "collection", "collection_element_name"}
)


class Attribute:
    """Class-body attribute declaration.

    Args:
        type: Type tag understood by the registry's caster.
        **options: ``class_name``, ``collection`` and/or
            ``collection_element_name``.
    """

    def __init__(self, type: str, **options: Any):
        self.type = type
        self.options = options

    def __repr__(self) -> str:
        options = "".join(f", {key}={value!r}" for key, value in self.options.items())
        return f"Attribute({self.type!r}{options})"


class Resource:
    """Base class for declared resource kinds.

    Class keyword arguments:
        kind: Registry name (defaults to the class name).
        registry: :class:`ResourceRegistry` for this class and its subclasses.
        abstract: When True the class is not registered as a kind; use it for
            shared bases.
        xsd: ``"doc"`` or ``"complex_type"`` to declare attributes from the
            registry's XSD structure after the class-body declarations.
    """

    registry: ResourceRegistry = default_registry
    schema: ResourceSchema = ResourceSchema("Resource")

    def __init_subclass__(
        cls,
        kind: Optional[str] = None,
        registry: Optional[ResourceRegistry] = None,
        abstract: bool = False,
        xsd: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init_subclass__(**kwargs)
        if registry is not None:
            cls.registry = registry

        declarations = [
            (name, value) for name, value in vars(cls).items() if isinstance(value, Attribute)
        ]
        for name, _ in declarations:
            delattr(cls, name)

        parent = _parent_schema(cls)
        cls.schema = ResourceSchema(kind or cls.__name__)

        with cls.registry.lock:
            if parent is not None:
                cls.schema.inherit(parent)
            if xsd is not None and xsd not in XSD_MODES:
                raise SchemaDeclarationError(
                    f"{cls.schema.kind}: xsd must be one of {XSD_MODES}, got {xsd!r}"
                )
            # Registered first so a kind can nest itself.
            if not abstract:
                cls.registry.register(cls, cls.schema.kind)
            try:
                for name, declaration in declarations:
                    cls.declare_attribute(name, declaration.type, **declaration.options)
                if xsd == "doc":
                    cls.xsd_doc()
                elif xsd == "complex_type":
                    cls.xsd_complex_type()
            except Exception:
                if not abstract:
                    cls.registry.unregister(cls.schema.kind)
                raise

    # ---------------- Declaration API ---------------- #

    @classmethod
    def declare_attribute(cls, name: str, type: str, **options: Any) -> AttributeMapping:
        """Declare an attribute on this kind.

        Args:
            name: Attribute name.
            type: Type tag (``"string"``, ``"integer"``, ..., ``"resource"``).
            **options: ``class_name`` (nested kind for ``"resource"``,
                defaults to the camel-cased attribute name), ``collection``
                and ``collection_element_name``.

        Returns:
            The stored :class:`AttributeMapping`.

        Raises:
            UnknownTypeError: ``type`` is not known to the caster.
            UnsupportedOptionError: An option outside the allowed set was given.
            UnresolvedResourceError: The nested kind is not registered.
            SchemaDeclarationError: Empty, duplicate or reserved name, or the
                schema is already sealed.
        """
        kind = cls.schema.kind
        name = str(name)
        if not name:
            raise SchemaDeclarationError(f"{kind}: attribute name must not be empty")
        if not cls.registry.caster.is_valid_type(type):
            raise UnknownTypeError(f"Wrong type: {kind}.{name}: {type}")

        unsupported = set(options) - ALLOWED_ATTRIBUTE_OPTIONS
        if unsupported:
            raise UnsupportedOptionError(
                f"Option not supported: {kind}.{name}: {sorted(unsupported)}",
                unsupported,
            )
        if name in cls.schema.mappings:
            raise SchemaDeclarationError(f"{kind}: attribute '{name}' is already declared")
        if name.startswith("_") or hasattr(cls, name):
            raise SchemaDeclarationError(
                f"{kind}: attribute '{name}' would shadow a Resource member"
            )
        cls.schema.ensure_writable()

        resource = None
        if type == "resource":
            class_name = options.get("class_name") or camelize(name)
            resource = cls.registry.resolve(class_name)

        mapping = AttributeMapping(
            name=name,
            type=type,
            resource=resource,
            collection=bool(options.get("collection")),
            collection_element_name=options.get("collection_element_name"),
        )
        cls.schema.add_mapping(mapping)
        logger.debug(f"{kind}: declared {name}: {mapping.type_label}")
        return mapping

    @classmethod
    def container_tag(cls, name: str, attributes: Optional[Mapping[str, Any]] = None) -> None:
        """Override the XML root element name and attributes."""
        cls.schema.set_container(name, dict(attributes or {}))

    @classmethod
    def validates_presence_of(cls, *names: str) -> None:
        """Require the given attributes to hold non-blank values."""
        for name in names:
            if name not in cls.schema.mappings:
                raise SchemaDeclarationError(
                    f"{cls.schema.kind}: cannot validate undeclared attribute '{name}'"
                )
        cls.schema.add_validator(PresenceValidator(names))

    @classmethod
    def validates_with(cls, validator: Any) -> Any:
        """Register a validator object or ``func(resource, errors)`` callable.

        Returns ``validator`` unchanged so this can decorate functions::

            @Order.validates_with
            def positive_total(order, errors):
                if order.total is not None and order.total < 0:
                    errors.add("total", "invalid", "must not be negative")
        """
        cls.schema.add_validator(as_validator(validator))
        return validator

    @classmethod
    def xsd_doc(cls) -> None:
        """Declare container and attributes from the XSD document element."""
        structure = cls.registry.structure
        with cls.registry.lock:
            doc_name, doc = structure.doc(cls.schema.kind)
            cls.container_tag(doc_name, doc.attributes)
            cls._declare_xsd_attributes(structure.resource_attributes(cls.schema.kind, "doc"))

    @classmethod
    def xsd_complex_type(cls) -> None:
        """Declare attributes from the XSD complexType named after this kind."""
        structure = cls.registry.structure
        with cls.registry.lock:
            cls._declare_xsd_attributes(
                structure.resource_attributes(cls.schema.kind, "complex_type")
            )

    @classmethod
    def _declare_xsd_attributes(
        cls, entries: Iterable[Tuple[str, str, Dict[str, Any]]]
    ) -> None:
        for name, type, options in entries:
            options = dict(options)
            required = options.pop("required", False)
            cls.declare_attribute(name, type, **options)
            if required:
                cls.validates_presence_of(name)
        logger.debug(f"{cls.schema.kind}: declared from XSD: {cls.schema.describe()}")

    # ---------------- Reflection API ---------------- #

    @classmethod
    def list_attributes(cls) -> List[str]:
        return list(cls.schema.attributes)

    @classmethod
    def list_mappings(cls) -> Dict[str, AttributeMapping]:
        return {name: cls.schema.mappings[name] for name in cls.schema.attributes}

    @classmethod
    def describe(cls) -> str:
        return cls.schema.describe()

    # ---------------- Instance API ---------------- #

    def __init__(self, attributes: Any = None, **kwargs: Any) -> None:
        type(self).schema.sealed = True
        object.__setattr__(self, "_values", {})
        if attributes is not None:
            self.assign_attributes(attributes)
        if kwargs:
            self.assign_attributes(kwargs)

    def __getattr__(self, name: str) -> Any:
        if not name.startswith("__") and name in type(self).schema.mappings:
            return self.read_attribute(name)
        raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")

    def __setattr__(self, name: str, value: Any) -> None:
        if name in type(self).schema.mappings:
            self.write_attribute(name, value)
        elif name.startswith("_"):
            object.__setattr__(self, name, value)
        else:
            raise UnknownAttributeError(f"{self.schema.kind} has no attribute '{name}'")

    def read_attribute(self, name: str) -> Any:
        """Return the stored value; unset collections read as ``[]``."""
        mapping = self.schema.mapping_for(name)
        value = self._values.get(name)
        if value is None and mapping.collection:
            return []
        return value

    def write_attribute(self, name: str, value: Any) -> None:
        """Cast ``value`` for attribute ``name`` and replace the stored value.

        Raises:
            UnknownAttributeError: ``name`` is not declared.
            TypeCastError: The value cannot be cast to the declared type.
        """
        mapping = self.schema.mapping_for(name)
        caster = self.registry.caster
        if mapping.collection and value is not None:
            if isinstance(value, (str, bytes, Mapping)) or not isinstance(value, Iterable):
                raise TypeCastError(
                    value, mapping.type, f"'{name}' is a collection, expected a sequence"
                )
            typed: Any = [caster.cast(item, mapping.type, mapping.resource) for item in value]
        else:
            typed = caster.cast(value, mapping.type, mapping.resource)
        self._values[name] = typed

    @property
    def attributes(self) -> Dict[str, Any]:
        """Shallow snapshot of every declared attribute, in declaration order."""
        return {name: self.read_attribute(name) for name in self.schema.attributes}

    def assign_attributes(self, source: Any) -> Dict[str, Any]:
        """Overlay values from ``source`` and return the resulting snapshot.

        ``source`` may be a mapping, an iterable of ``(key, value)`` pairs or
        any object exposing an ``attributes`` mapping (e.g. another resource).
        Keys that are not declared attributes are ignored.
        """
        if not isinstance(source, Mapping):
            view = getattr(source, "attributes", None)
            if isinstance(view, Mapping):
                source = view
        pairs = source.items() if isinstance(source, Mapping) else source

        mappings = self.schema.mappings
        for key, value in pairs:
            name = str(key)
            if name in mappings:
                self.write_attribute(name, value)
        return self.attributes

    def resources(self) -> Dict[str, Any]:
        """Snapshot restricted to attributes that hold nested resources."""
        return {name: self.read_attribute(name) for name in self.schema.resource_attributes()}

    def validate(self) -> ValidationResult:
        """Run the validation cascade and return a fresh result."""
        return validation.validate(self)

    def is_valid(self) -> bool:
        return self.validate().valid

    @property
    def errors(self) -> Errors:
        """Error set of a fresh validity check."""
        return self.validate().errors

    def serializable_hash(
        self, transform: Optional[Callable[[str, Any], Any]] = None
    ) -> Dict[str, Any]:
        return serialization.serializable_hash(self, transform)

    def as_json(self) -> Dict[str, Any]:
        return serialization.as_json(self)

    def to_json(self, **kwargs: Any) -> str:
        return serialization.to_json(self, **kwargs)

    def to_xml(self) -> str:
        """Render the resource with the registry's XML renderer."""
        return self.registry.renderer(self)

    @classmethod
    def from_xml(cls, source: Any) -> "Resource":
        """Build an instance from XML text, bytes or an Element."""
        return XmlReader(cls).read(source)

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.attributes == other.attributes  # type: ignore[attr-defined]

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        body = ", ".join(
            f"{key}: {value!r}" for key, value in self.serializable_hash().items()
        )
        return f"{type(self).__name__}({body})"


def _parent_schema(cls: type) -> Optional[ResourceSchema]:
    for base in cls.__mro__[1:]:
        if "schema" in vars(base) and isinstance(vars(base)["schema"], ResourceSchema):
            return vars(base)["schema"]
    return None
