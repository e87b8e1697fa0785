"""myDATA Schema
====================

Declarative, typed resource records for building and reading myDATA style
XML documents.

Key capabilities
----------------
- Declare a resource kind once (attribute names, types, collections, nested
  kinds) and get type coercion on every assignment.
- Declare kinds straight from an XSD document element or complexType.
- Validation that cascades into nested resources and reports nested
  failures on the parent attribute that holds them.
- Ordered dictionary, JSON and XML output; XML input.
- Cached XSD loading (in-process, optionally Redis-backed).

Design principles
-----------------
1. **Declaration errors fail fast** – unknown types, unsupported options and
   unresolved nested kinds raise while the class is being defined.
2. **Validation is data** – validity checks return a fresh
   :class:`~mydata_schema.validation.ValidationResult`; nothing is raised and
   nothing is cached on the instance.
3. **Schemas are write-once** – a kind's schema is sealed when its first
   instance is built.

Docstring style
---------------
Public functions and classes use Google style docstrings (Args, Returns,
Raises, Examples).

Minimal quick start
-------------------
>>> from mydata_schema import Attribute, Resource
>>> class LineItem(Resource):
...     sku = Attribute("string")
...     qty = Attribute("integer")
>>> class Order(Resource):
...     id = Attribute("integer")
...     items = Attribute("resource", class_name="LineItem", collection=True)
>>> order = Order(id="7", items=[{"sku": "A", "qty": "2"}])
>>> order.serializable_hash()
{'id': 7, 'items': [{'sku': 'A', 'qty': 2}]}

Public surface
--------------
Only a curated subset is exported at the package level to keep the import
surface stable; advanced modules can be imported explicitly.
"""

__version__ = "0.1.0"

from .cache import get_structure
from .exceptions import (
    MyDataSchemaError,
    SchemaDeclarationError,
    TypeCastError,
    UnknownAttributeError,
    UnknownTypeError,
    UnresolvedResourceError,
    UnsupportedOptionError,
    XsdStructureError,
)
from .models import AttributeMapping, Container, ResourceSchema
from .registry import ResourceRegistry, default_registry
from .resource import Attribute, Resource
from .type_caster import TypeCaster
from .validation import Errors, ValidationResult
from .xsd_structure import StructureConfig, XsdStructure

__all__ = [
    "Attribute",
    "AttributeMapping",
    "Container",
    "Errors",
    "MyDataSchemaError",
    "Resource",
    "ResourceRegistry",
    "ResourceSchema",
    "SchemaDeclarationError",
    "StructureConfig",
    "TypeCastError",
    "TypeCaster",
    "UnknownAttributeError",
    "UnknownTypeError",
    "UnresolvedResourceError",
    "UnsupportedOptionError",
    "ValidationResult",
    "XsdStructure",
    "XsdStructureError",
    "default_registry",
    "get_structure",
]
