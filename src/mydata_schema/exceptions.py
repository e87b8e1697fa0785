"""Exception hierarchy for resource declaration, casting and XSD loading.

Declaration problems (unknown types, unsupported options, unresolvable
nested resources) are raised while a resource class is being defined so a
broken schema never reaches runtime. Casting problems surface from setters
and constructors. Validation failures are *not* exceptions; they are
reported through :class:`~mydata_schema.validation.ValidationResult`.
"""

from __future__ import annotations

from typing import Any, Iterable, List


class MyDataSchemaError(Exception):
    """Base class for every error raised by this package."""


class SchemaDeclarationError(MyDataSchemaError, ValueError):
    """A resource schema declaration is invalid."""


class UnknownTypeError(SchemaDeclarationError):
    """An attribute was declared with a type the caster does not know."""


class UnsupportedOptionError(SchemaDeclarationError):
    """An attribute was declared with options outside the allowed set.

    Attributes:
        options: Sorted list of the offending option names.
    """

    def __init__(self, message: str, options: Iterable[str]):
        super().__init__(message)
        self.options: List[str] = sorted(options)


class UnresolvedResourceError(SchemaDeclarationError):
    """A nested resource reference does not name a registered kind."""


class UnknownAttributeError(MyDataSchemaError, AttributeError):
    """Read or write of an attribute the resource does not declare."""


class TypeCastError(MyDataSchemaError, ValueError):
    """A raw value cannot be coerced to the declared attribute type.

    Attributes:
        value: The raw value that failed to cast.
        type: The declared type tag.
    """

    def __init__(self, value: Any, type: str, reason: str = ""):
        message = f"Cannot cast {value!r} to {type}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.value = value
        self.type = type


class XsdStructureError(MyDataSchemaError, ValueError):
    """The XSD structure source cannot satisfy a lookup."""
