"""Coercion of raw input values into declared attribute types.

The caster is the single place where loosely-typed input (strings read from
XML, numbers from JSON, nested dictionaries) becomes the typed value stored
on a resource. Every resource registry owns one caster; resources call it
through :meth:`TypeCaster.cast` and validate declarations with
:meth:`TypeCaster.is_valid_type`.

Supported type tags:

========== ==============================================================
Tag        Result
========== ==============================================================
string     ``str``
integer    ``int`` (integral strings, floats and decimals accepted)
decimal    :class:`decimal.Decimal`
float      ``float``
boolean    ``bool`` (``"true"``/``"false"``/``"1"``/``"0"`` accepted)
date       :class:`datetime.date` (ISO 8601 strings accepted)
datetime   :class:`datetime.datetime` (ISO 8601 strings accepted)
resource   instance of the nested resource kind
========== ==============================================================

``None`` always casts to ``None`` so that absent values reach presence
validation instead of failing the cast.

Example:
    >>> from mydata_schema.type_caster import TypeCaster
    >>> caster = TypeCaster()
    >>> caster.cast("7", "integer")
    7
    >>> caster.cast("false", "boolean")
    False

Extending:
    Subclass and add entries to ``CASTERS`` (tag -> method name)::

        class MoneyCaster(TypeCaster):
            CASTERS = {**TypeCaster.CASTERS, "money": "_cast_money"}

            def _cast_money(self, value, resource):
                return Decimal(str(value)).quantize(Decimal("0.01"))
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from .exceptions import TypeCastError

TRUE_VALUES = {"true", "1"}
FALSE_VALUES = {"false", "0"}

# Same bound as the interpreter applies to int(str).
MAX_INTEGER_DIGITS = 4300


def _decimal_to_int(number: Decimal, raw: Any) -> int:
    if not number.is_finite():
        raise TypeCastError(raw, "integer", "value is not finite")
    if number.adjusted() >= MAX_INTEGER_DIGITS:
        raise TypeCastError(raw, "integer", f"more than {MAX_INTEGER_DIGITS} digits")
    if number != number.to_integral_value():
        raise TypeCastError(raw, "integer", "value is not integral")
    return int(number)


class TypeCaster:
    """Default caster for primitive tags and nested resources."""

    CASTERS: Dict[str, str] = {
        "string": "_cast_string",
        "integer": "_cast_integer",
        "decimal": "_cast_decimal",
        "float": "_cast_float",
        "boolean": "_cast_boolean",
        "date": "_cast_date",
        "datetime": "_cast_datetime",
        "resource": "_cast_resource",
    }

    def is_valid_type(self, type_name: Any) -> bool:
        """Return True if ``type_name`` is a tag this caster can handle."""
        return isinstance(type_name, str) and type_name in self.CASTERS

    def cast(self, value: Any, type: str, resource: Optional[Any] = None) -> Any:
        """Coerce ``value`` to ``type``.

        Args:
            value: Raw input value.
            type: Declared type tag.
            resource: Nested resource class; required when ``type`` is
                ``"resource"``.

        Returns:
            The typed value (``None`` passes through unchanged).

        Raises:
            TypeCastError: If the value cannot be represented as ``type``.
        """
        if not self.is_valid_type(type):
            raise TypeCastError(value, str(type), "unknown type")
        if value is None:
            return None
        return getattr(self, self.CASTERS[type])(value, resource)

    # ---------------- Primitive casters ---------------- #

    def _cast_string(self, value: Any, resource: Optional[type]) -> str:
        if isinstance(value, (Mapping, list, tuple, set)):
            raise TypeCastError(value, "string")
        return str(value)

    def _cast_integer(self, value: Any, resource: Optional[type]) -> int:
        if isinstance(value, bool):
            raise TypeCastError(value, "integer", "booleans are not integers")
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            if not math.isfinite(value):
                raise TypeCastError(value, "integer", "value is not finite")
            if not value.is_integer():
                raise TypeCastError(value, "integer", "value is not integral")
            return int(value)
        if isinstance(value, Decimal):
            return _decimal_to_int(value, value)
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                pass
            try:
                number = Decimal(value.strip())
            except InvalidOperation:
                raise TypeCastError(value, "integer") from None
            return _decimal_to_int(number, value)
        raise TypeCastError(value, "integer")

    def _cast_decimal(self, value: Any, resource: Optional[type]) -> Decimal:
        if isinstance(value, bool):
            raise TypeCastError(value, "decimal", "booleans are not numbers")
        if isinstance(value, Decimal):
            return value
        if not isinstance(value, (int, float, str)):
            raise TypeCastError(value, "decimal")
        try:
            return Decimal(str(value).strip())
        except InvalidOperation:
            raise TypeCastError(value, "decimal") from None

    def _cast_float(self, value: Any, resource: Optional[type]) -> float:
        if isinstance(value, bool):
            raise TypeCastError(value, "float", "booleans are not numbers")
        if not isinstance(value, (int, float, str, Decimal)):
            raise TypeCastError(value, "float")
        try:
            return float(value)
        except ValueError:
            raise TypeCastError(value, "float") from None

    def _cast_boolean(self, value: Any, resource: Optional[type]) -> bool:
        if isinstance(value, bool):
            return value
        normalized = str(value).strip().lower()
        if normalized in TRUE_VALUES:
            return True
        if normalized in FALSE_VALUES:
            return False
        raise TypeCastError(value, "boolean")

    def _cast_date(self, value: Any, resource: Optional[type]) -> date:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            raw = value.strip()
            if raw.endswith("Z"):
                raw = raw[:-1] + "+00:00"
            try:
                if len(raw) > 10:
                    return datetime.fromisoformat(raw).date()
                return date.fromisoformat(raw)
            except ValueError:
                raise TypeCastError(value, "date") from None
        raise TypeCastError(value, "date")

    def _cast_datetime(self, value: Any, resource: Optional[type]) -> datetime:
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day)
        if isinstance(value, str):
            raw = value.strip()
            if raw.endswith("Z"):
                raw = raw[:-1] + "+00:00"
            try:
                return datetime.fromisoformat(raw)
            except ValueError:
                raise TypeCastError(value, "datetime") from None
        raise TypeCastError(value, "datetime")

    # ---------------- Nested resources ---------------- #

    def _cast_resource(self, value: Any, resource: Optional[type]) -> Any:
        if resource is None:
            raise TypeCastError(value, "resource", "no resource class given")
        # Always build a fresh instance so the parent owns its nested values.
        if isinstance(value, Mapping) or isinstance(
            getattr(value, "attributes", None), Mapping
        ):
            return resource(value)
        raise TypeCastError(
            value, "resource", f"expected a mapping or {resource.__name__}"
        )
