"""Validation cascade for resource graphs.

Validation is a pure function of a resource instance. Each call builds a
fresh :class:`Errors` set, runs the kind's local validators, then descends
into every nested resource (single or collection). Failures found below are
folded back into the parent under the attribute that holds the failing
resource, so the root's error set is the only place a caller has to look.

Cascade steps (see :func:`validate`):
    1. Local validators (presence rules, custom rules) fill the error set.
    2. When the local check passes, every nested resource is validated.
    3. The instance is valid only if both steps succeed.
    4. When invalid, each failing nested resource adds an
       ``"invalid_resource"`` error on the parent whose message is the nested
       resource's full messages joined with ``", "``.

Example::

    result = order.validate()
    if not result.valid:
        print(result.errors.to_dict())
        # {'items': ["Sku can't be blank"]}

Validators are plain objects with a ``validate(resource, errors)`` method or
callables with the same signature; register them with
:meth:`Resource.validates_with`.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

DEFAULT_MESSAGES = {
    "blank": "can't be blank",
    "invalid": "is invalid",
    "invalid_resource": "is invalid",
}

NESTED_MESSAGE_SEPARATOR = ", "

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def humanize(attribute: str) -> str:
    """Turn an attribute name into a sentence fragment.

    Example:
        >>> humanize("line_items")
        'Line items'
        >>> humanize("invoiceHeader")
        'Invoice header'
    """
    words = _CAMEL_BOUNDARY.sub(" ", attribute).replace("_", " ").strip().lower()
    return words[:1].upper() + words[1:]


@dataclass(frozen=True)
class ErrorDetail:
    """One error entry: a symbolic kind plus a human readable message."""

    kind: str
    message: str


class Errors:
    """Ordered collection of validation errors keyed by attribute name."""

    def __init__(self) -> None:
        self._details: Dict[str, List[ErrorDetail]] = {}

    def add(self, attribute: str, kind: str, message: Optional[str] = None) -> None:
        """Record an error on ``attribute``.

        Args:
            attribute: Attribute name the error belongs to.
            kind: Symbolic error kind (``"blank"``, ``"invalid_resource"``, ...).
            message: Message text; defaults to the stock message for ``kind``.
        """
        text = message if message is not None else DEFAULT_MESSAGES.get(kind, kind)
        self._details.setdefault(attribute, []).append(ErrorDetail(kind, text))

    def __getitem__(self, attribute: str) -> List[str]:
        return [detail.message for detail in self._details.get(attribute, [])]

    def details(self, attribute: str) -> List[ErrorDetail]:
        return list(self._details.get(attribute, []))

    def __contains__(self, attribute: object) -> bool:
        return attribute in self._details

    def __iter__(self) -> Iterator[str]:
        return iter(self._details)

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._details.values())

    def __bool__(self) -> bool:
        return bool(self._details)

    def __repr__(self) -> str:
        return f"Errors({self.to_dict()!r})"

    def is_empty(self) -> bool:
        return not self._details

    def attributes(self) -> List[str]:
        return list(self._details)

    def full_messages_for(self, attribute: str) -> List[str]:
        label = humanize(attribute)
        return [f"{label} {detail.message}" for detail in self._details.get(attribute, [])]

    def full_messages(self) -> List[str]:
        """All messages prefixed with their humanized attribute name."""
        messages: List[str] = []
        for attribute in self._details:
            messages.extend(self.full_messages_for(attribute))
        return messages

    def to_dict(self) -> Dict[str, List[str]]:
        return {attribute: self[attribute] for attribute in self._details}


@dataclass
class ValidationResult:
    """Outcome of a validity check.

    Attributes:
        valid: True when local rules and every nested resource passed.
        errors: Error set built during this check.
    """

    valid: bool
    errors: Errors = field(default_factory=Errors)


def is_blank(value: Any) -> bool:
    """Return True for ``None``, whitespace-only strings and empty containers."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, Mapping)):
        return len(value) == 0
    return False


class PresenceValidator:
    """Require attributes to hold a non-blank value.

    Example:
        >>> PresenceValidator(["sku"]).attributes
        ('sku',)
    """

    def __init__(self, attributes: Sequence[str]):
        self.attributes = tuple(attributes)

    def validate(self, resource: Any, errors: Errors) -> None:
        for name in self.attributes:
            if is_blank(resource.read_attribute(name)):
                errors.add(name, "blank")

    def __repr__(self) -> str:
        return f"PresenceValidator({list(self.attributes)!r})"


class CallableValidator:
    """Adapter turning ``func(resource, errors)`` into a validator object."""

    def __init__(self, func: Callable[[Any, Errors], None]):
        self.func = func

    def validate(self, resource: Any, errors: Errors) -> None:
        self.func(resource, errors)

    def __repr__(self) -> str:
        return f"CallableValidator({getattr(self.func, '__name__', self.func)!r})"


def as_validator(candidate: Any) -> Any:
    """Return ``candidate`` as an object exposing ``validate(resource, errors)``."""
    if callable(getattr(candidate, "validate", None)):
        return candidate
    if callable(candidate):
        return CallableValidator(candidate)
    raise TypeError(
        f"Validator must define validate(resource, errors) or be callable: {candidate!r}"
    )


def nested_resources(resource: Any) -> Dict[str, List[Any]]:
    """Return the nested resource instances of ``resource`` by attribute.

    Collections are flattened and unset entries dropped.
    """
    found: Dict[str, List[Any]] = {}
    for name in resource.schema.resource_attributes():
        value = resource.read_attribute(name)
        items = value if isinstance(value, list) else [value]
        found[name] = [item for item in items if item is not None]
    return found


def validate(resource: Any) -> ValidationResult:
    """Validate ``resource`` and, recursively, its nested resources.

    Args:
        resource: A :class:`~mydata_schema.resource.Resource` instance.

    Returns:
        A fresh :class:`ValidationResult`; nothing is stored on ``resource``.
    """
    errors = Errors()
    for validator in resource.schema.validators:
        validator.validate(resource, errors)

    nested = nested_resources(resource)
    nested_results: Dict[int, ValidationResult] = {}

    def result_for(item: Any) -> ValidationResult:
        key = id(item)
        if key not in nested_results:
            nested_results[key] = item.validate()
        return nested_results[key]

    valid = errors.is_empty() and all(
        result_for(item).valid for items in nested.values() for item in items
    )
    if valid:
        return ValidationResult(valid=True, errors=errors)

    for name, items in nested.items():
        for item in items:
            result = result_for(item)
            if not result.valid:
                errors.add(
                    name,
                    "invalid_resource",
                    NESTED_MESSAGE_SEPARATOR.join(result.errors.full_messages()),
                )
    return ValidationResult(valid=False, errors=errors)
