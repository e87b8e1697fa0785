"""Resource serialization to ordered dictionaries and JSON.

This module supplies helpers for converting between:
* Resource instance graphs
* Ordered key/value trees (``serializable_hash``) suitable for generic export
* JSON text for API payloads and logging

Nested resources and collections of resources are expanded recursively into
their own dictionaries; primitive values pass through unchanged. A
``transform(key, value)`` callable replaces that expansion when a caller
needs full control over top-level values.

Example:
        order = Order(id="7", items=[{"sku": "A", "qty": "2"}])
        serializable_hash(order)
        # {'id': 7, 'items': [{'sku': 'A', 'qty': 2}]}
        to_json(order)
        # '{"id": 7, "items": [{"sku": "A", "qty": 2}]}'

Design notes:
* The resource graph is assumed to be a tree; there is no cycle detection.
* JSON rendering turns ``Decimal`` into strings (no precision loss) and dates
    into ISO 8601 text.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Optional


def serializable_hash(
    resource: Any, transform: Optional[Callable[[str, Any], Any]] = None
) -> Dict[str, Any]:
    """Return the ordered key/value tree of ``resource``.

    Args:
        resource: Resource instance.
        transform: Optional ``transform(key, value)``; when given, its result
            replaces each value and no recursive expansion happens.

    Returns:
        Dictionary in declaration order.
    """
    result: Dict[str, Any] = {}
    for key, value in resource.attributes.items():
        if transform is not None:
            result[key] = transform(key, value)
        else:
            result[key] = _serialize_value(value)
    return result


def _serialize_value(value: Any) -> Any:
    if hasattr(value, "serializable_hash"):
        return value.serializable_hash()
    if isinstance(value, list):
        return [_serialize_value(item) for item in value]
    return value


def json_value(value: Any) -> Any:
    """Convert a serialized value into JSON-safe primitives."""
    if isinstance(value, dict):
        return {key: json_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [json_value(item) for item in value]
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def as_json(resource: Any) -> Dict[str, Any]:
    """Return ``serializable_hash(resource)`` with JSON-safe leaf values."""
    return json_value(serializable_hash(resource))


def to_json(resource: Any, **kwargs: Any) -> str:
    """Encode ``resource`` as JSON text; ``kwargs`` go to :func:`json.dumps`."""
    return json.dumps(as_json(resource), **kwargs)
