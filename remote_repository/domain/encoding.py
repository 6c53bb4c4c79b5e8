"""Canonical encoding of values for URL paths and query strings.

Query values are always JSON encoded (strings included) so ``"true"`` and
``True`` never produce the same query string. Keys are sorted, which makes the
output independent of the insertion order of the options mapping.
"""

from __future__ import annotations

import json
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
from urllib.parse import quote, urlencode
from uuid import UUID


def encode_value(value: Any) -> Any:
    """Return the canonical JSON-compatible form of ``value``.

    Raises:
        TypeError: For values with no canonical form.
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Enum):
        return encode_value(value.value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    serialize = getattr(value, "serialize", None)
    if callable(serialize):
        return encode_value(serialize())
    if isinstance(value, Mapping):
        return {str(key): encode_value(value[key]) for key in sorted(value, key=str)}
    if isinstance(value, (set, frozenset)):
        return sorted((encode_value(item) for item in value), key=_dump)
    if isinstance(value, (list, tuple)):
        return [encode_value(item) for item in value]
    raise TypeError(f"Cannot encode value of type {type(value).__name__}")


def encode_key(value: Any) -> str:
    """Encode an item key as a single URL path segment."""
    canonical = encode_value(value)
    if isinstance(canonical, str):
        return quote(canonical, safe="")
    return quote(_dump(canonical), safe="")


def encode_query_pairs(options: Optional[Mapping[str, Any]]) -> List[Tuple[str, str]]:
    """Sorted ``(key, json_value)`` pairs; ``None`` values are dropped."""
    if not options:
        return []
    pairs: List[Tuple[str, str]] = []
    for key in sorted(options, key=str):
        value = options[key]
        if value is None:
            continue
        pairs.append((str(key), _dump(encode_value(value))))
    return pairs


def encode_query(options: Optional[Mapping[str, Any]]) -> str:
    return format_query(encode_query_pairs(options))


def format_query(pairs: Iterable[Tuple[str, str]]) -> str:
    return urlencode(list(pairs), quote_via=quote)


def decode_query_value(text: str) -> Any:
    """Inverse of the query value encoding; non-JSON text is returned as-is."""
    try:
        return json.loads(text)
    except ValueError:
        return text


def decode_query(params: Mapping[str, str]) -> Dict[str, Any]:
    return {key: decode_query_value(value) for key, value in params.items()}


def _dump(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), sort_keys=True, ensure_ascii=False)


__all__ = [
    "decode_query",
    "decode_query_value",
    "encode_key",
    "encode_query",
    "encode_query_pairs",
    "encode_value",
    "format_query",
]
