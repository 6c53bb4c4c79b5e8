"""Endpoint URL construction for the remote repository protocol."""

from __future__ import annotations

import re
from typing import Any, List, Mapping, Optional
from urllib.parse import quote

from remote_repository.domain.encoding import encode_key, encode_query

# Runs of Unicode letters and digits; underscores, spaces and punctuation separate.
_CHUNK_RE = re.compile(r"[^\W_]+")


def kebab_case(name: str) -> str:
    """``getItems`` -> ``get-items``, ``count_retired`` -> ``count-retired``."""
    return "-".join(
        word.lower() for chunk in _CHUNK_RE.findall(name) for word in _split_words(chunk)
    )


def _split_words(chunk: str) -> List[str]:
    words: List[str] = []
    start = 0
    for i in range(1, len(chunk)):
        prev, cur = chunk[i - 1], chunk[i]
        following = chunk[i + 1] if i + 1 < len(chunk) else ""
        if (
            prev.isdigit() != cur.isdigit()
            or (prev.islower() and cur.isupper())
            or (prev.isupper() and cur.isupper() and following.islower())
        ):
            words.append(chunk[start:i])
            start = i
    words.append(chunk[start:])
    return words


def _segment(name: str) -> str:
    return quote(kebab_case(name), safe="")


def collection_name_of(collection: Any) -> str:
    """Accept a collection name, a record class, or a record instance."""
    if isinstance(collection, str):
        return collection
    name = getattr(collection, "collection_name", None)
    if not isinstance(name, str) or not name:
        raise ValueError(f"{collection!r} has no collection name")
    return name


def build_url(
    base_url: str,
    collection: Any = None,
    item_key: Any = None,
    action: Optional[str] = None,
    options: Optional[Mapping[str, Any]] = None,
) -> str:
    """Assemble ``{base}/{collection}/{key}/{action}?{options}``.

    ``item_key`` may be a raw key or a record instance, in which case its
    primary key value is used; a ``None`` key adds no path segment.
    """
    url = base_url[:-1] if base_url.endswith("/") else base_url

    if collection:
        url += "/" + _segment(collection_name_of(collection))

    if item_key is not None and not isinstance(item_key, (str, int, float)):
        if hasattr(item_key, "primary_key_value"):
            item_key = item_key.primary_key_value
    if item_key is not None:
        url += "/" + encode_key(item_key)

    if action:
        url += "/" + _segment(action)

    query = encode_query(options)
    if query:
        url += "?" + query
    return url


__all__ = ["build_url", "collection_name_of", "kebab_case"]
