"""Rebuild local records from server envelopes.

The ``class`` tag sent by the server always wins over the type the caller
asked for, so a query on a base collection may return subtype records.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple, Type

from remote_repository.adapters.api_errors import UnknownType
from remote_repository.domain.records import Record, RecordRegistry, default_registry

TAG_KEY = "class"
VALUE_KEY = "value"

ResolutionCache = Dict[str, Type[Record]]


class PolymorphicResolver:
    """Turns ``{"class": tag, "value": {...}}`` envelopes into records."""

    def __init__(self, registry: Optional[RecordRegistry] = None) -> None:
        self.registry = registry if registry is not None else default_registry

    def resolve(
        self,
        envelope: Any,
        requested: Optional[Record] = None,
        cache: Optional[ResolutionCache] = None,
    ) -> Record:
        """Return ``requested`` updated in place when the tags match, else a new record.

        Raises:
            UnknownType: If the envelope is malformed or its tag is not registered.
        """
        tag, value = self._unpack(envelope)
        if requested is not None and tag == requested.type_tag:
            requested.replace_value(value)
            return requested
        return self.record_class(tag, cache).from_value(value)

    def resolve_many(self, envelopes: Any) -> List[Record]:
        """Resolve a batch with one short-lived cache shared by every envelope."""
        if not isinstance(envelopes, list):
            raise UnknownType("Expected a list of record envelopes", payload=envelopes)
        cache: ResolutionCache = {}
        return [self.resolve(envelope, cache=cache) for envelope in envelopes]

    def record_class(self, tag: str, cache: Optional[ResolutionCache] = None) -> Type[Record]:
        if cache is None:
            return self.registry.lookup(tag)
        record_cls = cache.get(tag)
        if record_cls is None:
            record_cls = self.registry.lookup(tag)
            cache[tag] = record_cls
        return record_cls

    @staticmethod
    def _unpack(envelope: Any) -> Tuple[str, Mapping[str, Any]]:
        if not isinstance(envelope, Mapping):
            raise UnknownType("Record envelope must be an object", payload=envelope)
        tag = envelope.get(TAG_KEY)
        value = envelope.get(VALUE_KEY)
        if not isinstance(tag, str) or not tag:
            raise UnknownType("Record envelope has no type tag", payload=envelope)
        if not isinstance(value, Mapping):
            raise UnknownType(
                f"Record envelope for '{tag}' has no value", type_tag=tag, payload=envelope
            )
        return tag, value


__all__ = ["PolymorphicResolver", "ResolutionCache"]
