"""Record base class and the type registry used to rebuild server records.

Records are plain dataclasses deriving from :class:`Record`::

    @register_record
    @dataclass
    class User(Record):
        collection_name = "Users"

        id: Optional[str] = None
        first_name: Optional[str] = None

The type tag defaults to the class name and is what the server sends back in
the ``class`` member of each record envelope.
"""

from __future__ import annotations

from dataclasses import fields, is_dataclass
from typing import Any, ClassVar, Dict, Iterable, List, Mapping, Type, TypeVar

from remote_repository.adapters.api_errors import UnknownType
from remote_repository.domain.encoding import encode_value

R = TypeVar("R", bound="Record")


class Record:
    """Base class for records stored through a remote repository."""

    collection_name: ClassVar[str] = ""
    primary_key: ClassVar[str] = "id"
    type_tag: ClassVar[str] = "Record"

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if "type_tag" not in cls.__dict__:
            cls.type_tag = cls.__name__

    @classmethod
    def from_value(cls: Type[R], value: Mapping[str, Any]) -> R:
        """Build a record from an envelope value, ignoring unknown members."""
        kwargs = {
            f.name: value[f.name] for f in _record_fields(cls) if f.init and f.name in value
        }
        return cls(**kwargs)

    @classmethod
    def ref(cls: Type[R], key: Any) -> R:
        """Reference to a stored record holding only its primary key."""
        return cls(**{cls.primary_key: key})

    @property
    def primary_key_value(self) -> Any:
        return getattr(self, self.primary_key, None)

    @property
    def is_new(self) -> bool:
        return self.primary_key_value is None

    def serialize(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for f in _record_fields(type(self)):
            value = getattr(self, f.name)
            if f.name == self.primary_key and value is None:
                continue
            data[f.name] = encode_value(value)
        return data

    def replace_value(self, value: Mapping[str, Any]) -> None:
        """Overwrite every field in place; members absent from ``value`` become ``None``.

        Raises:
            ValueError: If ``value`` would change the key of a persisted record.
        """
        current = self.primary_key_value
        incoming = value.get(self.primary_key)
        if current is not None and incoming is not None and incoming != current:
            raise ValueError(
                f"{self.type_tag}: primary key cannot change from {current!r} to {incoming!r}"
            )
        for f in _record_fields(type(self)):
            if f.name in value:
                setattr(self, f.name, value[f.name])
            elif f.name != self.primary_key:
                setattr(self, f.name, None)


def _record_fields(cls: type) -> tuple:
    if not is_dataclass(cls):
        raise TypeError(f"{cls.__name__} must be a dataclass")
    return fields(cls)


class RecordRegistry:
    """Maps type tags to record classes."""

    def __init__(self, records: Iterable[Type[Record]] = ()) -> None:
        self._types: Dict[str, Type[Record]] = {}
        for record_cls in records:
            self.register(record_cls)

    def register(self, record_cls: Type[R]) -> Type[R]:
        tag = record_cls.type_tag
        existing = self._types.get(tag)
        if existing is not None and existing is not record_cls:
            raise ValueError(
                f"Type tag '{tag}' already registered for {existing.__qualname__}"
            )
        self._types[tag] = record_cls
        return record_cls

    def lookup(self, tag: str) -> Type[Record]:
        try:
            return self._types[tag]
        except KeyError as exc:
            raise UnknownType(
                f"No record type registered for tag '{tag}'", type_tag=tag
            ) from exc

    def tags(self) -> List[str]:
        return sorted(self._types)

    def __contains__(self, tag: object) -> bool:
        return tag in self._types


default_registry = RecordRegistry()


def register_record(record_cls: Type[R]) -> Type[R]:
    """Class decorator registering ``record_cls`` in :data:`default_registry`."""
    return default_registry.register(record_cls)


__all__ = ["Record", "RecordRegistry", "default_registry", "register_record"]
