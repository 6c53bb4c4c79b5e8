"""Domain package exports for records, URLs and wire encoding."""

from .encoding import encode_key, encode_query, encode_value
from .ports import HttpRequest, HttpResponse, Transport
from .records import Record, RecordRegistry, default_registry, register_record
from .resolver import PolymorphicResolver
from .urls import build_url, kebab_case

__all__ = [
    "HttpRequest",
    "HttpResponse",
    "PolymorphicResolver",
    "Record",
    "RecordRegistry",
    "Transport",
    "build_url",
    "default_registry",
    "encode_key",
    "encode_query",
    "encode_value",
    "kebab_case",
    "register_record",
]
