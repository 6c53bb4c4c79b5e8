"""Repository interface backed by a remote HTTP service."""

from remote_repository.adapters.api_errors import (
    ApiError,
    AuthorizationDenied,
    NotFound,
    TransportFailure,
    UnexpectedStatus,
    UnknownType,
)
from remote_repository.adapters.authorization import (
    header_authorization_serializer,
    query_authorization_serializer,
)
from remote_repository.adapters.remote_repository import RemoteRepository
from remote_repository.config import RepositoryConfig
from remote_repository.domain.records import Record, RecordRegistry, register_record
from remote_repository.utils.logging import configure_root, configure_wire_logging

__all__ = [
    "ApiError",
    "AuthorizationDenied",
    "NotFound",
    "Record",
    "RecordRegistry",
    "RemoteRepository",
    "RepositoryConfig",
    "TransportFailure",
    "UnexpectedStatus",
    "UnknownType",
    "configure_root",
    "configure_wire_logging",
    "header_authorization_serializer",
    "query_authorization_serializer",
    "register_record",
]
