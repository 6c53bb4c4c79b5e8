"""Typed errors raised by the remote repository adapter.

Every unexpected HTTP status is converted by :func:`map_error`; transports
raise :class:`TransportFailure` and the resolver raises :class:`UnknownType`.
Nothing in this package retries: callers decide on retry/backoff from the
``status`` and ``kind`` carried by each error.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from remote_repository.domain.ports import HttpResponse

DEFAULT_ERROR_MESSAGE = "Remote Error"


class ApiError(RuntimeError):
    """Base class for remote repository failures."""

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        kind: Optional[str] = None,
        payload: Any = None,
        context: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.kind = kind
        self.payload = payload
        self.context = context


class UnexpectedStatus(ApiError):
    """HTTP status outside the operation's success set."""

    def __init__(
        self,
        message: str,
        *,
        status: int,
        kind: Optional[str] = None,
        payload: Any = None,
        context: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            status=status,
            kind=kind,
            payload=payload,
            context=context,
        )

    def __str__(self) -> str:
        return build_error_message(self.context, self.status, self.message)


class AuthorizationDenied(UnexpectedStatus):
    """HTTP 403 on an authorized operation."""


class NotFound(UnexpectedStatus):
    """HTTP 404 when the caller did not opt into soft misses."""


class TransportFailure(ApiError):
    """Network level failure reported by the transport."""

    def __init__(
        self,
        message: str,
        *,
        context: Optional[str] = None,
    ) -> None:
        super().__init__(message, context=context)


class UnknownType(ApiError):
    """The server returned a type tag with no registered record class."""

    def __init__(
        self,
        message: str,
        *,
        type_tag: Any = None,
        payload: Any = None,
    ) -> None:
        super().__init__(message, payload=payload)
        self.type_tag = type_tag


_STATUS_ERRORS = {
    403: AuthorizationDenied,
    404: NotFound,
}


def map_error(response: HttpResponse, ctx: Optional[str] = None) -> UnexpectedStatus:
    """Convert a non-success response into a typed error.

    Args:
        response: Response returned by the transport.
        ctx: Short operation label such as ``"get_item[users]"``.

    Returns:
        ``AuthorizationDenied`` for 403, ``NotFound`` for 404 and
        ``UnexpectedStatus`` for anything else.
    """
    status = response.status_code
    payload = response.body
    message = first_string(payload) or DEFAULT_ERROR_MESSAGE
    error_cls = _STATUS_ERRORS.get(status, UnexpectedStatus)
    return error_cls(
        message,
        status=status,
        kind=extract_error_kind(payload),
        payload=payload,
        context=ctx,
    )


def build_error_message(ctx: Optional[str], status: Optional[int], message: str) -> str:
    text = message
    if ctx:
        text = f"{ctx}: {text}"
    if status is not None:
        text = f"{text} (HTTP {status})"
    return text


def extract_error_kind(payload: Any) -> Optional[str]:
    if isinstance(payload, dict):
        for key in ("type", "code", "error_code"):
            value = payload.get(key)
            if value is None:
                continue
            if isinstance(value, str):
                return value
            return str(value)
    return None


def first_string(payload: Any) -> Optional[str]:
    if isinstance(payload, str):
        text = payload.strip()
        return text or None
    if isinstance(payload, dict):
        for key in ("message", "detail", "error", "title"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
            if isinstance(value, (list, dict)):
                candidate = first_string(value)
                if candidate:
                    return candidate
    if isinstance(payload, list):
        for item in payload:
            candidate = first_string(item)
            if candidate:
                return candidate
    return None


__all__ = [
    "ApiError",
    "AuthorizationDenied",
    "DEFAULT_ERROR_MESSAGE",
    "NotFound",
    "TransportFailure",
    "UnexpectedStatus",
    "UnknownType",
    "build_error_message",
    "extract_error_kind",
    "first_string",
    "map_error",
]
