from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Protocol

Token = str


# ---- Wire model ----
@dataclass
class HttpRequest:
    """One outgoing request, built per call and consumed by a transport."""

    method: str
    url: str
    body: Any = None
    timeout: Optional[float] = None
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class HttpResponse:
    """Status code plus parsed body (``None`` when the body is empty)."""

    status_code: int
    body: Any = None


# ---- Ports (Hexagonal boundaries) ----
class Transport(Protocol):
    """Executes one HTTP request and returns its status and parsed body."""

    async def request(self, request: HttpRequest) -> HttpResponse: ...


class RecordLike(Protocol):
    """What the adapter needs from a record instance."""

    type_tag: str
    collection_name: str

    @property
    def is_new(self) -> bool: ...
    @property
    def primary_key_value(self) -> Any: ...
    def serialize(self) -> Dict[str, Any]: ...
    def replace_value(self, value: Mapping[str, Any]) -> None: ...


# Turns a token into {"query": {...}} and/or {"headers": {...}}.
AuthorizationSerializer = Callable[[Token], Mapping[str, Mapping[str, Any]]]
