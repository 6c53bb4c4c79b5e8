"""Default HTTP transport for the remote repository.

This module wraps ``requests.Session`` behind the async :class:`Transport`
port. Each request runs the blocking session call in a worker thread, so the
awaiting coroutine suspends exactly once per network call.

Dependencies:
    - ``requests`` for network I/O.
    - ``remote_repository.adapters.api_errors.TransportFailure`` for typed
      transport failures.

Call context:
    - Constructed by ``RemoteRepository`` when no transport is injected.
    - Tests pass any object with a requests-style ``request`` method as
      ``session`` (for example a wrapped FastAPI ``TestClient``).
"""

from __future__ import annotations

import asyncio
import re
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import requests
from requests import exceptions as req_exc

from remote_repository.adapters.api_errors import TransportFailure
from remote_repository.domain.ports import HttpRequest, HttpResponse


@dataclass
class HttpConfig:
    """Timeout configuration for transport calls.

    Attributes:
        request_timeout_s: Timeout in seconds used when a request sets none.
    """
    request_timeout_s: float = 10


class RequestsTransport:
    """Async facade over ``requests`` sessions.

    This class is intentionally transport-only. It never retries and never
    interprets status codes; the dispatcher maps them.

    ``requests.Session`` is not thread-safe, so without an injected session
    each worker thread gets its own from ``session_factory``.
    """

    def __init__(
        self,
        session: Any = None,
        cfg: Optional[HttpConfig] = None,
        *,
        session_factory: Callable[[], Any] = requests.Session,
    ) -> None:
        """Create a transport.

        Args:
            session: Requests-style session shared by every call. The caller
                owns its thread safety.
            cfg: Shared timeout settings.
            session_factory: Builds one session per worker thread when
                ``session`` is omitted.
        """
        self.session = session
        self.cfg = cfg or HttpConfig()
        self.session_factory = session_factory
        self._local = threading.local()
        self._lock = threading.Lock()
        self._thread_sessions: List[Any] = []

    async def request(self, request: HttpRequest) -> HttpResponse:
        return await asyncio.to_thread(self.send, request)

    def send(self, request: HttpRequest) -> HttpResponse:
        """Send one request synchronously.

        Raises:
            TransportFailure: On timeouts, connection errors or other
                ``requests`` failures.
        """
        context = f"{request.method} {redact_url(request.url)}"
        kwargs: Dict[str, Any] = {
            "headers": self._headers(request),
            "timeout": request.timeout or self.cfg.request_timeout_s,
        }
        if request.body is not None:
            kwargs["json"] = request.body
        try:
            resp = self._session().request(request.method, request.url, **kwargs)
        except req_exc.Timeout as exc:
            raise TransportFailure(f"Timeout contacting {context}", context=context) from exc
        except req_exc.ConnectionError as exc:
            raise TransportFailure(f"Cannot connect: {context}", context=context) from exc
        except req_exc.RequestException as exc:
            raise TransportFailure(
                f"Request failed ({type(exc).__name__}): {context}", context=context
            ) from exc
        return HttpResponse(status_code=resp.status_code, body=parse_body(resp))

    def close(self) -> None:
        with self._lock:
            sessions, self._thread_sessions = self._thread_sessions, []
            self._local = threading.local()
        if self.session is not None:
            sessions.append(self.session)
        for session in sessions:
            close = getattr(session, "close", None)
            if callable(close):
                close()

    def _session(self) -> Any:
        if self.session is not None:
            return self.session
        session = getattr(self._local, "session", None)
        if session is None:
            session = self.session_factory()
            self._local.session = session
            with self._lock:
                self._thread_sessions.append(session)
        return session

    @staticmethod
    def _headers(request: HttpRequest) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        headers.update(request.headers)
        return headers


def parse_body(resp: Any) -> Any:
    """Parsed JSON body, ``None`` when empty, raw text when not JSON."""
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        return resp.text


_TOKEN_SEGMENT_RE = re.compile(r"(/authorizations/)[^/]+")


def redact_url(url: str) -> str:
    """URL without its query string and with token path segments masked."""
    return _TOKEN_SEGMENT_RE.sub(r"\1***", url.split("?", 1)[0])


__all__ = ["HttpConfig", "RequestsTransport", "parse_body", "redact_url"]
