"""Authorization token lifecycle for the remote repository.

The token is opaque: it is only forwarded to the server, never parsed and
never logged. Requests snapshot the token once while they are built, so a
request already in flight keeps its token across a concurrent ``sign_out``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Tuple
from urllib.parse import parse_qsl, urlsplit, urlunsplit

from remote_repository.adapters.api_errors import UnexpectedStatus, map_error
from remote_repository.domain.encoding import encode_query_pairs, format_query
from remote_repository.domain.ports import (
    AuthorizationSerializer,
    HttpRequest,
    Token,
    Transport,
)
from remote_repository.domain.urls import build_url

AUTHORIZATIONS = "authorizations"


def query_authorization_serializer(param: str = "authorization") -> AuthorizationSerializer:
    """Send the token as one query parameter (the server's default)."""

    def serialize(token: Token) -> Mapping[str, Mapping[str, Any]]:
        return {"query": {param: token}}

    return serialize


def header_authorization_serializer(header: str = "X-API-Key") -> AuthorizationSerializer:
    """Send the token as a request header."""

    def serialize(token: Token) -> Mapping[str, Mapping[str, Any]]:
        return {"headers": {header: token}}

    return serialize


@dataclass
class Session:
    """Base URL plus the current token (``None`` while signed out)."""

    base_url: str
    token: Optional[Token] = None

    def get_token(self) -> Optional[Token]:
        return self.token

    def set_token(self, token: Optional[Token]) -> None:
        self.token = token or None

    @property
    def is_signed_in(self) -> bool:
        return bool(self.token)


class AuthorizationManager:
    """Sign-in/sign-out state machine and request signing."""

    def __init__(
        self,
        session: Session,
        transport: Transport,
        *,
        serializer: Optional[AuthorizationSerializer] = None,
    ) -> None:
        self._log = logging.getLogger(__name__)
        self.session = session
        self.transport = transport
        self.serializer = serializer or query_authorization_serializer()

    @property
    def is_signed_in(self) -> bool:
        return self.session.is_signed_in

    @property
    def authorization(self) -> Optional[Token]:
        return self.session.get_token()

    @authorization.setter
    def authorization(self, token: Optional[Token]) -> None:
        self.session.set_token(token)

    async def sign_in_with_credentials(self, credentials: Mapping[str, Any]) -> Optional[Token]:
        """Create an authorization; ``None`` when the server rejects the credentials."""
        if not credentials:
            raise ValueError("credentials are missing")
        ctx = "sign_in_with_credentials"
        url = build_url(self.session.base_url, AUTHORIZATIONS)
        resp = await self.transport.request(
            HttpRequest(method="POST", url=url, body=dict(credentials))
        )
        if resp.status_code == 403:
            self._log.info("Sign-in rejected by %s.", url)
            return None
        if resp.status_code != 201:
            raise map_error(resp, ctx)
        token = resp.body
        if not token:
            raise UnexpectedStatus(
                "Authorization missing from response", status=resp.status_code, context=ctx
            )
        self.session.set_token(token)
        self._log.info("Signed in to %s.", self.session.base_url)
        return token

    async def sign_in_with_authorization(self, token: Token) -> bool:
        """Adopt an existing token after the server confirms it is valid."""
        if not token:
            raise ValueError("authorization is missing")
        url = build_url(self.session.base_url, AUTHORIZATIONS, token)
        resp = await self.transport.request(HttpRequest(method="GET", url=url))
        if resp.status_code == 403:
            self._log.info("Stored authorization rejected by %s.", self.session.base_url)
            return False
        if resp.status_code != 204:
            raise map_error(resp, "sign_in_with_authorization")
        self.session.set_token(token)
        self._log.info("Signed in to %s with stored authorization.", self.session.base_url)
        return True

    async def sign_out(self) -> None:
        """Revoke the current token; a no-op while signed out."""
        token = self.session.get_token()
        if not token:
            return
        url = build_url(self.session.base_url, AUTHORIZATIONS, token)
        # Signed out locally before the round trip completes.
        self.session.set_token(None)
        resp = await self.transport.request(HttpRequest(method="DELETE", url=url))
        self._log.info("Signed out of %s.", self.session.base_url)
        if resp.status_code != 204:
            raise map_error(resp, "sign_out")

    def write_authorization(self, request: HttpRequest) -> None:
        """Inject the current token into ``request`` through the serializer."""
        token = self.session.get_token()
        if not token:
            return
        for key, values in self.serializer(token).items():
            if key == "query":
                request.url = merge_query(request.url, values)
            elif key == "headers":
                request.headers.update({str(name): str(value) for name, value in values.items()})
            else:
                raise ValueError(f"invalid serialized authorization key '{key}'")


def merge_query(url: str, params: Mapping[str, Any]) -> str:
    """Merge encoded ``params`` into the query of ``url``, overriding equal keys."""
    parts = urlsplit(url)
    overrides = encode_query_pairs(params)
    replaced = {key for key, _ in overrides}
    pairs: List[Tuple[str, str]] = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key not in replaced
    ]
    pairs.extend(overrides)
    return urlunsplit(parts._replace(query=format_query(pairs)))


__all__ = [
    "AuthorizationManager",
    "Session",
    "header_authorization_serializer",
    "merge_query",
    "query_authorization_serializer",
]
