from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Union

from remote_repository.adapters.api_errors import UnexpectedStatus, map_error
from remote_repository.adapters.authorization import (
    AuthorizationManager,
    Session,
    query_authorization_serializer,
)
from remote_repository.adapters.http_client import HttpConfig, RequestsTransport, redact_url
from remote_repository.config import DEFAULT_CALL_TIMEOUT_S, RepositoryConfig
from remote_repository.domain.encoding import encode_value
from remote_repository.domain.ports import (
    AuthorizationSerializer,
    HttpRequest,
    HttpResponse,
    RecordLike,
    Token,
    Transport,
)
from remote_repository.domain.records import Record, RecordRegistry
from remote_repository.domain.resolver import PolymorphicResolver
from remote_repository.domain.urls import build_url, collection_name_of

CollectionRef = Union[str, type, RecordLike]
Listener = Callable[[RecordLike, Optional[Mapping[str, Any]]], Optional[Awaitable[None]]]

DID_STORE = "did_store"
DID_DELETE = "did_delete"


class RemoteRepository:
    """Repository whose records live behind a remote HTTP service.

    Endpoints (base ``B``, collection ``C`` in kebab-case, key ``K``):
      - GET    {B}/{C}/{K}?{options}          -> 200 envelope | 204 missing
      - POST   {B}/{C}                        body: record -> 201 envelope
      - PUT    {B}/{C}/{K}                    body: record -> 200 envelope
      - DELETE {B}/{C}/{K}                    -> 200 bool | 204
      - POST   {B}/{C}/get-items              body: [keys] -> 201 [envelope]
      - GET    {B}/{C}?{options}              -> 200 [envelope]
      - DELETE {B}/{C}?{options}              -> 200 count
      - GET    {B}/{C}/count?{options}        -> 200 count
      - GET|POST {B}/{C}[/{K}]/{action}       -> 200 | 201 | 204

    Notes:
      - Envelopes are ``{"class": tag, "value": {...}}``; the tag picks the
        local record type.
      - Each operation awaits the transport exactly once and never retries.
      - No transactions: ``transaction`` only runs the callback.
    """

    EVENTS = (DID_STORE, DID_DELETE)

    def __init__(
        self,
        base_url: str,
        *,
        registry: Optional[RecordRegistry] = None,
        transport: Optional[Transport] = None,
        serializer: Optional[AuthorizationSerializer] = None,
        request_timeout_s: float = 10,
        call_timeout_s: float = DEFAULT_CALL_TIMEOUT_S,
    ) -> None:
        if not base_url:
            raise ValueError("RemoteRepository requires a base URL")
        self._log = logging.getLogger(__name__)
        self.base_url = base_url
        self.cfg = HttpConfig(request_timeout_s=request_timeout_s)
        self.call_timeout_s = call_timeout_s
        self._owns_transport = transport is None
        self.transport: Transport = (
            transport if transport is not None else RequestsTransport(cfg=self.cfg)
        )
        self.resolver = PolymorphicResolver(registry)
        self.auth = AuthorizationManager(
            Session(base_url), self.transport, serializer=serializer
        )
        self._listeners: Dict[str, List[Listener]] = {event: [] for event in self.EVENTS}
        self._repository_id: Any = None

    @classmethod
    def from_config(
        cls,
        config: RepositoryConfig,
        *,
        registry: Optional[RecordRegistry] = None,
        transport: Optional[Transport] = None,
        serializer: Optional[AuthorizationSerializer] = None,
    ) -> "RemoteRepository":
        return cls(
            config.base_url,
            registry=registry,
            transport=transport,
            serializer=serializer or query_authorization_serializer(config.authorization_param),
            request_timeout_s=config.request_timeout_s,
            call_timeout_s=config.call_timeout_s,
        )

    async def __aenter__(self) -> "RemoteRepository":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        """Close the HTTP session of the default transport."""
        if self._owns_transport:
            self.transport.close()  # type: ignore[attr-defined]

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------
    @property
    def authorization(self) -> Optional[Token]:
        return self.auth.authorization

    @authorization.setter
    def authorization(self, token: Optional[Token]) -> None:
        self.auth.authorization = token

    @property
    def is_signed_in(self) -> bool:
        return self.auth.is_signed_in

    async def sign_in_with_credentials(self, credentials: Mapping[str, Any]) -> Optional[Token]:
        return await self.auth.sign_in_with_credentials(credentials)

    async def sign_in_with_authorization(self, token: Token) -> bool:
        return await self.auth.sign_in_with_authorization(token)

    async def sign_out(self) -> None:
        await self.auth.sign_out()

    # ------------------------------------------------------------------
    # Repository
    # ------------------------------------------------------------------
    async def get_repository_id(self) -> Any:
        if self._repository_id is not None:
            return self._repository_id
        ctx = "get_repository_id"
        resp = await self._send("GET", build_url(self.base_url), ctx)
        if resp.status_code != 200:
            raise map_error(resp, ctx)
        body = resp.body
        if not isinstance(body, Mapping) or body.get("repositoryId") is None:
            raise UnexpectedStatus(
                "Response payload missing repositoryId",
                status=resp.status_code,
                payload=body,
                context=ctx,
            )
        self._repository_id = body["repositoryId"]
        return self._repository_id

    async def transaction(self, fn: Callable[["RemoteRepository"], Any]) -> Any:
        """Run ``fn(self)``; remote transactions are not supported, nothing is rolled back."""
        result = fn(self)
        if inspect.isawaitable(result):
            result = await result
        return result

    @property
    def is_inside_transaction(self) -> bool:
        return False

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    async def get_item(
        self,
        item: RecordLike,
        *,
        error_if_missing: bool = True,
        options: Optional[Mapping[str, Any]] = None,
    ) -> Optional[RecordLike]:
        """Fetch ``item`` by key; returns ``None`` on a soft miss.

        The same instance is updated and returned when the server reports the
        requested type; otherwise a new record of the reported type is built.

        Raises:
            NotFound: If the record is missing and ``error_if_missing`` is true.
        """
        ctx = f"get_item[{item.collection_name}]"
        _require_key(item, ctx)
        query = _missing_flag(options, error_if_missing)
        url = build_url(self.base_url, item, item, None, query)
        resp = await self._send("GET", url, ctx)
        if resp.status_code == 204 or (resp.status_code == 404 and not error_if_missing):
            self._log.debug("%s: %r not found.", ctx, item.primary_key_value)
            return None
        if resp.status_code != 200:
            raise map_error(resp, ctx)
        return self.resolver.resolve(resp.body, requested=item)  # type: ignore[arg-type]

    async def put_item(
        self, item: RecordLike, options: Optional[Mapping[str, Any]] = None
    ) -> RecordLike:
        """Create (POST) a new record or replace (PUT) a stored one, in place."""
        ctx = f"put_item[{item.collection_name}]"
        is_new = item.is_new
        url = build_url(self.base_url, item, None if is_new else item, None, options)
        resp = await self._send(
            "POST" if is_new else "PUT", url, ctx, body=item.serialize()
        )
        if resp.status_code != (201 if is_new else 200):
            raise map_error(resp, ctx)
        value = resp.body.get("value") if isinstance(resp.body, Mapping) else None
        if not isinstance(value, Mapping):
            raise UnexpectedStatus(
                "Response payload missing stored value",
                status=resp.status_code,
                payload=resp.body,
                context=ctx,
            )
        item.replace_value(value)
        await self._emit(DID_STORE, item, options)
        return item

    async def delete_item(
        self,
        item: RecordLike,
        *,
        error_if_missing: bool = True,
        options: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """Delete ``item``; returns whether the server removed something.

        A 200 body (boolean or count) decides the result. An empty 204 counts
        as a deletion unless the caller asked for soft misses, in which case
        the server uses 204 for "nothing to delete".
        """
        ctx = f"delete_item[{item.collection_name}]"
        _require_key(item, ctx)
        query = _missing_flag(options, error_if_missing)
        url = build_url(self.base_url, item, item, None, query)
        resp = await self._send("DELETE", url, ctx)
        if resp.status_code == 200:
            deleted = bool(resp.body)
        elif resp.status_code == 204:
            deleted = error_if_missing
        elif resp.status_code == 404 and not error_if_missing:
            deleted = False
        else:
            raise map_error(resp, ctx)
        if deleted:
            await self._emit(DID_DELETE, item, options)
        return deleted

    async def get_items(
        self, items: Iterable[RecordLike], options: Optional[Mapping[str, Any]] = None
    ) -> List[Record]:
        """Fetch several stored records of one collection in a single request."""
        refs = list(items)
        if not refs:
            return []
        collection = refs[0].collection_name
        if any(ref.collection_name != collection for ref in refs):
            raise ValueError("get_items requires records from a single collection")
        keys = [ref.primary_key_value for ref in refs]
        if any(key is None for key in keys):
            raise ValueError("get_items requires stored records (primary key missing)")
        ctx = f"get_items[{collection}]"
        url = build_url(self.base_url, collection, None, "getItems", options)
        resp = await self._send("POST", url, ctx, body=encode_value(keys))
        if resp.status_code != 201:
            raise map_error(resp, ctx)
        return self.resolver.resolve_many(resp.body)

    async def find_items(
        self, collection: CollectionRef, options: Optional[Mapping[str, Any]] = None
    ) -> List[Record]:
        ctx = f"find_items[{collection_name_of(collection)}]"
        url = build_url(self.base_url, collection, None, None, options)
        resp = await self._send("GET", url, ctx)
        if resp.status_code != 200:
            raise map_error(resp, ctx)
        return self.resolver.resolve_many(resp.body)

    async def count_items(
        self, collection: CollectionRef, options: Optional[Mapping[str, Any]] = None
    ) -> Any:
        ctx = f"count_items[{collection_name_of(collection)}]"
        url = build_url(self.base_url, collection, None, "count", options)
        resp = await self._send("GET", url, ctx)
        if resp.status_code != 200:
            raise map_error(resp, ctx)
        return resp.body

    async def for_each_items(self, collection: CollectionRef, options: Any, fn: Any) -> None:
        raise NotImplementedError("for_each_items is not supported by remote repositories")

    async def find_and_delete_items(
        self, collection: CollectionRef, options: Optional[Mapping[str, Any]] = None
    ) -> Any:
        """Delete every record matching ``options``; returns the server's count."""
        ctx = f"find_and_delete_items[{collection_name_of(collection)}]"
        url = build_url(self.base_url, collection, None, None, options)
        resp = await self._send("DELETE", url, ctx, timeout=self.call_timeout_s)
        if resp.status_code != 200:
            raise map_error(resp, ctx)
        return resp.body

    async def call(
        self,
        target: CollectionRef,
        action: str,
        options: Optional[Mapping[str, Any]] = None,
        body: Any = None,
    ) -> Any:
        """Invoke a custom server operation on a collection or a record.

        GET without a body (expects 200), POST with one (expects 201); 204
        returns ``None``.
        """
        key = None if isinstance(target, (str, type)) else target
        ctx = f"call[{collection_name_of(target)}.{action}]"
        url = build_url(self.base_url, target, key, action, options)
        has_body = body is not None
        resp = await self._send(
            "POST" if has_body else "GET",
            url,
            ctx,
            body=encode_value(body) if has_body else None,
            timeout=self.call_timeout_s,
        )
        if resp.status_code == (201 if has_body else 200):
            return resp.body
        if resp.status_code == 204:
            return None
        raise map_error(resp, ctx)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------
    def on(self, event: str, listener: Listener) -> None:
        self._event_listeners(event).append(listener)

    def off(self, event: str, listener: Listener) -> None:
        listeners = self._event_listeners(event)
        if listener in listeners:
            listeners.remove(listener)

    async def _emit(
        self, event: str, item: RecordLike, options: Optional[Mapping[str, Any]]
    ) -> None:
        for listener in list(self._listeners[event]):
            result = listener(item, options)
            if inspect.isawaitable(result):
                await result

    def _event_listeners(self, event: str) -> List[Listener]:
        try:
            return self._listeners[event]
        except KeyError as exc:
            raise ValueError(f"Unknown repository event '{event}'") from exc

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    async def _send(
        self,
        method: str,
        url: str,
        ctx: str,
        *,
        body: Any = None,
        timeout: Optional[float] = None,
    ) -> HttpResponse:
        request = HttpRequest(method=method, url=url, body=body, timeout=timeout)
        self.auth.write_authorization(request)
        if self._log.isEnabledFor(logging.DEBUG):
            self._log.debug("%s %s (%s)", method, redact_url(url), ctx)
        return await self.transport.request(request)


def _require_key(item: RecordLike, ctx: str) -> None:
    if item.primary_key_value is None:
        raise ValueError(f"{ctx}: record has no primary key")


def _missing_flag(
    options: Optional[Mapping[str, Any]], error_if_missing: bool
) -> Optional[Mapping[str, Any]]:
    if error_if_missing:
        return options
    query = dict(options or {})
    query["errorIfMissing"] = False
    return query


__all__ = ["DID_DELETE", "DID_STORE", "RemoteRepository"]
