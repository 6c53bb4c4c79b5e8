"""End-to-end tests against an in-process FastAPI service speaking the protocol."""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from fastapi.testclient import TestClient

from remote_repository import (
    AuthorizationDenied,
    NotFound,
    Record,
    RecordRegistry,
    RemoteRepository,
)
from remote_repository.adapters.http_client import RequestsTransport
from remote_repository.domain.encoding import decode_query

TOKEN = "12345678"
REPOSITORY_ID = "a1b2c3d4e5"
ALL_KEYS = ["aaa", "bbb", "ccc", "ddd", "eee"]


@dataclass
class User(Record):
    collection_name = "Users"

    id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


@dataclass
class Superuser(User):
    collection_name = "Superusers"

    superpower: Optional[str] = None


def _seed() -> Dict[str, Dict[str, Any]]:
    return {
        "aaa": {
            "class": "Superuser",
            "value": {"id": "aaa", "first_name": "Manu", "superpower": "telepathy"},
        },
        "bbb": {"class": "User", "value": {"id": "bbb", "first_name": "Vince"}},
    }


def _missing(request: Request) -> Response:
    if decode_query(dict(request.query_params)).get("errorIfMissing") is False:
        return Response(status_code=204)
    return JSONResponse({"message": "Item not found"}, status_code=404)


def build_app(store: Dict[str, Dict[str, Any]]) -> FastAPI:
    app = FastAPI()

    # ---- authorizations ----
    @app.post("/authorizations")
    async def create_authorization(request: Request):
        credentials = await request.json()
        if credentials == {"username": "agent@example.com", "password": "password"}:
            return JSONResponse(TOKEN, status_code=201)
        return Response(status_code=403)

    @app.get("/authorizations/{token}")
    def check_authorization(token: str):
        return Response(status_code=204 if token == TOKEN else 403)

    @app.delete("/authorizations/{token}")
    def delete_authorization(token: str):
        return Response(status_code=204 if token == TOKEN else 403)

    @app.get("/")
    def repository_info():
        return {"repositoryId": REPOSITORY_ID}

    # ---- users (static paths first) ----
    @app.get("/users/count")
    def count_users():
        return len(store)

    @app.get("/users/count-retired")
    def count_retired():
        return 3

    @app.post("/users/get-items")
    async def get_users(request: Request):
        keys = await request.json()
        return JSONResponse([store[key] for key in keys if key in store], status_code=201)

    @app.post("/users/restore")
    async def restore_users(request: Request):
        return JSONResponse({"restored": await request.json()}, status_code=201)

    @app.get("/users")
    def find_users():
        return [store[key] for key in sorted(store)]

    @app.delete("/users")
    def delete_users(request: Request):
        query = decode_query(dict(request.query_params))
        return len([key for key in ALL_KEYS if query["start"] <= key <= query["end"]])

    @app.post("/users")
    async def create_user(request: Request):
        value = dict(await request.json(), id="eee")
        store["eee"] = {"class": "User", "value": value}
        return JSONResponse(store["eee"], status_code=201)

    @app.get("/users/{key}")
    def get_user(key: str, request: Request):
        if key == "007":
            if decode_query(dict(request.query_params)).get("authorization") != TOKEN:
                return JSONResponse({"message": "Authorization required"}, status_code=403)
            value = {"id": "007", "first_name": "James", "last_name": "Bond"}
            return {"class": "User", "value": value}
        if key in store:
            return store[key]
        return _missing(request)

    @app.put("/users/{key}")
    async def replace_user(key: str, request: Request):
        if key not in store:
            return _missing(request)
        store[key] = {"class": store[key]["class"], "value": await request.json()}
        return store[key]

    @app.delete("/users/{key}")
    def delete_user(key: str, request: Request):
        if store.pop(key, None) is None:
            return _missing(request)
        return Response(status_code=204)

    @app.post("/superusers/{key}/archive")
    def archive_superuser(key: str):
        return JSONResponse({"ok": key in store}, status_code=201)

    return app


class _TestClientSession:
    """Requests-style session backed by a FastAPI ``TestClient``."""

    def __init__(self, client: TestClient) -> None:
        self.client = client
        self.calls: List[str] = []

    def request(self, method, url, *, headers=None, timeout=None, json=None):
        self.calls.append(f"{method} {url}")
        return self.client.request(method, url, headers=headers, json=json)

    def close(self) -> None:
        self.client.close()


@pytest.fixture
def store():
    return _seed()


@pytest.fixture
def session(store):
    return _TestClientSession(TestClient(build_app(store)))


@pytest.fixture
def repo(session):
    return RemoteRepository(
        "http://testserver/",
        registry=RecordRegistry([User, Superuser]),
        transport=RequestsTransport(session=session),
    )


def test_authorization_lifecycle(repo: RemoteRepository) -> None:
    async def scenario():
        assert await repo.sign_in_with_credentials(
            {"username": "agent@example.com", "password": "wrong"}
        ) is None
        with pytest.raises(AuthorizationDenied):
            await repo.get_item(User.ref("007"))

        token = await repo.sign_in_with_credentials(
            {"username": "agent@example.com", "password": "password"}
        )
        assert token == TOKEN
        agent = await repo.get_item(User.ref("007"))
        assert (agent.first_name, agent.last_name) == ("James", "Bond")

        await repo.sign_out()
        assert not repo.is_signed_in
        with pytest.raises(AuthorizationDenied):
            await repo.get_item(User.ref("007"))

        assert await repo.sign_in_with_authorization("abcdefgh") is False
        assert await repo.sign_in_with_authorization(TOKEN) is True
        assert (await repo.get_item(User.ref("007"))).id == "007"

    asyncio.run(scenario())


def test_get_item_and_misses(repo: RemoteRepository) -> None:
    async def scenario():
        user = await repo.get_item(User.ref("aaa"))
        assert isinstance(user, Superuser)
        assert user.superpower == "telepathy"

        with pytest.raises(NotFound):
            await repo.get_item(User.ref("xyz"))
        assert await repo.get_item(User.ref("xyz"), error_if_missing=False) is None

    asyncio.run(scenario())


def test_store_and_delete_records(repo: RemoteRepository, store) -> None:
    events: List[str] = []
    repo.on("did_store", lambda item, options: events.append(f"store {item.id}"))
    repo.on("did_delete", lambda item, options: events.append(f"delete {item.id}"))

    async def scenario():
        user = await repo.put_item(User(first_name="Joe"))
        assert user.id == "eee"

        user.last_name = "Dalton"
        await repo.put_item(user)
        assert store["eee"]["value"]["last_name"] == "Dalton"

        assert await repo.delete_item(user) is True
        assert await repo.delete_item(user, error_if_missing=False) is False
        with pytest.raises(NotFound):
            await repo.delete_item(user)

    asyncio.run(scenario())
    assert events == ["store eee", "store eee", "delete eee"]


def test_stored_record_reads_back_unchanged(repo: RemoteRepository) -> None:
    async def scenario():
        created = await repo.put_item(User(first_name="Joe", last_name="Dalton"))
        fetched = await repo.get_item(User.ref(created.id))
        assert type(fetched) is User
        assert asdict(fetched) == asdict(created)

        created.first_name = "Averell"
        await repo.put_item(created)
        refetched = await repo.get_item(User.ref(created.id))
        assert asdict(refetched) == {"id": "eee", "first_name": "Averell", "last_name": "Dalton"}

    asyncio.run(scenario())


def test_collection_operations(repo: RemoteRepository, session: _TestClientSession) -> None:
    async def scenario():
        records = await repo.get_items([User.ref("aaa"), User.ref("bbb")])
        assert [(type(r), r.id) for r in records] == [(Superuser, "aaa"), (User, "bbb")]

        found = await repo.find_items(User)
        assert [r.first_name for r in found] == ["Manu", "Vince"]

        assert await repo.count_items(User) == 2
        assert await repo.find_and_delete_items(User, {"start": "bbb", "end": "ddd"}) == 3

    asyncio.run(scenario())
    assert session.calls[-1] == "DELETE http://testserver/users?end=%22ddd%22&start=%22bbb%22"


def test_custom_operations_and_repository_id(repo: RemoteRepository) -> None:
    async def scenario():
        assert await repo.call(User, "countRetired") == 3
        assert await repo.call(Superuser.ref("aaa"), "archive", body={}) == {"ok": True}
        assert await repo.call("Users", "restore", body=["aaa"]) == {"restored": ["aaa"]}
        assert await repo.get_repository_id() == REPOSITORY_ID

    asyncio.run(scenario())
