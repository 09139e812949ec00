"""
Pytest configuration and fixtures for key-value client tests.
"""

from __future__ import annotations

from typing import Any, AsyncGenerator, Optional
from urllib.parse import unquote

import httpx
import orjson
import pytest

from kv_client import KeyManager, KeyMaterial, KvClient, connect, generate_key


class FakeKvServer:
    """
    In-memory stand-in for the key-value service behind httpx.MockTransport.

    Records are stored exactly as the client sends them, so tests can inspect
    what went over the wire.
    """

    def __init__(self, base_path: str = "/v1/bucket") -> None:
        self.base_path = base_path
        self.records: dict[tuple[str, ...], dict[str, Any]] = {}
        self.requests: list[httpx.Request] = []
        self._version = 0

    def _next_version(self) -> str:
        self._version += 1
        return f"v{self._version}"

    def _key(self, request: httpx.Request) -> tuple[str, ...]:
        path = request.url.raw_path.decode().split("?")[0]
        rest = path[len(self.base_path):].strip("/")
        return tuple(unquote(p) for p in rest.split("/")) if rest else ()

    def _entry(self, key: tuple[str, ...]) -> dict[str, Any]:
        record = self.records.get(key)
        if record is None:
            return {"key": list(key), "value": None, "version": None, "encrypted": False}
        return {"key": list(key), **record}

    def put_raw(self, key: list[str], value: Any, encrypted: bool) -> None:
        self.records[tuple(key)] = {
            "value": value,
            "version": self._next_version(),
            "encrypted": encrypted,
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = self._key(request)

        if request.method == "POST" and key == ("atomic",):
            return self._commit(orjson.loads(request.content))
        if request.method == "GET" and not key:
            return self._list(request)
        if request.method == "GET":
            return httpx.Response(200, json=self._entry(key))
        if request.method == "PUT":
            body = orjson.loads(request.content)
            self.put_raw(list(key), body["value"], body.get("encrypted", False))
            return httpx.Response(200, json=self._entry(key))
        if request.method == "DELETE":
            if key not in self.records:
                return httpx.Response(404, json={"message": "Key not found"})
            del self.records[key]
            return httpx.Response(204)
        return httpx.Response(405)

    def _list(self, request: httpx.Request) -> httpx.Response:
        params = request.url.params
        prefix = tuple(params.get_list("prefix[]"))
        keys = sorted(k for k in self.records if k[: len(prefix)] == prefix)
        if params.get("reverse") == "true":
            keys.reverse()
        offset = int(params.get("offset", 0))
        keys = keys[offset:]
        if "limit" in params:
            keys = keys[: int(params["limit"])]
        return httpx.Response(200, json=[self._entry(k) for k in keys])

    def _commit(self, payload: dict[str, Any]) -> httpx.Response:
        for check in payload["checks"]:
            record = self.records.get(tuple(check["key"]))
            current = record["version"] if record else None
            if current != check["version"]:
                return httpx.Response(200, json={"ok": False})
        for op in payload["operations"]:
            if op["type"] == "set":
                self.put_raw(op["key"], op["value"], op.get("encrypted", False))
            else:
                self.records.pop(tuple(op["key"]), None)
        return httpx.Response(200, json={"ok": True, "version": f"v{self._version}"})


@pytest.fixture
def fake_server() -> FakeKvServer:
    """Create an empty fake key-value service."""
    return FakeKvServer()


@pytest.fixture
def material() -> KeyMaterial:
    return generate_key("key-1")


@pytest.fixture
def key_manager(material: KeyMaterial) -> KeyManager:
    """Key manager with one active key."""
    km = KeyManager()
    km.add_key(material, active=True)
    return km


def make_client(
    server: FakeKvServer, key_manager: Optional[KeyManager] = None
) -> KvClient:
    return connect(
        bucket="bucket",
        access_token="token",
        endpoint="https://kv.test",
        key_manager=key_manager,
        transport=httpx.MockTransport(server.handler),
    )


@pytest.fixture
async def kv(
    fake_server: FakeKvServer, key_manager: KeyManager
) -> AsyncGenerator[KvClient, None]:
    """Client with encryption enabled, talking to the fake service."""
    client = make_client(fake_server, key_manager)
    yield client
    await client.aclose()


@pytest.fixture
async def plain_kv(fake_server: FakeKvServer) -> AsyncGenerator[KvClient, None]:
    """Client without a key manager, talking to the same fake service."""
    client = make_client(fake_server)
    yield client
    await client.aclose()


@pytest.fixture
async def client_factory(fake_server: FakeKvServer):
    """Build extra clients against the fake service (closed after the test)."""
    clients: list[KvClient] = []

    def factory(key_manager: Optional[KeyManager] = None) -> KvClient:
        client = make_client(fake_server, key_manager)
        clients.append(client)
        return client

    yield factory
    for client in clients:
        await client.aclose()
