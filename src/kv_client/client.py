"""
Async client for the key-value store.

Values are encrypted client-side when a KeyManager is attached and its policy
selects the key being written. Reads decrypt any record flagged as encrypted,
whatever the current policy, so data written under an older policy or an older
active key stays readable.

Quick Start
-----------
```python
from kv_client import KeyManager, connect, generate_key

keys = KeyManager()
keys.add_key(generate_key("2024-01"), active=True)

async with connect(bucket="...", access_token="...", key_manager=keys) as kv:
    await kv.set(["users", "ghostzero"], {"name": "GhostZero"})
    entry = await kv.get(["users", "ghostzero"])
```
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Mapping, Sequence
from types import TracebackType
from typing import Any, Optional
from urllib.parse import quote

import httpx

from . import envelope
from .atomic import AtomicOperation
from .errors import ConfigError, KvError, NoKeyManagerAvailableError
from .http import HttpClient
from .key_manager import KeyManager
from .schema import Entry

logger = logging.getLogger(__name__)

DEFAULT_REGION = "eu-central-1"
RESERVED_HEADERS = ("authorization",)


def _key_path(key: Sequence[str]) -> str:
    if isinstance(key, str) or not key:
        raise ValueError("Key must be a non-empty sequence of strings")
    return "/" + "/".join(quote(segment, safe="") for segment in key)


def build_base_url(
    bucket: Optional[str],
    endpoint: Optional[str] = None,
    region: str = DEFAULT_REGION,
) -> str:
    """Base URL of a bucket, regional service unless an endpoint is given."""
    if not endpoint:
        return f"https://kv.{region}.kv-db.dev/v1/{bucket}"
    return f"{endpoint.rstrip('/')}/v1/{bucket}"


def _get_headers(
    access_token: str, custom_headers: Optional[Mapping[str, str]]
) -> dict[str, str]:
    custom_headers = custom_headers or {}
    for header in custom_headers:
        if header.lower() in RESERVED_HEADERS:
            raise ConfigError(f"Cannot set reserved header '{header}'")
    return {
        "Content-Type": "application/json",
        "Accept": "application/json",
        **custom_headers,
        "Authorization": f"Bearer {access_token}",
    }


class KvClient:
    """Async key-value client with optional client-side encryption."""

    def __init__(
        self, http: HttpClient, key_manager: Optional[KeyManager] = None
    ) -> None:
        self.http = http
        self._key_manager = key_manager

    @property
    def key_manager(self) -> Optional[KeyManager]:
        return self._key_manager

    async def __aenter__(self) -> KvClient:
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.http.aclose()

    # =========================================================================
    # Encryption hooks
    # =========================================================================

    def _encode_value(self, key: Sequence[str], value: Any) -> dict[str, Any]:
        """Request body for a write of value under key."""
        km = self._key_manager
        material = km.encryption_key_for(key) if km is not None else None
        if material is None:
            return {"value": value, "encrypted": False}
        sealed = envelope.encrypt(material, value)
        return {"value": sealed.to_dict(), "encrypted": True}

    async def _decode_entry(self, raw: Any) -> Entry[Any]:
        """Entry for a record received from the service, decrypted if flagged."""
        if not isinstance(raw, Mapping):
            raise KvError(f"Unexpected record from key-value service: {raw!r}")
        if not raw.get("encrypted"):
            return Entry.from_dict(raw, raw.get("value"))

        if self._key_manager is None:
            raise NoKeyManagerAvailableError(
                f"Record {raw.get('key')!r} is encrypted but no key manager is configured"
            )
        sealed = envelope.EncryptedEnvelope.from_dict(raw.get("value"))
        value = await asyncio.get_running_loop().run_in_executor(
            None, envelope.decrypt, self._key_manager, sealed
        )
        return Entry.from_dict(raw, value)

    # =========================================================================
    # Operations
    # =========================================================================

    async def get(self, key: Sequence[str]) -> Entry[Any]:
        """Get an entry; a missing key yields value None and version None."""
        data = await self.http.get(_key_path(key))
        return await self._decode_entry(data)

    async def get_many(self, keys: Sequence[Sequence[str]]) -> list[Entry[Any]]:
        """Get several entries concurrently, in the order of keys."""
        return list(await asyncio.gather(*(self.get(key) for key in keys)))

    async def list(
        self,
        prefix: Optional[Sequence[str]] = None,
        *,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        reverse: Optional[bool] = None,
    ) -> AsyncIterator[Entry[Any]]:
        """Iterate over entries matching a selector."""
        # one prefix[] parameter per segment
        params: list[tuple[str, str]] = [("prefix[]", segment) for segment in prefix or ()]
        if limit is not None:
            params.append(("limit", str(limit)))
        if offset is not None:
            params.append(("offset", str(offset)))
        if reverse is not None:
            params.append(("reverse", "true" if reverse else "false"))

        data = await self.http.get("", params=params)
        for raw in data or []:
            yield await self._decode_entry(raw)

    async def set(self, key: Sequence[str], value: Any) -> Entry[Any]:
        """Set a value, encrypting it when the key manager's policy applies."""
        body = self._encode_value(key, value)
        data = await self.http.put(_key_path(key), json=body)
        return await self._decode_entry(data)

    async def delete(self, key: Sequence[str]) -> bool:
        """Delete an entry."""
        await self.http.delete(_key_path(key))
        return True

    def atomic(self) -> AtomicOperation:
        """Start an atomic operation."""
        return AtomicOperation(self.http, self._encode_value)


def connect(
    bucket: Optional[str] = None,
    access_token: Optional[str] = None,
    *,
    endpoint: Optional[str] = None,
    region: str = DEFAULT_REGION,
    headers: Optional[Mapping[str, str]] = None,
    key_manager: Optional[KeyManager] = None,
    timeout: Optional[httpx.Timeout | float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> KvClient:
    """
    Connect to a key-value bucket.

    Args:
        bucket: Bucket identifier
        access_token: Bearer token for the bucket (required)
        endpoint: Service root; defaults to the regional service
        region: Region of the regional service
        headers: Extra request headers (Authorization is reserved)
        key_manager: Enables client-side encryption and decryption
        timeout: httpx timeout; defaults to 5s connect / 30s read-write
        transport: Custom httpx transport

    Raises:
        ConfigError: If access_token is missing
    """
    if not access_token:
        raise ConfigError("Access token is required")

    client = httpx.AsyncClient(
        base_url=build_base_url(bucket, endpoint, region),
        transport=transport,
        timeout=(
            httpx.Timeout(timeout)
            if timeout is not None
            else httpx.Timeout(30, connect=5)
        ),
        headers=_get_headers(access_token, headers),
    )
    return KvClient(HttpClient(client), key_manager=key_manager)
