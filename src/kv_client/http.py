"""HTTP plumbing for the async key-value client."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import Any, Optional, Union

import httpx
import orjson

from .errors import araise_for_status_typed

logger = logging.getLogger(__name__)

QueryParams = Union[Mapping[str, str], Sequence[tuple[str, str]]]


class HttpClient:
    """Send JSON requests and raise typed errors for error statuses.

    Attributes:
        client (httpx.AsyncClient): Underlying HTTPX async client.
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self.client = client

    async def get(self, path: str, *, params: Optional[QueryParams] = None) -> Any:
        """Send a `GET` request."""
        logger.debug(f"GET {path}")
        r = await self.client.get(path, params=params)
        await araise_for_status_typed(r)
        return await _adecode_json(r)

    async def put(self, path: str, *, json: Any) -> Any:
        """Send a `PUT` request."""
        logger.debug(f"PUT {path}")
        headers, content = await _aencode_json(json)
        r = await self.client.put(path, headers=headers, content=content)
        await araise_for_status_typed(r)
        return await _adecode_json(r)

    async def post(self, path: str, *, json: Any) -> Any:
        """Send a `POST` request."""
        logger.debug(f"POST {path}")
        headers, content = await _aencode_json(json)
        r = await self.client.post(path, headers=headers, content=content)
        await araise_for_status_typed(r)
        return await _adecode_json(r)

    async def delete(self, path: str) -> None:
        """Send a `DELETE` request."""
        logger.debug(f"DELETE {path}")
        r = await self.client.delete(path)
        await araise_for_status_typed(r)

    async def aclose(self) -> None:
        await self.client.aclose()


async def _aencode_json(json: Any) -> tuple[dict[str, str], bytes]:
    body = await asyncio.get_running_loop().run_in_executor(None, orjson.dumps, json)
    headers = {"Content-Length": str(len(body)), "Content-Type": "application/json"}
    return headers, body


async def _adecode_json(r: httpx.Response) -> Any:
    body = await r.aread()
    return (
        await asyncio.get_running_loop().run_in_executor(None, orjson.loads, body)
        if body
        else None
    )
