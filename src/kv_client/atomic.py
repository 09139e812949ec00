"""Atomic operations: several checks and writes committed as one transaction."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

from .http import HttpClient
from .schema import AtomicCheck, CommitResult

logger = logging.getLogger(__name__)


class AtomicOperation:
    """
    Builder for an atomic commit.

    Example:
        ```python
        key = ["users", "ghostzero"]
        res = await (
            kv.atomic()
            .check(AtomicCheck(key=key, version=None))  # None: key must not exist
            .set(key, {"name": "GhostZero"})
            .commit()
        )
        assert res.ok
        ```
    """

    def __init__(
        self,
        http: HttpClient,
        encode_value: Callable[[Sequence[str], Any], dict[str, Any]],
    ) -> None:
        self._http = http
        self._encode_value = encode_value
        self._checks: list[AtomicCheck] = []
        self._operations: list[dict[str, Any]] = []

    def check(self, *checks: AtomicCheck) -> AtomicOperation:
        """Require each key to be at the given version when the commit runs."""
        self._checks.extend(checks)
        return self

    def set(self, key: Sequence[str], value: Any) -> AtomicOperation:
        """Set a value; encrypted now if the key manager's policy says so."""
        self._operations.append(
            {"type": "set", "key": list(key), **self._encode_value(key, value)}
        )
        return self

    def delete(self, key: Sequence[str]) -> AtomicOperation:
        """Delete a value."""
        self._operations.append({"type": "delete", "key": list(key)})
        return self

    async def commit(self) -> CommitResult:
        """Send the checks and operations in one request."""
        payload = {
            "checks": [c.to_dict() for c in self._checks],
            "operations": self._operations,
        }
        logger.debug(
            f"Committing atomic operation: {len(self._checks)} checks, "
            f"{len(self._operations)} operations"
        )
        data = await self._http.post("/atomic", json=payload)
        return CommitResult.from_dict(data)
