"""
Records exchanged with the key-value service.

- Entry: A stored record as returned by get/list/set
- AtomicCheck: Version precondition for an atomic commit
- CommitResult: Outcome of an atomic commit
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, Mapping, Optional, TypeVar, Union

T = TypeVar("T")

Version = Union[str, int, None]


@dataclass
class Entry(Generic[T]):
    """
    A record in the key-value store.

    ``encrypted`` reports whether the stored value was encrypted; ``value`` is
    always the plaintext.
    """

    key: list[str]
    value: T
    version: Version = None
    encrypted: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], value: Any) -> Entry[Any]:
        return cls(
            key=list(data.get("key") or []),
            value=value,
            version=data.get("version"),
            encrypted=bool(data.get("encrypted", False)),
        )


@dataclass
class AtomicCheck:
    """
    Version precondition for an atomic commit.

    A ``None`` version means the key must not exist.
    """

    key: list[str]
    version: Version = None

    def to_dict(self) -> dict[str, Any]:
        return {"key": list(self.key), "version": self.version}


@dataclass
class CommitResult:
    """Outcome of an atomic commit."""

    ok: bool
    version: Version = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> CommitResult:
        data = dict(data or {})
        return cls(ok=bool(data.get("ok", False)), version=data.get("version"), raw=data)
