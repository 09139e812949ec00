"""
Key manager for client-side encryption.

This module provides:
- key_matches: Structured key vs. pattern matching with a one-segment wildcard
- KeyManager: Registry of keys, the single active key, and the only/except
  pattern lists that decide which store keys are encrypted

Rotation model:
- Any number of keys may be registered; all of them can decrypt
- Exactly zero or one key is active; new values are encrypted with it
- The most recent add_key(..., active=True) wins
- Removing the active key stops encryption until another key is activated
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Sequence
from types import MappingProxyType
from typing import Mapping, Optional

from .errors import InvalidKeyMaterialError, KeyNotFoundError, NoActiveKeyError
from .keys import KeyMaterial

logger = logging.getLogger(__name__)

WILDCARD = "*"

KvKey = Sequence[str]
KeyPattern = Sequence[str]


def key_matches(pattern: KeyPattern, key: KvKey) -> bool:
    """
    Check a structured key against a pattern.

    Lengths must be equal. A ``*`` segment matches any single segment at that
    position; every other segment must match exactly.
    """
    if len(pattern) != len(key):
        return False
    return all(p == WILDCARD or p == k for p, k in zip(pattern, key))


class KeyManager:
    """
    Registry of encryption keys and the policy for which keys get encrypted.

    Reads are lock-free against an immutable snapshot of (keys, active kid);
    mutations build a new snapshot under a lock and swap it in one assignment,
    so readers never see an active kid without its key or the reverse.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state: tuple[Mapping[str, KeyMaterial], Optional[str]] = (
            MappingProxyType({}),
            None,
        )
        self._only: tuple[tuple[str, ...], ...] = ()
        self._except: tuple[tuple[str, ...], ...] = ()

    # =========================================================================
    # Key registry
    # =========================================================================

    def add_key(self, material: KeyMaterial, active: bool = False) -> None:
        """
        Register key material.

        Args:
            material: Key to register
            active: Make this the key used for new encryptions

        Raises:
            InvalidKeyMaterialError: If material has no kid
        """
        kid = getattr(material, "kid", None)
        if not isinstance(kid, str) or not kid:
            raise InvalidKeyMaterialError("Key material requires a non-empty kid")

        with self._lock:
            keys, active_kid = self._state
            updated = dict(keys)
            updated[kid] = material
            if active:
                active_kid = kid
            self._state = (MappingProxyType(updated), active_kid)

        logger.info(f"Registered encryption key {kid!r} (active={active})")

    def get_key(self, kid: str) -> KeyMaterial:
        """
        Look up a key by identifier.

        Raises:
            KeyNotFoundError: If no key is registered under kid
        """
        keys, _ = self._state
        material = keys.get(kid)
        if material is None:
            raise KeyNotFoundError(f"Encryption key {kid!r} is not registered")
        return material

    def get_active_key(self) -> KeyMaterial:
        """
        Return the key used for new encryptions.

        Raises:
            NoActiveKeyError: If no key is active or it was removed
        """
        keys, active_kid = self._state
        if active_kid is None or active_kid not in keys:
            raise NoActiveKeyError("No active encryption key")
        return keys[active_kid]

    def remove_key(self, kid: str) -> None:
        """Remove a key. Removing the active key leaves no key active."""
        with self._lock:
            keys, active_kid = self._state
            if kid not in keys:
                return
            updated = {k: v for k, v in keys.items() if k != kid}
            if active_kid == kid:
                active_kid = None
                logger.info(f"Removed active encryption key {kid!r}; encryption disabled")
            self._state = (MappingProxyType(updated), active_kid)

        logger.info(f"Removed encryption key {kid!r}")

    def is_available(self) -> bool:
        """True when at least one key is registered and an active key is set."""
        keys, active_kid = self._state
        return bool(keys) and active_kid is not None and active_kid in keys

    @property
    def active_kid(self) -> Optional[str]:
        return self._state[1]

    @property
    def kids(self) -> list[str]:
        return list(self._state[0])

    # =========================================================================
    # Encryption policy
    # =========================================================================

    def add_only_patterns(self, patterns: Iterable[KeyPattern]) -> None:
        """Restrict encryption to keys matching one of these patterns."""
        new = tuple(tuple(p) for p in patterns)
        with self._lock:
            self._only = self._only + new

    def add_except_patterns(self, patterns: Iterable[KeyPattern]) -> None:
        """Never encrypt keys matching one of these patterns."""
        new = tuple(tuple(p) for p in patterns)
        with self._lock:
            self._except = self._except + new

    @property
    def only_patterns(self) -> list[tuple[str, ...]]:
        return list(self._only)

    @property
    def except_patterns(self) -> list[tuple[str, ...]]:
        return list(self._except)

    def encryption_key_for(self, key: KvKey) -> Optional[KeyMaterial]:
        """
        Key to encrypt a value written under key with, or None for plaintext.

        Policy and active key come from one snapshot, so a concurrent
        remove_key yields either the old key or None, never an error.

        Order:
        1. No usable active key -> None
        2. Non-empty only-list and no match -> None
        3. Any except-pattern match -> None
        4. Otherwise the active key
        """
        keys, active_kid = self._state
        material = keys.get(active_kid) if active_kid is not None else None
        if material is None:
            return None

        only = self._only
        if only and not any(key_matches(p, key) for p in only):
            return None

        if any(key_matches(p, key) for p in self._except):
            return None
        return material

    def should_encrypt(self, key: KvKey) -> bool:
        """Whether a value written under key must be encrypted."""
        return self.encryption_key_for(key) is not None
