"""
Cryptographic primitives for client-side value encryption.

This module provides:
- SecureKey: Key wrapper with redacted repr and best-effort zeroization
- SealedData: Nonce plus ciphertext (with authentication tag)
- AesGcmCipher: AES-256-GCM encryption/decryption operations
"""

from __future__ import annotations

import hmac
import secrets
from dataclasses import dataclass
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import DecryptionFailedError, EncryptionError

# Cryptographic constants
AES_256_KEY_SIZE: int = 32  # 256 bits
NONCE_SIZE: int = 12  # 96 bits (standard for AES-GCM)
TAG_SIZE: int = 16  # 128 bits (authentication tag)


class SecureKey:
    """
    Secure key wrapper with memory cleanup on deletion.

    Uses bytearray internally for mutable zeroing in __del__.
    Python's garbage collector doesn't guarantee immediate cleanup,
    so this is best-effort zeroization.
    """

    __slots__ = ("_bytes",)

    def __init__(self, key_bytes: bytes | bytearray) -> None:
        if not isinstance(key_bytes, (bytes, bytearray)):
            raise EncryptionError("Key must be bytes or bytearray")
        self._bytes = bytearray(key_bytes)

    @classmethod
    def generate(cls) -> SecureKey:
        """Generate a cryptographically secure random 32-byte key."""
        return cls(secrets.token_bytes(AES_256_KEY_SIZE))

    def as_bytes(self) -> bytes:
        """Return key as immutable bytes."""
        return bytes(self._bytes)

    def __len__(self) -> int:
        return len(self._bytes)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SecureKey):
            return NotImplemented
        return hmac.compare_digest(bytes(self._bytes), bytes(other._bytes))

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        """Redacted representation to prevent accidental key disclosure."""
        return "SecureKey([REDACTED])"

    def __del__(self) -> None:
        if hasattr(self, "_bytes"):
            for i in range(len(self._bytes)):
                self._bytes[i] = 0


@dataclass(frozen=True)
class SealedData:
    """
    Output of one AES-GCM encryption.

    The ciphertext includes the 16-byte authentication tag appended by AESGCM.
    """

    nonce: bytes  # 12 bytes
    ciphertext: bytes  # Ciphertext + 16-byte auth tag


class AesGcmCipher:
    """
    AES-256-GCM authenticated encryption.

    A fresh random nonce is drawn for every encryption; nothing about nonce
    state is shared between calls.
    """

    @staticmethod
    def encrypt(
        key: SecureKey,
        plaintext: bytes,
        aad: Optional[bytes] = None,
    ) -> SealedData:
        """
        Encrypt plaintext with AES-256-GCM.

        Args:
            key: 32-byte encryption key
            plaintext: Data to encrypt
            aad: Optional Additional Authenticated Data

        Returns:
            SealedData with nonce and ciphertext (includes auth tag)

        Raises:
            EncryptionError: If key size is invalid
        """
        if len(key) != AES_256_KEY_SIZE:
            raise EncryptionError(
                f"Invalid key size: expected {AES_256_KEY_SIZE}, got {len(key)}"
            )

        nonce = secrets.token_bytes(NONCE_SIZE)
        ciphertext = AESGCM(key.as_bytes()).encrypt(nonce, plaintext, aad)
        return SealedData(nonce=nonce, ciphertext=ciphertext)

    @staticmethod
    def decrypt(
        key: SecureKey,
        sealed: SealedData,
        aad: Optional[bytes] = None,
    ) -> bytes:
        """
        Decrypt ciphertext with AES-256-GCM.

        Args:
            key: 32-byte decryption key
            sealed: SealedData with nonce and ciphertext
            aad: Optional Additional Authenticated Data (must match encryption)

        Returns:
            Decrypted plaintext bytes

        Raises:
            DecryptionFailedError: If sizes are invalid or authentication fails
        """
        if len(key) != AES_256_KEY_SIZE:
            raise DecryptionFailedError("Decryption failed")

        if len(sealed.nonce) != NONCE_SIZE or len(sealed.ciphertext) < TAG_SIZE:
            raise DecryptionFailedError("Decryption failed")

        try:
            return AESGCM(key.as_bytes()).decrypt(sealed.nonce, sealed.ciphertext, aad)
        except InvalidTag:
            # Generic error to prevent oracle attacks
            raise DecryptionFailedError("Decryption failed") from None
