"""
Key material and its transferable export format.

An exported key is base64 over a JSON Web Key of type ``oct``::

    base64({"kty": "oct", "k": <base64url key bytes>, "kid": <key id>})

The same string is what ``KV_ENCRYPTION_KEY`` holds.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from typing import Optional

import orjson

from .crypto import AES_256_KEY_SIZE, SecureKey
from .errors import InvalidKeyFormatError, InvalidKeyMaterialError


@dataclass(frozen=True)
class KeyMaterial:
    """A symmetric key and the identifier it is registered under."""

    kid: str
    key: SecureKey

    def __post_init__(self) -> None:
        if not isinstance(self.kid, str) or not self.kid:
            raise InvalidKeyMaterialError("Key material requires a non-empty kid")
        if not isinstance(self.key, SecureKey) or len(self.key) != AES_256_KEY_SIZE:
            raise InvalidKeyMaterialError(
                f"Key material for {self.kid!r} must be a {AES_256_KEY_SIZE}-byte key"
            )

    @classmethod
    def from_bytes(cls, kid: str, raw: bytes) -> KeyMaterial:
        return cls(kid=kid, key=SecureKey(raw))


def generate_key(kid: str) -> KeyMaterial:
    """Create a fresh random AES-256 key under ``kid``."""
    return KeyMaterial(kid=kid, key=SecureKey.generate())


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(data: str) -> bytes:
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


def export_key(material: KeyMaterial, kid: Optional[str] = None) -> str:
    """
    Export key material as a base64-encoded JWK.

    Args:
        material: Key to export
        kid: Identifier to write instead of ``material.kid``

    Returns:
        Base64 string accepted by import_key
    """
    jwk = {
        "kty": "oct",
        "k": _b64url_encode(material.key.as_bytes()),
        "kid": kid if kid is not None else material.kid,
    }
    return base64.standard_b64encode(orjson.dumps(jwk)).decode("ascii")


def import_key(exported: str) -> KeyMaterial:
    """
    Import key material produced by export_key.

    Raises:
        InvalidKeyFormatError: If the string is not a valid exported key
    """
    if not isinstance(exported, str):
        raise InvalidKeyFormatError("Exported key must be a string")

    try:
        decoded = base64.b64decode(exported.strip(), validate=True)
        jwk = orjson.loads(decoded)
    except (binascii.Error, ValueError) as e:
        raise InvalidKeyFormatError(f"Exported key is not base64 JSON: {e}") from None

    if not isinstance(jwk, dict) or jwk.get("kty") != "oct":
        raise InvalidKeyFormatError("Exported key must be a JWK of type 'oct'")

    kid = jwk.get("kid")
    k = jwk.get("k")
    if not isinstance(kid, str) or not kid:
        raise InvalidKeyFormatError("Exported key has no kid")
    if not isinstance(k, str):
        raise InvalidKeyFormatError("Exported key has no key bytes")

    try:
        raw = _b64url_decode(k)
    except (binascii.Error, ValueError):
        raise InvalidKeyFormatError("Exported key bytes are not base64url") from None

    if len(raw) != AES_256_KEY_SIZE:
        raise InvalidKeyFormatError(
            f"Invalid key size: expected {AES_256_KEY_SIZE}, got {len(raw)}"
        )

    return KeyMaterial.from_bytes(kid, raw)
