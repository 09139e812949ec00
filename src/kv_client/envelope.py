"""
Envelope encryption of stored values.

A value is serialized to canonical JSON (sorted keys), sealed with AES-256-GCM
under the key manager's active key, and carried as an EncryptedEnvelope that
names the key it was sealed with. Decryption looks that key up by ``kid``, so
values written before a rotation stay readable as long as the old key is
still registered.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from typing import Any, Mapping, Union

import orjson

from .crypto import AesGcmCipher, SealedData
from .errors import DecryptionFailedError, SerializationError
from .key_manager import KeyManager
from .keys import KeyMaterial

KvValue = Union[str, int, float, bool, None, list[Any], dict[str, Any]]


@dataclass(frozen=True)
class EncryptedEnvelope:
    """Self-describing ciphertext: base64 ciphertext+tag, nonce, key id."""

    ciphertext: str
    iv: bytes
    kid: str

    def to_dict(self) -> dict[str, str]:
        """Wire form stored as the record's value."""
        return {
            "ciphertext": self.ciphertext,
            "iv": base64.standard_b64encode(self.iv).decode("ascii"),
            "kid": self.kid,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> EncryptedEnvelope:
        """
        Parse the wire form.

        Raises:
            DecryptionFailedError: If a field is missing or malformed
        """
        if not isinstance(data, Mapping):
            raise DecryptionFailedError("Encrypted value is not an envelope")
        ciphertext = data.get("ciphertext")
        iv = data.get("iv")
        kid = data.get("kid")
        if not isinstance(ciphertext, str) or not isinstance(kid, str):
            raise DecryptionFailedError("Encrypted value is not an envelope")
        try:
            if isinstance(iv, str):
                iv_bytes = base64.b64decode(iv, validate=True)
            elif isinstance(iv, list):
                iv_bytes = bytes(iv)
            else:
                raise DecryptionFailedError("Envelope has no iv")
        except (binascii.Error, ValueError, TypeError):
            raise DecryptionFailedError("Envelope iv is malformed") from None
        return cls(ciphertext=ciphertext, iv=iv_bytes, kid=kid)


def serialize_value(value: KvValue) -> bytes:
    """Canonical JSON bytes for a value."""
    try:
        return orjson.dumps(value, option=orjson.OPT_SORT_KEYS)
    except TypeError as e:
        raise SerializationError(f"Value is not JSON-serializable: {e}") from None


def encrypt(material: KeyMaterial, value: KvValue) -> EncryptedEnvelope:
    """
    Encrypt a value under the given key.

    Every call draws a fresh nonce, so encrypting the same value twice gives
    two different envelopes.

    Raises:
        SerializationError: If value is not JSON-serializable
    """
    sealed = AesGcmCipher.encrypt(material.key, serialize_value(value))
    return EncryptedEnvelope(
        ciphertext=base64.standard_b64encode(sealed.ciphertext).decode("ascii"),
        iv=sealed.nonce,
        kid=material.kid,
    )


def decrypt(key_manager: KeyManager, envelope: EncryptedEnvelope) -> KvValue:
    """
    Decrypt an envelope with the key it names.

    Raises:
        KeyNotFoundError: If envelope.kid is not registered
        DecryptionFailedError: If authentication fails or plaintext is not JSON
    """
    material = key_manager.get_key(envelope.kid)

    try:
        ciphertext = base64.b64decode(envelope.ciphertext, validate=True)
    except (binascii.Error, ValueError):
        raise DecryptionFailedError("Decryption failed") from None

    plaintext = AesGcmCipher.decrypt(
        material.key, SealedData(nonce=envelope.iv, ciphertext=ciphertext)
    )

    try:
        return orjson.loads(plaintext)
    except orjson.JSONDecodeError:
        raise DecryptionFailedError("Decrypted value is not valid JSON") from None
