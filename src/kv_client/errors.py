"""
Exception classes for the key-value client.

Every error raised by this package derives from KvError. Encryption failures
are grouped under EncryptionError so callers can tell a missing key apart from
a tampered record or an HTTP failure.
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Optional, cast

import httpx
import orjson

logger = logging.getLogger(__name__)


class KvError(Exception):
    """Base exception for all key-value client operations."""

    pass


class ConfigError(KvError):
    """Client configuration is invalid or incomplete."""

    pass


class SerializationError(KvError):
    """A value could not be serialized for encryption."""

    pass


# =============================================================================
# Encryption Errors
# =============================================================================


class EncryptionError(KvError):
    """Base exception for client-side encryption failures."""

    pass


class InvalidKeyMaterialError(EncryptionError):
    """Key material was registered without a key identifier."""

    pass


class KeyNotFoundError(EncryptionError):
    """The referenced key identifier is not registered."""

    pass


class NoActiveKeyError(EncryptionError):
    """Encryption was requested but no key is active."""

    pass


class NoKeyManagerAvailableError(EncryptionError):
    """An encrypted record was read by a client without a key manager."""

    pass


class DecryptionFailedError(EncryptionError):
    """Authenticated decryption failed or the plaintext is malformed."""

    pass


class InvalidKeyFormatError(EncryptionError):
    """An exported key string could not be imported."""

    pass


# =============================================================================
# HTTP Errors
# =============================================================================


class APIError(httpx.HTTPStatusError, KvError):
    """The key-value service answered with an error status."""

    message: str
    status_code: int
    body: object | None
    request_id: Optional[str]

    def __init__(
        self, message: str, *, response: httpx.Response, body: object | None
    ) -> None:
        httpx.HTTPStatusError.__init__(
            self, message, request=response.request, response=response
        )
        self.message = message
        self.body = body
        self.status_code = response.status_code
        self.request_id = response.headers.get("x-request-id")


class APIStatusError(APIError):
    pass


class BadRequestError(APIStatusError):
    status_code: Literal[400] = 400


class AuthenticationError(APIStatusError):
    status_code: Literal[401] = 401


class PermissionDeniedError(APIStatusError):
    status_code: Literal[403] = 403


class NotFoundError(APIStatusError):
    status_code: Literal[404] = 404


class ConflictError(APIStatusError):
    status_code: Literal[409] = 409


class UnprocessableEntityError(APIStatusError):
    status_code: Literal[422] = 422


class RateLimitError(APIStatusError):
    status_code: Literal[429] = 429


class InternalServerError(APIStatusError):
    pass


_STATUS_ERRORS: dict[int, type[APIStatusError]] = {
    400: BadRequestError,
    401: AuthenticationError,
    403: PermissionDeniedError,
    404: NotFoundError,
    409: ConflictError,
    422: UnprocessableEntityError,
    429: RateLimitError,
}


def _extract_error_message(body: object | None, fallback: str) -> str:
    if isinstance(body, dict):
        b = cast(dict[str, Any], body)
        for key in ("message", "detail", "error"):
            val = b.get(key)
            if isinstance(val, str) and val:
                return val
        # {"error": {"message": "..."}}
        err = b.get("error")
        if isinstance(err, dict):
            for key in ("message", "detail"):
                val = err.get(key)
                if isinstance(val, str) and val:
                    return val
    return fallback


def _decode_error_body(data: bytes) -> object | None:
    if not data:
        return None
    try:
        return orjson.loads(data)
    except orjson.JSONDecodeError:
        return data.decode(errors="replace")


def map_status_error(response: httpx.Response, body: object | None) -> APIStatusError:
    """Build the typed exception for an error response."""
    status = response.status_code
    reason = response.reason_phrase or "HTTP Error"
    message = _extract_error_message(body, f"{status} {reason}")
    if status >= 500:
        return InternalServerError(message, response=response, body=body)
    exc_type = _STATUS_ERRORS.get(status, APIStatusError)
    return exc_type(message, response=response, body=body)


async def araise_for_status_typed(r: httpx.Response) -> None:
    """Raise the typed APIStatusError for a 4xx/5xx response."""
    if r.status_code < 400:
        return
    body = _decode_error_body(await r.aread())
    err = map_status_error(r, body)
    logger.error(f"Error from key-value service: {err.message}")
    raise err
