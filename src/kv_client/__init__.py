"""
Key-Value Client

An async client for the kv-db key-value store with optional client-side
envelope encryption and key rotation.

Quick Start
-----------
```python
import asyncio
from kv_client import KeyManager, connect, generate_key, export_key

async def main():
    keys = KeyManager()
    keys.add_key(generate_key("2024-01"), active=True)
    keys.add_except_patterns([["public", "*"]])

    async with connect(
        bucket="9d1cb4c7-c683-4fa9-bc5f-13f5ad1ba745",
        access_token="9b9634a1-1655-4baf-bdf5-c04feffc68bd",
        key_manager=keys,
    ) as kv:
        await kv.set(["users", "ghostzero"], {"name": "GhostZero"})  # encrypted
        await kv.set(["public", "motd"], "hello")  # plaintext

        entry = await kv.get(["users", "ghostzero"])
        print(entry.value["name"], entry.encrypted)  # GhostZero True

asyncio.run(main())
```

Key Features
------------
- **AES-256-GCM**: Authenticated encryption with a fresh nonce per value
- **Key Rotation**: Any registered key decrypts; the active key encrypts
- **Selective Encryption**: only/except key patterns with a one-segment wildcard
- **Atomic Operations**: Version checks plus writes in one commit
- **Portable Keys**: JWK-based export format, loadable from KV_ENCRYPTION_KEY

Modules
-------
- `crypto`: AES-256-GCM primitives
- `keys`: Key material, generation, export/import
- `key_manager`: Key registry and encryption policy
- `envelope`: Value encryption/decryption envelopes
- `client`: Async key-value client
- `atomic`: Atomic operation builder
- `config`: Environment configuration
- `errors`: Exception classes
"""

__version__ = "0.1.0"

# ============================================================================
# Crypto Exports
# ============================================================================

from .crypto import (
    AES_256_KEY_SIZE,
    NONCE_SIZE,
    TAG_SIZE,
    AesGcmCipher,
    SealedData,
    SecureKey,
)

# ============================================================================
# Error Exports
# ============================================================================

from .errors import (
    APIError,
    APIStatusError,
    AuthenticationError,
    BadRequestError,
    ConfigError,
    ConflictError,
    DecryptionFailedError,
    EncryptionError,
    InternalServerError,
    InvalidKeyFormatError,
    InvalidKeyMaterialError,
    KeyNotFoundError,
    KvError,
    NoActiveKeyError,
    NoKeyManagerAvailableError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    SerializationError,
    UnprocessableEntityError,
)

# ============================================================================
# Key Exports
# ============================================================================

from .keys import (
    KeyMaterial,
    export_key,
    generate_key,
    import_key,
)

from .key_manager import (
    WILDCARD,
    KeyManager,
    key_matches,
)

# ============================================================================
# Envelope Exports
# ============================================================================

from .envelope import (
    EncryptedEnvelope,
    decrypt,
    encrypt,
)

# ============================================================================
# Client Exports (Primary API)
# ============================================================================

from .schema import (
    AtomicCheck,
    CommitResult,
    Entry,
)

from .atomic import AtomicOperation

from .client import (
    KvClient,
    connect,
)

from .config import (
    Settings,
    connect_from_env,
    key_manager_from_env,
    load_settings,
)

# ============================================================================
# Public API
# ============================================================================

__all__ = [
    # Version
    "__version__",
    # Crypto
    "AES_256_KEY_SIZE",
    "NONCE_SIZE",
    "TAG_SIZE",
    "AesGcmCipher",
    "SealedData",
    "SecureKey",
    # Errors
    "KvError",
    "ConfigError",
    "SerializationError",
    "EncryptionError",
    "InvalidKeyMaterialError",
    "KeyNotFoundError",
    "NoActiveKeyError",
    "NoKeyManagerAvailableError",
    "DecryptionFailedError",
    "InvalidKeyFormatError",
    "APIError",
    "APIStatusError",
    "BadRequestError",
    "AuthenticationError",
    "PermissionDeniedError",
    "NotFoundError",
    "ConflictError",
    "UnprocessableEntityError",
    "RateLimitError",
    "InternalServerError",
    # Keys
    "KeyMaterial",
    "generate_key",
    "export_key",
    "import_key",
    "WILDCARD",
    "KeyManager",
    "key_matches",
    # Envelope
    "EncryptedEnvelope",
    "encrypt",
    "decrypt",
    # Client (Primary API)
    "KvClient",
    "connect",
    "AtomicOperation",
    "AtomicCheck",
    "CommitResult",
    "Entry",
    # Config
    "Settings",
    "load_settings",
    "key_manager_from_env",
    "connect_from_env",
]
