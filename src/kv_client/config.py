"""
Environment configuration.

Variables (a ``.env`` file is loaded first; it never overrides variables that
are already set):

- KV_ACCESS_TOKEN: Bearer token for the bucket
- KV_BUCKET: Bucket identifier
- KV_ENDPOINT: Service root (optional, defaults to the regional service)
- KV_REGION: Region of the regional service (default: eu-central-1)
- KV_ENCRYPTION_KEY: One exported key, registered as the active key
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

from dotenv import find_dotenv, load_dotenv

from .client import DEFAULT_REGION, KvClient, connect
from .errors import ConfigError
from .key_manager import KeyManager
from .keys import import_key

logger = logging.getLogger(__name__)

ENV_ACCESS_TOKEN = "KV_ACCESS_TOKEN"
ENV_BUCKET = "KV_BUCKET"
ENV_ENDPOINT = "KV_ENDPOINT"
ENV_REGION = "KV_REGION"
ENV_ENCRYPTION_KEY = "KV_ENCRYPTION_KEY"


@dataclass
class Settings:
    """Client settings read from the environment."""

    access_token: Optional[str] = None
    bucket: Optional[str] = None
    endpoint: Optional[str] = None
    region: str = DEFAULT_REGION
    encryption_key: Optional[str] = None


def _env(name: str) -> Optional[str]:
    value = os.environ.get(name)
    if value is None:
        return None
    value = value.strip().strip('"').strip("'")
    return value or None


def load_settings(env_file: Optional[Union[str, Path]] = None) -> Settings:
    """Read settings from the environment, loading a .env file first."""
    load_dotenv(env_file if env_file is not None else find_dotenv(usecwd=True))
    return Settings(
        access_token=_env(ENV_ACCESS_TOKEN),
        bucket=_env(ENV_BUCKET),
        endpoint=_env(ENV_ENDPOINT),
        region=_env(ENV_REGION) or DEFAULT_REGION,
        encryption_key=_env(ENV_ENCRYPTION_KEY),
    )


def key_manager_from_env(settings: Optional[Settings] = None) -> Optional[KeyManager]:
    """
    KeyManager holding KV_ENCRYPTION_KEY as its active key.

    Returns None when the variable is unset.

    Raises:
        InvalidKeyFormatError: If the variable holds a malformed key
    """
    settings = settings if settings is not None else load_settings()
    if settings.encryption_key is None:
        return None

    material = import_key(settings.encryption_key)
    key_manager = KeyManager()
    key_manager.add_key(material, active=True)
    logger.info(f"Loaded encryption key {material.kid!r} from {ENV_ENCRYPTION_KEY}")
    return key_manager


def connect_from_env(
    env_file: Optional[Union[str, Path]] = None, **overrides: Any
) -> KvClient:
    """
    Connect using environment settings; keyword arguments override them.

    Raises:
        ConfigError: If no bucket or access token is configured
    """
    settings = load_settings(env_file)
    options: dict[str, Any] = {
        "bucket": settings.bucket,
        "access_token": settings.access_token,
        "endpoint": settings.endpoint,
        "region": settings.region,
    }
    if "key_manager" not in overrides:
        options["key_manager"] = key_manager_from_env(settings)
    options.update(overrides)

    if not options.get("bucket"):
        raise ConfigError(f"{ENV_BUCKET} must be set")
    return connect(**options)
