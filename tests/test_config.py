"""Tests for environment configuration."""

from __future__ import annotations

import httpx
import pytest

from kv_client import (
    ConfigError,
    InvalidKeyFormatError,
    Settings,
    connect_from_env,
    export_key,
    generate_key,
    key_manager_from_env,
    load_settings,
)

ENV_VARS = ("KV_ACCESS_TOKEN", "KV_BUCKET", "KV_ENDPOINT", "KV_REGION", "KV_ENCRYPTION_KEY")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # keep load_dotenv from finding a developer's .env
    monkeypatch.chdir(tmp_path)


def test_load_settings_defaults(tmp_path):
    settings = load_settings(tmp_path / "missing.env")
    assert settings == Settings()
    assert settings.region == "eu-central-1"


def test_load_settings_from_env_file(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text(
        "KV_ACCESS_TOKEN=token\nKV_BUCKET=bucket\nKV_REGION=us-east-1\n"
    )
    settings = load_settings(env_file)
    assert settings.access_token == "token"
    assert settings.bucket == "bucket"
    assert settings.region == "us-east-1"
    assert settings.endpoint is None


def test_environment_wins_over_env_file(tmp_path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text("KV_BUCKET=from-file\n")
    monkeypatch.setenv("KV_BUCKET", "from-env")
    assert load_settings(env_file).bucket == "from-env"


def test_key_manager_from_env(monkeypatch):
    material = generate_key("env-key")
    monkeypatch.setenv("KV_ENCRYPTION_KEY", f'"{export_key(material)}"')

    km = key_manager_from_env()

    assert km is not None
    assert km.is_available()
    assert km.get_active_key() == material


def test_no_key_manager_without_variable():
    assert key_manager_from_env(Settings()) is None


def test_malformed_encryption_key(monkeypatch):
    monkeypatch.setenv("KV_ENCRYPTION_KEY", "garbage")
    with pytest.raises(InvalidKeyFormatError):
        key_manager_from_env()


def test_connect_from_env_requires_bucket(monkeypatch):
    monkeypatch.setenv("KV_ACCESS_TOKEN", "token")
    with pytest.raises(ConfigError):
        connect_from_env()


def test_connect_from_env_requires_token(monkeypatch):
    monkeypatch.setenv("KV_BUCKET", "bucket")
    with pytest.raises(ConfigError, match="Access token is required"):
        connect_from_env()


async def test_connect_from_env(monkeypatch):
    material = generate_key("env-key")
    monkeypatch.setenv("KV_ACCESS_TOKEN", "token")
    monkeypatch.setenv("KV_BUCKET", "bucket")
    monkeypatch.setenv("KV_ENDPOINT", "https://kv.test")
    monkeypatch.setenv("KV_ENCRYPTION_KEY", export_key(material))

    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"key": ["a"], "value": None, "version": None})

    async with connect_from_env(transport=httpx.MockTransport(handler)) as kv:
        assert kv.key_manager is not None
        assert kv.key_manager.get_active_key() == material
        await kv.get(["a"])

    assert str(seen[0].url) == "https://kv.test/v1/bucket/a"
    assert seen[0].headers["Authorization"] == "Bearer token"
