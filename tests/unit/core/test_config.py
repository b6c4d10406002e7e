"""Unit tests for core config parsing."""

from __future__ import annotations

from dataclasses import replace

import pytest

from core.config import (
    RetentionPolicy,
    StorageConfig,
    StorageOptions,
    default_storage_config,
    load_storage_config,
    merge_with_defaults,
)
from core.constants import DEFAULT_LOCAL_PATH, DEFAULT_REMOTE_URL, DEFAULT_TIMEOUT_MS
from core.errors import VerstoreConfigError
from tests.fixture_paths import fixture_path

_ENV_NAMES = (
    "VERSTORE_STORAGE_TYPE",
    "VERSTORE_STORAGE_PATH",
    "VERSTORE_API_KEY",
    "VERSTORE_TIMEOUT_MS",
    "VERSTORE_RETRIES",
    "VERSTORE_BACKUP_ENABLED",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_from_env_defaults_to_local_storage() -> None:
    """Config should fall back to local defaults without environment values."""
    config = StorageConfig.from_env()

    assert config.type == "local"
    assert config.path == DEFAULT_LOCAL_PATH
    assert config.options.backup_enabled is False


def test_from_env_reads_remote_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    """Config should resolve remote type, URL, and credentials from environment."""
    monkeypatch.setenv("VERSTORE_STORAGE_TYPE", "remote")
    monkeypatch.setenv("VERSTORE_STORAGE_PATH", "https://api.example.test/versions")
    monkeypatch.setenv("VERSTORE_API_KEY", "token-1")
    monkeypatch.setenv("VERSTORE_RETRIES", "0")

    config = StorageConfig.from_env()

    assert config.type == "remote"
    assert config.path == "https://api.example.test/versions"
    assert config.options.api_key == "token-1"
    assert config.options.retries == 0


def test_from_env_raises_for_invalid_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    """Config should fail for non-numeric timeout values."""
    monkeypatch.setenv("VERSTORE_TIMEOUT_MS", "soon")

    with pytest.raises(VerstoreConfigError):
        StorageConfig.from_env()


def test_from_env_raises_for_unknown_storage_type(monkeypatch: pytest.MonkeyPatch) -> None:
    """Config should reject storage types without a backend."""
    monkeypatch.setenv("VERSTORE_STORAGE_TYPE", "s3")

    with pytest.raises(VerstoreConfigError):
        StorageConfig.from_env()


def test_merge_with_defaults_fills_missing_options() -> None:
    """Partial option mappings should keep defaults for omitted fields."""
    config = merge_with_defaults({"options": {"timeout": 500, "backupEnabled": True}})

    assert config.type == "local"
    assert config.path == DEFAULT_LOCAL_PATH
    assert config.options.timeout_ms == 500
    assert config.options.backup_enabled is True
    assert config.options.atomic_writes is True


def test_merge_with_defaults_uses_target_type_defaults() -> None:
    """Switching type should merge onto the new type's defaults."""
    base = merge_with_defaults({"path": "/tmp/versions"})

    config = merge_with_defaults({"type": "remote"}, base)

    assert config.path == DEFAULT_REMOTE_URL
    assert config.options.timeout_ms == DEFAULT_TIMEOUT_MS


def test_merge_with_defaults_preserves_explicit_zero() -> None:
    """Explicit zero retry counts should not be replaced by defaults."""
    config = merge_with_defaults({"type": "remote", "options": {"retries": 0, "retryDelay": 0}})

    assert config.options.retries == 0
    assert config.options.retry_delay_ms == 0


def test_merge_with_defaults_rejects_unknown_option() -> None:
    """Unknown option keys should fail instead of being ignored."""
    with pytest.raises(VerstoreConfigError):
        merge_with_defaults({"options": {"encryption": True}})


def test_merge_with_defaults_rejects_unknown_root_key() -> None:
    """Only type, path, and options are valid root keys."""
    with pytest.raises(VerstoreConfigError):
        merge_with_defaults({"type": "local", "directory": "./x"})


def test_merge_with_defaults_rejects_negative_retention() -> None:
    """Retention limits should be non-negative."""
    with pytest.raises(VerstoreConfigError):
        merge_with_defaults({"options": {"maxVersions": -1}})


def test_merge_with_defaults_returns_complete_config_unchanged() -> None:
    """A complete config object should pass through as-is."""
    config = default_storage_config("remote")

    assert merge_with_defaults(config) is config


def test_load_storage_config_reads_yaml_file() -> None:
    """YAML config files should map camelCase options onto fields."""
    config = load_storage_config(fixture_path("config/storage.yaml"))

    assert config.type == "local"
    assert config.path == "./.tmp-versions"
    assert config.options.backup_enabled is True
    assert config.options.retention.max_age_days == 30.0
    assert config.options.retention.max_versions == 5
    assert config.options.retention.keep_forever == ("release-1.0.0",)


def test_load_storage_config_reads_json_file() -> None:
    """JSON config files should load through the same parser."""
    config = load_storage_config(fixture_path("config/remote.json"))

    assert config.type == "remote"
    assert config.options.api_key == "secret-token"
    assert config.options.timeout_ms == 2500
    assert config.options.retries == 1


def test_load_storage_config_rejects_unknown_option() -> None:
    """Config files with unsupported options should fail."""
    with pytest.raises(VerstoreConfigError):
        load_storage_config(fixture_path("config/unknown_option.yaml"))


def test_load_storage_config_raises_for_missing_file(tmp_path) -> None:
    """Missing config files should fail with a config error."""
    with pytest.raises(VerstoreConfigError):
        load_storage_config(tmp_path / "missing.yaml")


def test_merge_with_defaults_rejects_complete_config_with_empty_path() -> None:
    """Complete configs should need a non-empty path like mappings do."""
    with pytest.raises(VerstoreConfigError):
        merge_with_defaults(StorageConfig(type="local", path=""))
    with pytest.raises(VerstoreConfigError):
        merge_with_defaults(StorageConfig(type="local", path="   "))


def test_merge_with_defaults_rejects_complete_config_with_negative_values() -> None:
    """Complete configs should keep numeric options non-negative."""
    remote = default_storage_config("remote")

    with pytest.raises(VerstoreConfigError):
        merge_with_defaults(replace(remote, options=StorageOptions(retries=-1)))
    with pytest.raises(VerstoreConfigError):
        merge_with_defaults(replace(remote, options=StorageOptions(timeout_ms=-5)))
    with pytest.raises(VerstoreConfigError):
        merge_with_defaults(
            replace(remote, options=StorageOptions(retention=RetentionPolicy(max_age_days=-1)))
        )
