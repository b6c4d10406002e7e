"""Storage configuration model for verstore.

This module owns configuration defaults, merging, and parsing from
environment variables and config files. Backends consume a fully
populated StorageConfig instead of raw option mappings.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping, cast

import yaml

from core.config_fields import (
    float_with_default,
    int_with_default,
    optional_bool,
    optional_float,
    optional_int,
    optional_string,
    parse_bool_text,
    parse_int_text,
    parse_storage_type,
    string_tuple,
)
from core.constants import (
    DEFAULT_LOCAL_PATH,
    DEFAULT_MAX_AGE_DAYS,
    DEFAULT_MAX_VERSIONS,
    DEFAULT_REMOTE_URL,
    DEFAULT_RETRIES,
    DEFAULT_RETRY_DELAY_MS,
    DEFAULT_TIMEOUT_MS,
    ENV_API_KEY,
    ENV_BACKUP_ENABLED,
    ENV_RETRIES,
    ENV_STORAGE_PATH,
    ENV_STORAGE_TYPE,
    ENV_TIMEOUT_MS,
    STORAGE_TYPE_LOCAL,
    STORAGE_TYPE_REMOTE,
)
from core.errors import VerstoreConfigError
from core.types import StorageType

_OPTION_ALIASES = {
    "createDirectories": "create_directories",
    "atomicWrites": "atomic_writes",
    "backupEnabled": "backup_enabled",
    "compressionEnabled": "compression_enabled",
    "apiKey": "api_key",
    "timeout": "timeout_ms",
    "retries": "retries",
    "retryDelay": "retry_delay_ms",
    "maxAgeDays": "max_age_days",
    "maxVersions": "max_versions",
    "keepForever": "keep_forever",
}
_OPTION_FIELDS = frozenset(_OPTION_ALIASES.values())
_ROOT_KEYS = frozenset({"type", "path", "options"})


@dataclass(frozen=True)
class RetentionPolicy:
    """Retention rules applied by cleanup.

    Attributes:
        max_age_days: Records older than this are removed.
        max_versions: Records beyond this count are removed, oldest first.
        keep_forever: Version ids cleanup never removes.
    """

    max_age_days: float = DEFAULT_MAX_AGE_DAYS
    max_versions: int = DEFAULT_MAX_VERSIONS
    keep_forever: tuple[str, ...] = ()


@dataclass(frozen=True)
class StorageOptions:
    """Backend options with every field populated.

    Attributes:
        create_directories: Create a missing local directory on initialize.
        atomic_writes: Write local files via temp file and rename.
        backup_enabled: Copy an existing local file to ``.backup`` before overwrite.
        compression_enabled: Gzip remote request bodies.
        api_key: Bearer token for the remote API.
        timeout_ms: Per-attempt remote timeout in milliseconds.
        retries: Extra remote attempts after the first one.
        retry_delay_ms: Base delay for exponential retry backoff.
        retention: Cleanup retention policy.
    """

    create_directories: bool = True
    atomic_writes: bool = True
    backup_enabled: bool = False
    compression_enabled: bool = False
    api_key: str | None = None
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    retries: int = DEFAULT_RETRIES
    retry_delay_ms: int = DEFAULT_RETRY_DELAY_MS
    retention: RetentionPolicy = field(default_factory=RetentionPolicy)


@dataclass(frozen=True)
class StorageConfig:
    """Validated storage configuration.

    Attributes:
        type: Backend type, ``local`` or ``remote``.
        path: Local directory or remote base URL.
        options: Fully populated backend options.
    """

    type: StorageType
    path: str
    options: StorageOptions = field(default_factory=StorageOptions)

    @classmethod
    def from_env(cls) -> "StorageConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            VerstoreConfigError: If environment values are invalid.
        """
        storage_type = parse_storage_type(os.getenv(ENV_STORAGE_TYPE, STORAGE_TYPE_LOCAL))
        config = default_storage_config(storage_type)
        path_value = os.getenv(ENV_STORAGE_PATH)
        if path_value:
            config = replace(config, path=path_value)
        options = config.options
        api_key = os.getenv(ENV_API_KEY)
        if api_key:
            options = replace(options, api_key=api_key)
        timeout_value = os.getenv(ENV_TIMEOUT_MS)
        if timeout_value is not None:
            options = replace(options, timeout_ms=parse_int_text(timeout_value, ENV_TIMEOUT_MS))
        retries_value = os.getenv(ENV_RETRIES)
        if retries_value is not None:
            options = replace(options, retries=parse_int_text(retries_value, ENV_RETRIES))
        backup_value = os.getenv(ENV_BACKUP_ENABLED)
        if backup_value is not None:
            options = replace(
                options, backup_enabled=parse_bool_text(backup_value, ENV_BACKUP_ENABLED)
            )
        return replace(config, options=options)


def default_storage_config(storage_type: StorageType = STORAGE_TYPE_LOCAL) -> StorageConfig:
    """Return the default configuration for a backend type.

    Args:
        storage_type: Backend type.

    Returns:
        Fully populated default config.
    """
    if storage_type == STORAGE_TYPE_REMOTE:
        return StorageConfig(type=STORAGE_TYPE_REMOTE, path=DEFAULT_REMOTE_URL)
    return StorageConfig(type=STORAGE_TYPE_LOCAL, path=DEFAULT_LOCAL_PATH)


def merge_with_defaults(
    override: StorageConfig | Mapping[str, Any] | None,
    base: StorageConfig | None = None,
) -> StorageConfig:
    """Merge a partial configuration over a base configuration.

    Args:
        override: Complete config, partial mapping, or None.
        base: Config to merge onto; type defaults when omitted.

    Returns:
        Fully populated configuration.

    Raises:
        VerstoreConfigError: If override values are invalid.
    """
    if isinstance(override, StorageConfig):
        return _validated_config(override)
    override_mapping = _expect_mapping(override or {}, "storage config")
    unknown_keys = sorted(set(override_mapping) - _ROOT_KEYS)
    if unknown_keys:
        raise VerstoreConfigError(
            f"Unknown storage config keys: {', '.join(unknown_keys)}. "
            "Use only 'type', 'path', and 'options'."
        )
    if "type" in override_mapping:
        storage_type = parse_storage_type(override_mapping["type"])
    elif base is not None:
        storage_type = base.type
    else:
        storage_type = STORAGE_TYPE_LOCAL
    if base is None or base.type != storage_type:
        base = default_storage_config(storage_type)
    path = _parse_path(override_mapping.get("path"), base.path)
    raw_options = _expect_mapping(override_mapping.get("options") or {}, "storage options")
    options = _merge_options(raw_options, base.options)
    return StorageConfig(type=storage_type, path=path, options=options)


def load_storage_config(config_path: str | Path) -> StorageConfig:
    """Load a storage configuration from a YAML or JSON file.

    Args:
        config_path: Path to the config file.

    Returns:
        Fully populated configuration.

    Raises:
        VerstoreConfigError: If the file is missing, unreadable, or invalid.
    """
    config_file = Path(config_path).expanduser().resolve()
    if not config_file.exists():
        raise VerstoreConfigError(
            f"Storage config file does not exist at {config_file}. Provide a valid file path."
        )
    try:
        payload = cast(object, yaml.safe_load(config_file.read_text(encoding="utf-8")))
    except OSError as error:
        raise VerstoreConfigError(
            f"Failed to read storage config at {config_file}: {error}. "
            "Check file permissions and retry."
        ) from error
    except yaml.YAMLError as error:
        raise VerstoreConfigError(
            f"Failed to parse storage config at {config_file}: {error}. Fix syntax and retry."
        ) from error
    if payload is None:
        raise VerstoreConfigError(
            f"Storage config at {config_file} is empty. Define at least 'type' and 'path'."
        )
    return merge_with_defaults(_expect_mapping(payload, "storage config"))


def _merge_options(raw_options: Mapping[str, object], base: StorageOptions) -> StorageOptions:
    options = _normalize_option_keys(raw_options)
    retention = RetentionPolicy(
        max_age_days=float_with_default(options, "max_age_days", base.retention.max_age_days),
        max_versions=int_with_default(options, "max_versions", base.retention.max_versions),
        keep_forever=string_tuple(options, "keep_forever", base.retention.keep_forever),
    )
    api_key = optional_string(options, "api_key")
    return StorageOptions(
        create_directories=optional_bool(options, "create_directories", base.create_directories),
        atomic_writes=optional_bool(options, "atomic_writes", base.atomic_writes),
        backup_enabled=optional_bool(options, "backup_enabled", base.backup_enabled),
        compression_enabled=optional_bool(
            options, "compression_enabled", base.compression_enabled
        ),
        api_key=api_key if api_key is not None else base.api_key,
        timeout_ms=int_with_default(options, "timeout_ms", base.timeout_ms),
        retries=int_with_default(options, "retries", base.retries),
        retry_delay_ms=int_with_default(options, "retry_delay_ms", base.retry_delay_ms),
        retention=retention,
    )


def _validated_config(config: StorageConfig) -> StorageConfig:
    """Check a complete config object against the rules applied to mappings."""
    parse_storage_type(config.type)
    _parse_path(config.path or "", "")
    options = config.options
    retention = options.retention
    numeric_fields: dict[str, object] = {
        "timeout_ms": options.timeout_ms,
        "retries": options.retries,
        "retry_delay_ms": options.retry_delay_ms,
        "max_versions": retention.max_versions,
    }
    for field_name in numeric_fields:
        optional_int(numeric_fields, field_name)
    optional_float({"max_age_days": retention.max_age_days}, "max_age_days")
    return config


def _normalize_option_keys(raw_options: Mapping[str, object]) -> dict[str, object]:
    normalized: dict[str, object] = {}
    for key, value in raw_options.items():
        field_name = _OPTION_ALIASES.get(key, key)
        if field_name not in _OPTION_FIELDS:
            raise VerstoreConfigError(
                f"Unknown storage option '{key}'. "
                f"Supported options: {', '.join(sorted(_OPTION_ALIASES))}."
            )
        normalized[field_name] = value
    return normalized


def _parse_path(value: object, default_value: str) -> str:
    if value is None:
        return default_value
    if isinstance(value, str) and value.strip():
        return value
    raise VerstoreConfigError("Storage config 'path' must be a non-empty string.")


def _expect_mapping(value: object, context: str) -> Mapping[str, object]:
    if isinstance(value, Mapping):
        for key in value:
            if not isinstance(key, str):
                raise VerstoreConfigError(
                    f"Invalid {context}: expected string keys, got {type(key).__name__}."
                )
        return cast(Mapping[str, object], value)
    raise VerstoreConfigError(
        f"Invalid {context}: expected object mapping, got {type(value).__name__}."
    )
