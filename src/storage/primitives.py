"""Supporting primitives shared by every storage backend.

This module holds the pure structural checks, deterministic naming,
size/checksum computation, and guard helpers the backends build on.
"""

from __future__ import annotations

import hashlib
import json
import re
from datetime import datetime, timezone
from typing import Any, Mapping

from core.config import StorageConfig
from core.constants import (
    CHECKSUM_UNAVAILABLE,
    ERROR_INVALID_VERSION_ID,
    ERROR_INVALID_VERSION_INFO,
    ERROR_NOT_INITIALIZED,
    HASH_ALGORITHM,
    SIZE_UNAVAILABLE,
    STORAGE_ID_DIGEST_LENGTH,
    STORAGE_ID_PREFIX,
    SUPPORTED_STORAGE_TYPES,
)
from core.errors import (
    VerstoreNotInitializedError,
    VerstoreValidationError,
    create_error,
)
from core.logging_config import get_logger
from core.types import StorageMetadata, VersionInfo
from storage.version_payload import is_version_info_payload

_LOGGER = get_logger(__name__)
_UNSAFE_ID_CHARACTERS = re.compile(r"[^a-zA-Z0-9._-]")


def validate_version_info(version_info: object) -> bool:
    """Return whether a value is a structurally valid version snapshot.

    Args:
        version_info: VersionInfo instance or raw wire payload.

    Returns:
        True when id, version, metadata, data, and timestamps are present
        and correctly typed.
    """
    if isinstance(version_info, VersionInfo):
        return (
            _is_non_empty_string(version_info.id)
            and _is_non_empty_string(version_info.version)
            and isinstance(version_info.metadata, Mapping)
            and isinstance(version_info.data, Mapping)
            and _is_non_empty_string(version_info.created_at)
            and _is_non_empty_string(version_info.updated_at)
        )
    return is_version_info_payload(version_info)


def validate_version_id(version_id: object) -> bool:
    """Return whether a value is a usable version id."""
    return isinstance(version_id, str) and bool(version_id.strip())


def validate_config(config: object) -> bool:
    """Return whether a value is a structurally valid storage config.

    Args:
        config: StorageConfig instance or raw config mapping.

    Returns:
        True when type and a non-empty path are present and options,
        if given, is a mapping.
    """
    if isinstance(config, StorageConfig):
        return config.type in SUPPORTED_STORAGE_TYPES and _is_non_empty_string(config.path)
    if not isinstance(config, Mapping):
        return False
    if not _is_non_empty_string(config.get("type")):
        return False
    if not _is_non_empty_string(config.get("path")):
        return False
    options = config.get("options")
    return options is None or isinstance(options, Mapping)


def require_valid_version_info(version_info: object) -> None:
    """Raise when a version snapshot fails structural validation."""
    if not validate_version_info(version_info):
        version_id = getattr(version_info, "id", None)
        raise create_error(
            "Invalid version info: id, version, metadata, data, createdAt, and "
            "updatedAt must be present and correctly typed.",
            ERROR_INVALID_VERSION_INFO,
            {"version_id": version_id if isinstance(version_id, str) else None},
            error_type=VerstoreValidationError,
        )


def require_valid_version_id(version_id: object) -> None:
    """Raise when a version id is empty or not a string."""
    if not validate_version_id(version_id):
        raise create_error(
            f"Invalid version id {version_id!r}: expected a non-empty string.",
            ERROR_INVALID_VERSION_ID,
            error_type=VerstoreValidationError,
        )


def sanitize_version_id(version_id: str) -> str:
    """Replace characters that are unsafe in file names with underscores."""
    return _UNSAFE_ID_CHARACTERS.sub("_", version_id)


def generate_storage_id(version_id: str) -> str:
    """Build the deterministic storage id for a version.

    Args:
        version_id: Version identifier.

    Returns:
        Storage id distinct from, but derived from, the version id.
    """
    digest = hashlib.sha256(version_id.encode("utf-8")).hexdigest()[:STORAGE_ID_DIGEST_LENGTH]
    return f"{STORAGE_ID_PREFIX}-{sanitize_version_id(version_id)}-{digest}"


def generate_storage_path(version_id: str, config: StorageConfig) -> str:
    """Build the backend-specific locator for a version."""
    return f"{config.path.rstrip('/')}/{version_id}"


def serialize_canonical(data: Any) -> str:
    """Serialize a payload with sorted keys and compact separators.

    Raises:
        ValueError: If the payload contains a reference cycle.
        TypeError: If the payload holds non-JSON values.
    """
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def serialize_payload(payload: Mapping[str, Any], indent: int | None = None) -> str:
    """Serialize a version or request payload for writing or sending.

    Raises:
        VerstoreValidationError: If the payload holds non-JSON values or a
            reference cycle.
    """
    try:
        return json.dumps(payload, indent=indent)
    except (TypeError, ValueError) as error:
        raise create_error(
            f"Invalid version info: payload is not JSON-serializable: {error}",
            ERROR_INVALID_VERSION_INFO,
            {"version_id": payload.get("id") if isinstance(payload.get("id"), str) else None},
            error_type=VerstoreValidationError,
        ) from error


def calculate_data_size(data: Any) -> int:
    """Return the UTF-8 byte length of the canonical serialization.

    Returns:
        Byte length, or ``SIZE_UNAVAILABLE`` for unserializable payloads.
    """
    try:
        return len(serialize_canonical(data).encode("utf-8"))
    except (TypeError, ValueError) as error:
        _LOGGER.warning("data_size_unavailable", error=str(error))
        return SIZE_UNAVAILABLE


def generate_checksum(data: Any) -> str:
    """Return the SHA-256 hex digest of the canonical serialization.

    Returns:
        Hex digest, or ``CHECKSUM_UNAVAILABLE`` for unserializable payloads.
    """
    try:
        serialized = serialize_canonical(data)
    except (TypeError, ValueError) as error:
        _LOGGER.warning("checksum_unavailable", error=str(error))
        return CHECKSUM_UNAVAILABLE
    return hashlib.new(HASH_ALGORITHM, serialized.encode("utf-8")).hexdigest()


def build_storage_metadata(version_info: VersionInfo) -> StorageMetadata:
    """Compute storage metadata for a version about to be persisted."""
    extra: dict[str, Any] = {"version": version_info.version}
    strategy = version_info.metadata.get("strategy")
    if strategy is not None:
        extra["strategy"] = strategy
    return StorageMetadata(
        stored_at=utc_now_iso(),
        size=calculate_data_size(version_info.data),
        checksum=generate_checksum(version_info.data),
        extra=extra,
    )


def ensure_initialized(initialized: bool) -> None:
    """Fail fast when a backend is used before initialize().

    Raises:
        VerstoreNotInitializedError: If ``initialized`` is false.
    """
    if not initialized:
        raise create_error(
            "Storage not initialized",
            ERROR_NOT_INITIALIZED,
            error_type=VerstoreNotInitializedError,
        )


def log_storage_error(
    logger: Any, error: BaseException, operation: str, **context: object
) -> None:
    """Log a failed storage operation with its code and context."""
    logger.error(
        "storage_operation_failed",
        operation=operation,
        message=str(error),
        code=getattr(error, "code", "UNKNOWN_ERROR"),
        **context,
    )


def utc_now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value: str) -> datetime | None:
    """Parse an ISO-8601 timestamp as an aware datetime, UTC when naive."""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def _is_non_empty_string(value: object) -> bool:
    return isinstance(value, str) and bool(value)
