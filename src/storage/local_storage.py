"""Local filesystem storage backend.

This module persists one pretty-printed JSON file per version under the
configured directory, with optional backup-before-overwrite, atomic
writes, and age/count retention cleanup.
"""

from __future__ import annotations

import hashlib
import json
import os
import shutil
import stat
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

from core.config import StorageConfig, StorageOptions, default_storage_config, merge_with_defaults
from core.constants import (
    BACKUP_FILE_SUFFIX,
    ERROR_BACKUP,
    ERROR_DELETE,
    ERROR_LIST,
    ERROR_METADATA,
    ERROR_READ,
    ERROR_STORAGE_INIT,
    ERROR_VERSION_NOT_FOUND,
    ERROR_WRITE,
    HASH_ALGORITHM,
    STORAGE_TYPE_LOCAL,
    TEMP_FILE_SUFFIX,
    VERSION_FILE_SUFFIX,
)
from core.errors import (
    VerstoreConfigError,
    VerstoreIOError,
    VerstoreNotFoundError,
    VerstoreValidationError,
    create_error,
)
from core.logging_config import get_logger
from core.types import ExportBundle, StorageMetadata, VersionInfo, VersionStorage
from storage import operations
from storage.contract import ConfigOverride
from storage.primitives import (
    build_storage_metadata,
    ensure_initialized,
    generate_storage_id,
    log_storage_error,
    require_valid_version_id,
    require_valid_version_info,
    sanitize_version_id,
    serialize_payload,
)
from storage.retention import select_cleanup_candidates
from storage.version_payload import version_info_from_payload, version_info_to_payload

_LOGGER = get_logger(__name__)


class LocalStorage:
    """Filesystem-backed version store.

    Each version lives at ``<path>/<version id>.json``. Concurrent writers
    to the same id race; the last completed write wins.
    """

    def __init__(self, config: ConfigOverride = None) -> None:
        """Initialize the backend from config without touching the filesystem.

        Args:
            config: Complete config, partial mapping, or None for defaults.

        Raises:
            VerstoreConfigError: If the config targets another backend type.
        """
        self._config = _local_config(config)
        self._initialized = False

    @property
    def storage_type(self) -> str:
        return STORAGE_TYPE_LOCAL

    @property
    def config(self) -> StorageConfig:
        return self._config

    @property
    def is_ready(self) -> bool:
        return self._initialized

    @property
    def root(self) -> Path:
        """Directory holding the version files."""
        return Path(self._config.path).expanduser()

    def initialize(self, config: StorageConfig | None = None) -> None:
        """Ensure the storage directory exists.

        Args:
            config: Optional replacement configuration.

        Raises:
            VerstoreIOError: If the directory is missing and may not be created,
                or the path is not a directory.
        """
        if config is not None:
            self._config = _local_config(config)
        root = self.root
        if not root.exists():
            if not self._config.options.create_directories:
                raise create_error(
                    "Storage directory does not exist",
                    ERROR_STORAGE_INIT,
                    {"path": str(root)},
                    error_type=VerstoreIOError,
                )
            try:
                root.mkdir(parents=True, exist_ok=True)
            except OSError as error:
                raise create_error(
                    f"Failed to create storage directory {root}: {error}",
                    ERROR_STORAGE_INIT,
                    {"path": str(root)},
                    error_type=VerstoreIOError,
                ) from error
        if not root.is_dir():
            raise create_error(
                "Storage directory does not exist",
                ERROR_STORAGE_INIT,
                {"path": str(root), "reason": "not a directory"},
                error_type=VerstoreIOError,
            )
        self._initialized = True
        _LOGGER.info("local_storage_initialized", path=str(root))

    def store(self, version_info: VersionInfo, config: ConfigOverride = None) -> VersionStorage:
        """Persist a version as pretty-printed JSON.

        Args:
            version_info: Version snapshot to persist.
            config: Optional per-call override merged over the instance config.

        Returns:
            Storage record with computed size and checksum.

        Raises:
            VerstoreValidationError: If the version fails structural checks.
            VerstoreIOError: If the file cannot be written.
        """
        ensure_initialized(self._initialized)
        require_valid_version_info(version_info)
        options = self._options(config)
        file_path = self._version_file_path(version_info.id)
        payload_text = serialize_payload(version_info_to_payload(version_info), indent=2) + "\n"
        if options.backup_enabled:
            self._create_backup(file_path)
        self._write_file(file_path, payload_text, options.atomic_writes)
        metadata = build_storage_metadata(version_info)
        _LOGGER.info(
            "version_stored",
            version_id=version_info.id,
            path=str(file_path),
            size=metadata.size,
            checksum=metadata.checksum,
        )
        return VersionStorage(
            id=generate_storage_id(version_info.id),
            version_id=version_info.id,
            path=str(file_path),
            metadata=metadata,
        )

    def retrieve(self, version_id: str) -> VersionInfo | None:
        """Read a version back from disk.

        Returns:
            The stored version, or None when no file exists.

        Raises:
            VerstoreIOError: If the file exists but cannot be read or parsed.
        """
        ensure_initialized(self._initialized)
        require_valid_version_id(version_id)
        file_path = self._version_file_path(version_id)
        try:
            payload = json.loads(file_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as error:
            wrapped = create_error(
                f"Failed to read file {file_path}: {error}",
                ERROR_READ,
                {"version_id": version_id, "path": str(file_path)},
                error_type=VerstoreIOError,
            )
            log_storage_error(_LOGGER, wrapped, "retrieve", version_id=version_id)
            raise wrapped from error
        try:
            return version_info_from_payload(payload)
        except VerstoreValidationError as error:
            raise create_error(
                f"Failed to read file {file_path}: stored payload is not a valid version.",
                ERROR_READ,
                {"version_id": version_id, "path": str(file_path)},
                error_type=VerstoreIOError,
            ) from error

    def delete(self, version_id: str) -> bool:
        """Remove a version file.

        Returns:
            True when a file was removed, False when none existed.

        Raises:
            VerstoreIOError: If an existing file cannot be removed.
        """
        ensure_initialized(self._initialized)
        require_valid_version_id(version_id)
        file_path = self._version_file_path(version_id)
        try:
            file_path.unlink()
        except FileNotFoundError:
            return False
        except OSError as error:
            raise create_error(
                f"Failed to delete file {file_path}: {error}",
                ERROR_DELETE,
                {"version_id": version_id, "path": str(file_path)},
                error_type=VerstoreIOError,
            ) from error
        _LOGGER.info("version_deleted", version_id=version_id, path=str(file_path))
        return True

    def list_versions(self, config: ConfigOverride = None) -> list[VersionStorage]:
        """List stored versions in directory scan order.

        Entries that vanish or cannot be stat'ed during the scan are skipped.

        Raises:
            VerstoreIOError: If the directory itself cannot be read.
        """
        ensure_initialized(self._initialized)
        root = self.root
        try:
            entries = list(root.iterdir())
        except OSError as error:
            raise create_error(
                f"Failed to list storage directory {root}: {error}",
                ERROR_LIST,
                {"path": str(root)},
                error_type=VerstoreIOError,
            ) from error
        versions: list[VersionStorage] = []
        for entry in entries:
            if entry.suffix != VERSION_FILE_SUFFIX:
                continue
            try:
                if not entry.is_file():
                    continue
                stats = entry.stat()
            except OSError as error:
                _LOGGER.debug("version_entry_skipped", path=str(entry), error=str(error))
                continue
            version_id = entry.stem
            versions.append(
                VersionStorage(
                    id=generate_storage_id(version_id),
                    version_id=version_id,
                    path=str(entry),
                    metadata=StorageMetadata(
                        stored_at=_mtime_iso(stats.st_mtime),
                        size=stats.st_size,
                        checksum=_file_checksum(entry),
                    ),
                )
            )
        return versions

    def exists(self, version_id: str) -> bool:
        ensure_initialized(self._initialized)
        require_valid_version_id(version_id)
        return self._version_file_path(version_id).is_file()

    def get_metadata(self, version_id: str) -> StorageMetadata:
        """Return filesystem metadata for a stored version.

        A checksum that cannot be computed is reported as an empty string.

        Raises:
            VerstoreNotFoundError: If the version does not exist.
            VerstoreIOError: If the file cannot be stat'ed.
        """
        ensure_initialized(self._initialized)
        require_valid_version_id(version_id)
        file_path = self._version_file_path(version_id)
        try:
            stats = file_path.stat()
        except FileNotFoundError as error:
            raise create_error(
                "Version not found",
                ERROR_VERSION_NOT_FOUND,
                {"version_id": version_id},
                error_type=VerstoreNotFoundError,
            ) from error
        except OSError as error:
            raise create_error(
                f"Failed to read file metadata {file_path}: {error}",
                ERROR_METADATA,
                {"version_id": version_id, "path": str(file_path)},
                error_type=VerstoreIOError,
            ) from error
        return StorageMetadata(
            stored_at=_mtime_iso(stats.st_mtime),
            size=stats.st_size,
            checksum=_file_checksum(file_path),
        )

    def update_metadata(self, version_id: str, patch: Mapping[str, Any]) -> bool:
        """Merge a patch into a version's metadata and rewrite the file.

        The read-modify-write is not atomic with respect to concurrent
        delete or update calls.

        Raises:
            VerstoreNotFoundError: If the version does not exist.
        """
        ensure_initialized(self._initialized)
        version_info = self.retrieve(version_id)
        if version_info is None:
            raise create_error(
                "Version not found",
                ERROR_VERSION_NOT_FOUND,
                {"version_id": version_id},
                error_type=VerstoreNotFoundError,
            )
        payload = version_info_to_payload(version_info)
        payload["metadata"] = {**payload["metadata"], **dict(patch)}
        file_path = self._version_file_path(version_id)
        payload_text = serialize_payload(payload, indent=2) + "\n"
        self._write_file(file_path, payload_text, self._config.options.atomic_writes)
        _LOGGER.info("version_metadata_updated", version_id=version_id, keys=sorted(patch))
        return True

    def cleanup(self, config: ConfigOverride = None) -> int:
        """Delete versions that violate the retention policy.

        Individual deletion failures are logged and skipped.

        Args:
            config: Optional override; its retention options apply to this call.

        Returns:
            Number of versions actually deleted.
        """
        ensure_initialized(self._initialized)
        policy = self._options(config).retention
        candidates = select_cleanup_candidates(self.list_versions(), policy)
        deleted_count = 0
        for candidate in candidates:
            try:
                if self.delete(candidate.version_id):
                    deleted_count += 1
            except Exception as error:
                log_storage_error(_LOGGER, error, "cleanup", version_id=candidate.version_id)
        _LOGGER.info(
            "cleanup_completed",
            path=str(self.root),
            candidates=len(candidates),
            deleted=deleted_count,
        )
        return deleted_count

    def validate(self, config: StorageConfig | None = None) -> bool:
        """Return whether the storage directory is usable, without creating it."""
        target = Path((config or self._config).path).expanduser()
        usable = target.is_dir() and os.access(target, os.R_OK | os.W_OK)
        if not usable:
            _LOGGER.warning("local_storage_unusable", path=str(target))
        return usable

    def dispose(self) -> None:
        self._initialized = False

    def export_data(self) -> ExportBundle:
        ensure_initialized(self._initialized)
        return operations.export_data(self)

    def import_data(self, bundle: ExportBundle | Mapping[str, Any]) -> int:
        """Store every version from an export bundle.

        Returns:
            Number of versions stored.

        Raises:
            VerstoreValidationError: If the bundle is malformed.
        """
        ensure_initialized(self._initialized)
        validated = operations.validate_import_bundle(bundle)
        stored = operations.batch_store(self, validated.versions)
        _LOGGER.info("versions_imported", path=str(self.root), count=len(stored))
        return len(stored)

    def _options(self, override: ConfigOverride) -> StorageOptions:
        if override is None:
            return self._config.options
        return merge_with_defaults(override, self._config).options

    def _version_file_path(self, version_id: str) -> Path:
        return self.root / f"{sanitize_version_id(version_id)}{VERSION_FILE_SUFFIX}"

    def _create_backup(self, file_path: Path) -> None:
        if not file_path.exists():
            return
        backup_path = file_path.with_name(file_path.name + BACKUP_FILE_SUFFIX)
        try:
            shutil.copy2(file_path, backup_path)
        except OSError as error:
            raise create_error(
                f"Failed to back up file {file_path}: {error}",
                ERROR_BACKUP,
                {"path": str(file_path)},
                error_type=VerstoreIOError,
            ) from error

    def _write_file(self, file_path: Path, payload_text: str, atomic: bool) -> None:
        try:
            if atomic:
                _write_atomic(file_path, payload_text)
            else:
                file_path.write_text(payload_text, encoding="utf-8")
        except OSError as error:
            raise create_error(
                f"Failed to write file {file_path}: {error}",
                ERROR_WRITE,
                {"path": str(file_path)},
                error_type=VerstoreIOError,
            ) from error


def _local_config(config: ConfigOverride) -> StorageConfig:
    resolved = merge_with_defaults(config, default_storage_config(STORAGE_TYPE_LOCAL))
    if resolved.type != STORAGE_TYPE_LOCAL:
        raise VerstoreConfigError(
            f"LocalStorage requires a '{STORAGE_TYPE_LOCAL}' config, got '{resolved.type}'."
        )
    return resolved


def _write_atomic(file_path: Path, payload_text: str) -> None:
    """Write to a hidden temp file beside the target, then rename over it."""
    descriptor, temp_name = tempfile.mkstemp(
        dir=file_path.parent,
        prefix=f".{file_path.name}.",
        suffix=TEMP_FILE_SUFFIX,
    )
    try:
        with os.fdopen(descriptor, "w", encoding="utf-8") as handle:
            handle.write(payload_text)
            handle.flush()
            os.fsync(handle.fileno())
        os.chmod(temp_name, _target_mode(file_path))
        os.replace(temp_name, file_path)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise


def _target_mode(file_path: Path) -> int:
    """Return the mode a plain write would give the target file."""
    try:
        return stat.S_IMODE(file_path.stat().st_mode)
    except FileNotFoundError:
        current_umask = os.umask(0)
        os.umask(current_umask)
        return 0o666 & ~current_umask


def _file_checksum(file_path: Path) -> str:
    try:
        return hashlib.new(HASH_ALGORITHM, file_path.read_bytes()).hexdigest()
    except OSError as error:
        _LOGGER.debug("file_checksum_unavailable", path=str(file_path), error=str(error))
        return ""


def _mtime_iso(mtime: float) -> str:
    return datetime.fromtimestamp(mtime, tz=timezone.utc).isoformat()
