"""Public SDK surface for verstore.

This module provides a stable import path for library users.
It re-exports the backends, the factory, and typed config models.
"""

from __future__ import annotations

from core.config import (
    RetentionPolicy,
    StorageConfig,
    StorageOptions,
    default_storage_config,
    load_storage_config,
    merge_with_defaults,
)
from core.errors import (
    VerstoreConfigError,
    VerstoreError,
    VerstoreIOError,
    VerstoreNotFoundError,
    VerstoreNotInitializedError,
    VerstoreRemoteError,
    VerstoreUnsupportedOperationError,
    VerstoreValidationError,
)
from core.types import (
    ExportBundle,
    StorageMetadata,
    StorageStatistics,
    VersionInfo,
    VersionStorage,
)
from storage.contract import VersionStore
from storage.factory import create_storage
from storage.local_storage import LocalStorage
from storage.operations import batch_delete, batch_store, get_statistics, search_versions
from storage.primitives import generate_checksum, validate_version_id, validate_version_info
from storage.remote_storage import RemoteStorage

__all__ = [
    "ExportBundle",
    "LocalStorage",
    "RemoteStorage",
    "RetentionPolicy",
    "StorageConfig",
    "StorageMetadata",
    "StorageOptions",
    "StorageStatistics",
    "VersionInfo",
    "VersionStorage",
    "VersionStore",
    "VerstoreConfigError",
    "VerstoreError",
    "VerstoreIOError",
    "VerstoreNotFoundError",
    "VerstoreNotInitializedError",
    "VerstoreRemoteError",
    "VerstoreUnsupportedOperationError",
    "VerstoreValidationError",
    "batch_delete",
    "batch_store",
    "create_storage",
    "default_storage_config",
    "generate_checksum",
    "get_statistics",
    "load_storage_config",
    "merge_with_defaults",
    "search_versions",
    "validate_version_id",
    "validate_version_info",
]
