"""Storage backend contract.

Every backend implements this Protocol so callers and the derived
operations in ``storage.operations`` stay backend-agnostic.
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol

from core.config import StorageConfig
from core.types import ExportBundle, StorageMetadata, VersionInfo, VersionStorage

ConfigOverride = StorageConfig | Mapping[str, Any] | None


class VersionStore(Protocol):
    """Operations every version storage backend provides."""

    @property
    def storage_type(self) -> str: ...

    @property
    def config(self) -> StorageConfig: ...

    @property
    def is_ready(self) -> bool: ...

    def initialize(self, config: StorageConfig | None = None) -> None: ...

    def store(self, version_info: VersionInfo, config: ConfigOverride = None) -> VersionStorage: ...

    def retrieve(self, version_id: str) -> VersionInfo | None: ...

    def delete(self, version_id: str) -> bool: ...

    def list_versions(self, config: ConfigOverride = None) -> list[VersionStorage]: ...

    def exists(self, version_id: str) -> bool: ...

    def get_metadata(self, version_id: str) -> StorageMetadata: ...

    def update_metadata(self, version_id: str, patch: Mapping[str, Any]) -> bool: ...

    def cleanup(self, config: ConfigOverride = None) -> int: ...

    def validate(self, config: StorageConfig | None = None) -> bool: ...

    def dispose(self) -> None: ...

    def export_data(self) -> ExportBundle: ...

    def import_data(self, bundle: ExportBundle | Mapping[str, Any]) -> int: ...
