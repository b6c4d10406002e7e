"""Shared typed models.

This module defines immutable data models used by every storage backend
and by the derived operations, keeping interfaces explicit and stable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Mapping

StorageType = Literal["local", "remote"]


@dataclass(frozen=True)
class VersionInfo:
    """One immutable analysis snapshot of a project.

    Attributes:
        id: Identifier, unique per backend.
        version: Semantic version label.
        metadata: Version metadata (version, strategy, createdAt, tags, ...).
        data: Analysis payload produced by the caller.
        created_at: ISO-8601 creation timestamp.
        updated_at: ISO-8601 last update timestamp.
    """

    id: str
    version: str
    metadata: Mapping[str, Any]
    data: Mapping[str, Any]
    created_at: str
    updated_at: str


@dataclass(frozen=True)
class StorageMetadata:
    """Backend-computed metadata for one stored version.

    Records returned by ``store`` describe the canonical JSON of the
    version's ``data``. Local ``list_versions`` and ``get_metadata`` records
    describe the version file on disk instead, so their size and checksum
    differ from the ``store`` record of the same version.

    Attributes:
        stored_at: ISO-8601 time the record was written.
        size: Serialized size in bytes.
        checksum: Content hash, empty or sentinel when unavailable.
        extra: Backend-specific fields such as version and strategy.
    """

    stored_at: str
    size: int
    checksum: str
    extra: Mapping[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        """Return a flat snake_case view used for metadata matching."""
        return {
            **dict(self.extra),
            "stored_at": self.stored_at,
            "size": self.size,
            "checksum": self.checksum,
        }


@dataclass(frozen=True)
class VersionStorage:
    """Storage-side record describing where a version lives.

    Attributes:
        id: Storage-assigned identifier, distinct from the version id.
        version_id: Back-reference to the stored VersionInfo id.
        path: Filesystem path or URL locating the record.
        metadata: Backend-computed storage metadata.
    """

    id: str
    version_id: str
    path: str
    metadata: StorageMetadata


@dataclass(frozen=True)
class StorageStatistics:
    """Aggregate view over all records of a backend."""

    total_versions: int
    total_size: int
    average_size: float
    oldest_stored_at: str | None
    newest_stored_at: str | None
    last_updated: str


@dataclass(frozen=True)
class ExportBundle:
    """Portable export of every readable version in a backend.

    Attributes:
        versions: Exported version snapshots.
        exported_at: ISO-8601 export timestamp.
        total_versions: Number of exported versions.
        storage_type: Backend type the bundle was exported from.
    """

    versions: tuple[VersionInfo, ...]
    exported_at: str
    total_versions: int
    storage_type: str
