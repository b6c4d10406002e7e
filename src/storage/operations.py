"""Derived storage operations built on the backend contract.

This module implements batch, search, statistics, export, and import
flows once, in terms of the primitive VersionStore operations.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Sequence

from core.constants import ERROR_IMPORT_NOT_IMPLEMENTED
from core.errors import VerstoreUnsupportedOperationError, create_error
from core.logging_config import get_logger
from core.types import ExportBundle, StorageStatistics, VersionInfo, VersionStorage
from storage.contract import ConfigOverride, VersionStore
from storage.primitives import log_storage_error, parse_timestamp, utc_now_iso
from storage.version_payload import export_bundle_from_payload

_LOGGER = get_logger(__name__)
_QUERY_ALIASES = {"versionId": "version_id"}


def batch_store(
    store: VersionStore,
    versions: Sequence[VersionInfo],
    config: ConfigOverride = None,
) -> list[VersionStorage]:
    """Store versions one after another, stopping at the first failure.

    Args:
        store: Target backend.
        versions: Versions to persist in order.
        config: Optional per-call config override.

    Returns:
        Storage records for every stored version.

    Raises:
        VerstoreError: The first store failure, after logging it.
    """
    results: list[VersionStorage] = []
    for version in versions:
        try:
            results.append(store.store(version, config))
        except Exception as error:
            log_storage_error(_LOGGER, error, "batch_store", version_id=version.id)
            raise
    return results


def batch_delete(
    store: VersionStore,
    version_ids: Sequence[str],
    config: ConfigOverride = None,
) -> list[bool]:
    """Delete versions one after another, reporting False for failures.

    Args:
        store: Target backend.
        version_ids: Version ids to delete in order.
        config: Unused; accepted for call-site symmetry with batch_store.

    Returns:
        One result per id: True when deleted, False when absent or failed.
    """
    results: list[bool] = []
    for version_id in version_ids:
        try:
            results.append(store.delete(version_id))
        except Exception as error:
            log_storage_error(_LOGGER, error, "batch_delete", version_id=version_id)
            results.append(False)
    return results


def search_versions(
    store: VersionStore,
    query: object,
    config: ConfigOverride = None,
) -> list[VersionStorage]:
    """Filter stored versions in memory.

    Supported query keys: ``version_id`` or ``versionId`` (exact), ``path``
    (substring), and ``metadata`` (key/value subset of
    ``StorageMetadata.as_dict()``). Other keys are ignored. An empty or
    non-mapping query matches everything.

    Args:
        store: Backend to search.
        query: Query mapping.
        config: Optional per-call config override for listing.

    Returns:
        Matching storage records in listing order.
    """
    return [record for record in store.list_versions(config) if matches_query(record, query)]


def matches_query(record: VersionStorage, query: object) -> bool:
    """Return whether a storage record satisfies a search query."""
    if not isinstance(query, Mapping):
        return True
    for raw_key, value in query.items():
        key = _QUERY_ALIASES.get(raw_key, raw_key)
        if key == "version_id" and record.version_id != value:
            return False
        if key == "path" and str(value) not in record.path:
            return False
        if key == "metadata" and not _matches_metadata(record.metadata.as_dict(), value):
            return False
    return True


def get_statistics(store: VersionStore, config: ConfigOverride = None) -> StorageStatistics:
    """Aggregate count, size, and age figures over all stored versions."""
    versions = store.list_versions(config)
    total_size = sum(record.metadata.size for record in versions)
    timestamps: list[tuple[datetime, str]] = []
    for record in versions:
        parsed = parse_timestamp(record.metadata.stored_at)
        if parsed is not None:
            timestamps.append((parsed, record.metadata.stored_at))
    timestamps.sort(key=lambda item: item[0])
    return StorageStatistics(
        total_versions=len(versions),
        total_size=total_size,
        average_size=total_size / len(versions) if versions else 0.0,
        oldest_stored_at=timestamps[0][1] if timestamps else None,
        newest_stored_at=timestamps[-1][1] if timestamps else None,
        last_updated=utc_now_iso(),
    )


def export_data(store: VersionStore, config: ConfigOverride = None) -> ExportBundle:
    """Export every readable version of a backend.

    Versions that cannot be retrieved are skipped.

    Args:
        store: Backend to export from.
        config: Optional per-call config override for listing.

    Returns:
        Export bundle with export metadata.
    """
    exported: list[VersionInfo] = []
    for record in store.list_versions(config):
        try:
            version_info = store.retrieve(record.version_id)
        except Exception as error:
            log_storage_error(_LOGGER, error, "export_data", version_id=record.version_id)
            continue
        if version_info is not None:
            exported.append(version_info)
    _LOGGER.info("versions_exported", storage_type=store.storage_type, count=len(exported))
    return ExportBundle(
        versions=tuple(exported),
        exported_at=utc_now_iso(),
        total_versions=len(exported),
        storage_type=store.storage_type,
    )


def validate_import_bundle(bundle: ExportBundle | Mapping[str, Any]) -> ExportBundle:
    """Validate an import bundle and return it typed.

    Raises:
        VerstoreValidationError: If ``versions`` is not a list of versions.
    """
    if isinstance(bundle, ExportBundle):
        return bundle
    return export_bundle_from_payload(bundle)


def import_data(store: VersionStore, bundle: ExportBundle | Mapping[str, Any]) -> int:
    """Default import behaviour for backends that have not opted in.

    Raises:
        VerstoreValidationError: If the bundle shape is invalid.
        VerstoreUnsupportedOperationError: Always, once the bundle is valid.
    """
    validated = validate_import_bundle(bundle)
    raise create_error(
        "Import not implemented",
        ERROR_IMPORT_NOT_IMPLEMENTED,
        {"storage_type": store.storage_type, "total_versions": len(validated.versions)},
        error_type=VerstoreUnsupportedOperationError,
    )


def _matches_metadata(metadata: Mapping[str, Any], query: object) -> bool:
    if not isinstance(query, Mapping):
        return True
    return all(key in metadata and metadata[key] == value for key, value in query.items())
