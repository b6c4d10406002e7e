"""Shared JSON serialization for storage data models.

This module converts typed models to and from the camelCase payloads
used in version files and on the remote wire protocol.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence, cast

from core.constants import ERROR_INVALID_IMPORT_DATA, ERROR_INVALID_VERSION_INFO
from core.errors import VerstoreValidationError
from core.types import ExportBundle, StorageMetadata, VersionInfo, VersionStorage

_STORAGE_METADATA_KEYS = ("storedAt", "size", "checksum")


def version_info_to_payload(version_info: VersionInfo) -> dict[str, Any]:
    """Serialize VersionInfo into a JSON-safe payload.

    Args:
        version_info: Version snapshot.

    Returns:
        Dictionary payload for JSON encoding.
    """
    return {
        "id": version_info.id,
        "version": version_info.version,
        "metadata": dict(version_info.metadata),
        "data": dict(version_info.data),
        "createdAt": version_info.created_at,
        "updatedAt": version_info.updated_at,
    }


def version_info_from_payload(payload: object) -> VersionInfo:
    """Deserialize a JSON payload into VersionInfo.

    Args:
        payload: Parsed JSON value.

    Returns:
        Typed version snapshot.

    Raises:
        VerstoreValidationError: If the payload is structurally invalid.
    """
    if not is_version_info_payload(payload):
        raise VerstoreValidationError(
            "Invalid version info payload: expected id, version, metadata, data, "
            "createdAt, and updatedAt fields.",
            code=ERROR_INVALID_VERSION_INFO,
        )
    mapping = cast(Mapping[str, Any], payload)
    return VersionInfo(
        id=mapping["id"],
        version=mapping["version"],
        metadata=dict(mapping["metadata"]),
        data=dict(mapping["data"]),
        created_at=mapping["createdAt"],
        updated_at=mapping["updatedAt"],
    )


def is_version_info_payload(payload: object) -> bool:
    """Return whether a raw payload has the VersionInfo shape."""
    if not isinstance(payload, Mapping):
        return False
    for field_name in ("id", "version", "createdAt", "updatedAt"):
        value = payload.get(field_name)
        if not isinstance(value, str) or not value:
            return False
    return isinstance(payload.get("metadata"), Mapping) and isinstance(
        payload.get("data"), Mapping
    )


def storage_metadata_to_payload(metadata: StorageMetadata) -> dict[str, Any]:
    """Serialize StorageMetadata into its wire payload."""
    return {
        **dict(metadata.extra),
        "storedAt": metadata.stored_at,
        "size": metadata.size,
        "checksum": metadata.checksum,
    }


def storage_metadata_from_payload(payload: object) -> StorageMetadata:
    """Deserialize a metadata payload, tolerating missing fields.

    Args:
        payload: Parsed JSON value.

    Returns:
        Typed storage metadata; absent fields become empty values.
    """
    mapping = cast(Mapping[str, Any], payload) if isinstance(payload, Mapping) else {}
    raw_size = mapping.get("size", 0)
    size = raw_size if isinstance(raw_size, int) and not isinstance(raw_size, bool) else 0
    return StorageMetadata(
        stored_at=str(mapping.get("storedAt", "")),
        size=size,
        checksum=str(mapping.get("checksum", "")),
        extra={
            str(key): value
            for key, value in mapping.items()
            if key not in _STORAGE_METADATA_KEYS
        },
    )


def version_storage_from_payload(payload: object) -> VersionStorage:
    """Deserialize a VersionStorage wire payload.

    Raises:
        VerstoreValidationError: If ``versionId`` is missing.
    """
    mapping = cast(Mapping[str, Any], payload) if isinstance(payload, Mapping) else {}
    version_id = mapping.get("versionId")
    if not isinstance(version_id, str) or not version_id:
        raise VerstoreValidationError(
            "Invalid storage record payload: 'versionId' must be a non-empty string."
        )
    return VersionStorage(
        id=str(mapping.get("id", "")),
        version_id=version_id,
        path=str(mapping.get("path", "")),
        metadata=storage_metadata_from_payload(mapping.get("metadata")),
    )


def export_bundle_to_payload(bundle: ExportBundle) -> dict[str, Any]:
    """Serialize an ExportBundle into its wire payload."""
    return {
        "versions": [version_info_to_payload(item) for item in bundle.versions],
        "metadata": {
            "exportedAt": bundle.exported_at,
            "totalVersions": bundle.total_versions,
            "storageType": bundle.storage_type,
        },
    }


def export_bundle_from_payload(payload: object) -> ExportBundle:
    """Deserialize an export bundle payload.

    Args:
        payload: Parsed JSON value.

    Returns:
        Typed export bundle.

    Raises:
        VerstoreValidationError: If ``versions`` is not a list of versions.
    """
    mapping = cast(Mapping[str, Any], payload) if isinstance(payload, Mapping) else {}
    raw_versions = mapping.get("versions")
    if not isinstance(raw_versions, Sequence) or isinstance(raw_versions, (str, bytes)):
        raise VerstoreValidationError(
            "Invalid import data format: 'versions' must be a list.",
            code=ERROR_INVALID_IMPORT_DATA,
        )
    versions = tuple(version_info_from_payload(item) for item in raw_versions)
    raw_metadata = mapping.get("metadata")
    metadata = (
        cast(Mapping[str, Any], raw_metadata) if isinstance(raw_metadata, Mapping) else {}
    )
    raw_total = metadata.get("totalVersions")
    total_versions = raw_total if isinstance(raw_total, int) else len(versions)
    return ExportBundle(
        versions=versions,
        exported_at=str(metadata.get("exportedAt", "")),
        total_versions=total_versions,
        storage_type=str(metadata.get("storageType", "")),
    )
