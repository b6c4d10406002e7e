"""Unit tests for shared storage primitives."""

from __future__ import annotations

from dataclasses import replace

import pytest

from core.config import default_storage_config
from core.errors import VerstoreNotInitializedError, VerstoreValidationError
from storage.primitives import (
    build_storage_metadata,
    calculate_data_size,
    ensure_initialized,
    generate_checksum,
    generate_storage_id,
    generate_storage_path,
    parse_timestamp,
    require_valid_version_info,
    sanitize_version_id,
    serialize_payload,
    validate_config,
    validate_version_id,
    validate_version_info,
)
from tests.version_samples import make_version


def test_validate_version_info_accepts_complete_version() -> None:
    """A fully populated version should pass structural checks."""
    assert validate_version_info(make_version()) is True


def test_validate_version_info_rejects_empty_id() -> None:
    """Empty ids should fail structural checks."""
    assert validate_version_info(replace(make_version(), id="")) is False


def test_validate_version_info_checks_raw_payloads() -> None:
    """Raw payloads should need every wire field."""
    payload = {
        "id": "v1",
        "version": "1.0.0",
        "metadata": {},
        "data": {},
        "createdAt": "2024-01-01T00:00:00Z",
        "updatedAt": "2024-01-01T00:00:00Z",
    }

    assert validate_version_info(payload) is True
    assert validate_version_info({**payload, "data": "not-a-mapping"}) is False
    assert validate_version_info(None) is False


def test_require_valid_version_info_raises_validation_error() -> None:
    """Invalid versions should raise with a stable code."""
    with pytest.raises(VerstoreValidationError) as error_info:
        require_valid_version_info(replace(make_version(), version=""))

    assert error_info.value.code == "INVALID_VERSION_INFO"


@pytest.mark.parametrize("version_id", ["", "   ", None, 7])
def test_validate_version_id_rejects_unusable_ids(version_id: object) -> None:
    """Blank and non-string ids should be rejected."""
    assert validate_version_id(version_id) is False


def test_validate_config_checks_mapping_shape() -> None:
    """Config mappings need a type and path, and options must be a mapping."""
    assert validate_config({"type": "local", "path": "./versions"}) is True
    assert validate_config({"type": "local"}) is False
    assert validate_config({"type": "local", "path": "./v", "options": []}) is False
    assert validate_config(default_storage_config()) is True


def test_generate_storage_id_is_deterministic_and_distinct() -> None:
    """Storage ids should be stable per version id and never equal it."""
    first = generate_storage_id("analysis-v1")

    assert first == generate_storage_id("analysis-v1")
    assert first != "analysis-v1"
    assert first.startswith("storage-analysis-v1-")
    assert first != generate_storage_id("analysis-v2")


def test_generate_storage_path_joins_base_and_id() -> None:
    """Storage paths should hang below the configured base."""
    config = replace(default_storage_config(), path="/data/versions/")

    assert generate_storage_path("v1", config) == "/data/versions/v1"


def test_sanitize_version_id_replaces_unsafe_characters() -> None:
    """Separators and spaces should not leak into file names."""
    assert sanitize_version_id("feature/x y") == "feature_x_y"
    assert sanitize_version_id("v1.2_3-rc") == "v1.2_3-rc"


def test_generate_checksum_ignores_key_order() -> None:
    """Checksums should be computed over canonical JSON."""
    first = generate_checksum({"a": 1, "b": [1, 2]})
    second = generate_checksum({"b": [1, 2], "a": 1})

    assert first == second
    assert len(first) == 64
    assert first != generate_checksum({"a": 2, "b": [1, 2]})


def test_checksum_and_size_use_sentinels_for_unserializable_data() -> None:
    """Unserializable payloads should not raise."""
    cyclic: dict[str, object] = {}
    cyclic["self"] = cyclic

    assert generate_checksum({"tags": {"a", "b"}}) == "error"
    assert generate_checksum(cyclic) == "error"
    assert calculate_data_size(cyclic) == 0


def test_calculate_data_size_counts_utf8_bytes() -> None:
    """Size should be the UTF-8 byte length of the canonical form."""
    assert calculate_data_size({"a": "é"}) == 10


def test_build_storage_metadata_carries_version_and_strategy() -> None:
    """Storage metadata should record the version label and strategy."""
    version = make_version(data={"files": 1})

    metadata = build_storage_metadata(version)

    assert metadata.checksum == generate_checksum({"files": 1})
    assert metadata.size == calculate_data_size({"files": 1})
    assert metadata.extra == {"version": "1.0.0", "strategy": "semantic"}
    assert parse_timestamp(metadata.stored_at) is not None


def test_ensure_initialized_raises_before_initialize() -> None:
    """Guard should fail fast for uninitialized backends."""
    ensure_initialized(True)
    with pytest.raises(VerstoreNotInitializedError):
        ensure_initialized(False)


def test_parse_timestamp_handles_zulu_and_invalid_values() -> None:
    """Zulu timestamps should parse as aware datetimes."""
    parsed = parse_timestamp("2024-01-01T00:00:00Z")

    assert parsed is not None
    assert parsed.tzinfo is not None
    assert parse_timestamp("yesterday") is None


def test_serialize_payload_wraps_json_errors() -> None:
    """Serialization failures should carry the invalid version code."""
    assert serialize_payload({"id": "v1"}) == '{"id": "v1"}'
    with pytest.raises(VerstoreValidationError) as error_info:
        serialize_payload({"id": "v1", "data": {"tags": {"a"}}})

    assert error_info.value.code == "INVALID_VERSION_INFO"
    assert error_info.value.context == {"version_id": "v1"}
