"""Integration tests for the local storage lifecycle."""

from __future__ import annotations

import json
from dataclasses import replace

from storage.version_payload import version_info_from_payload
from tests.fixture_paths import fixture_path
from tests.version_samples import make_version
from verstore import (
    batch_store,
    create_storage,
    get_statistics,
    load_storage_config,
    search_versions,
)


def test_local_lifecycle_from_config_file(tmp_path) -> None:
    """End-to-end flow should store, query, patch, and clean up versions."""
    config = replace(load_storage_config(fixture_path("config/storage.yaml")), path=str(tmp_path))
    storage = create_storage(config)
    storage.initialize()
    release_payload = json.loads(fixture_path("versions/release-1.0.0.json").read_text())
    release = version_info_from_payload(release_payload)

    batch_store(storage, [release] + [make_version(f"nightly-{index}") for index in range(6)])
    storage.store(make_version("nightly-0", data={"files": 100}))
    storage.update_metadata("release-1.0.0", {"reviewed": True})
    deleted = storage.cleanup()

    remaining = sorted(record.version_id for record in storage.list_versions())
    reviewed = storage.retrieve("release-1.0.0")
    assert deleted == 2
    assert len(remaining) == 5
    assert "release-1.0.0" in remaining
    assert reviewed is not None
    assert reviewed.metadata["reviewed"] is True
    assert (tmp_path / "nightly-0.json.backup").is_file()
    assert get_statistics(storage).total_versions == 5
    assert [item.version_id for item in search_versions(storage, {"version_id": "nope"})] == []
    storage.dispose()
