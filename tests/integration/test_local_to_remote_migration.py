"""Integration tests for moving versions between backends."""

from __future__ import annotations

import json
from typing import Any

import httpx

from tests.version_samples import make_version
from verstore import create_storage


def test_export_local_versions_into_remote_api(tmp_path) -> None:
    """A local export bundle should import through the remote API."""
    received: list[dict[str, Any]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/import"):
            received.append(json.loads(request.content))
            return httpx.Response(200, json={"importedCount": 2})
        return httpx.Response(200, json={"status": "ok"})

    local = create_storage({"type": "local", "path": str(tmp_path)})
    local.initialize()
    local.store(make_version("v1"))
    local.store(make_version("v2"))
    remote = create_storage(
        {"type": "remote", "path": "https://api.example.test/versions"},
        transport=httpx.MockTransport(handler),
    )
    remote.initialize()

    imported = remote.import_data(local.export_data())

    assert imported == 2
    assert sorted(item["id"] for item in received[0]["versions"]) == ["v1", "v2"]
    assert received[0]["metadata"]["storageType"] == "local"
    remote.dispose()
