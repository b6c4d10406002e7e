"""Backend selection for verstore."""

from __future__ import annotations

import httpx

from core.config import StorageConfig, merge_with_defaults
from core.constants import STORAGE_TYPE_LOCAL, STORAGE_TYPE_REMOTE, SUPPORTED_STORAGE_TYPES
from core.errors import VerstoreConfigError
from storage.contract import ConfigOverride, VersionStore
from storage.local_storage import LocalStorage
from storage.remote_storage import RemoteStorage


def create_storage(
    config: ConfigOverride = None,
    transport: httpx.BaseTransport | None = None,
) -> VersionStore:
    """Create an uninitialized storage backend from config.

    Args:
        config: Complete config, partial mapping, or None to read
            ``VERSTORE_*`` environment variables.
        transport: Optional httpx transport for the remote backend.

    Returns:
        A ``LocalStorage`` or ``RemoteStorage`` instance.

    Raises:
        VerstoreConfigError: If the storage type is not supported.
    """
    resolved = StorageConfig.from_env() if config is None else merge_with_defaults(config)
    if resolved.type == STORAGE_TYPE_LOCAL:
        return LocalStorage(resolved)
    if resolved.type == STORAGE_TYPE_REMOTE:
        return RemoteStorage(resolved, transport=transport)
    raise VerstoreConfigError(
        f"Unsupported storage type: {resolved.type!r}. "
        f"Use one of: {', '.join(SUPPORTED_STORAGE_TYPES)}."
    )
