"""Remote HTTP storage backend.

This module is a thin typed client over a versions REST resource.
Each operation maps to one endpoint below the configured base URL;
requests carry bearer auth, a per-attempt timeout, and bounded retries.
"""

from __future__ import annotations

import gzip
import time
from typing import Any, Callable, Mapping
from urllib.parse import quote

import httpx

from core.config import StorageConfig, default_storage_config, merge_with_defaults
from core.constants import (
    CLEANUP_ENDPOINT,
    ERROR_CLEANUP,
    ERROR_DELETE,
    ERROR_EXISTS,
    ERROR_EXPORT,
    ERROR_IMPORT,
    ERROR_INVALID_CONFIG,
    ERROR_INVALID_RESPONSE,
    ERROR_LIST,
    ERROR_METADATA,
    ERROR_REMOTE_INIT,
    ERROR_RETRIEVE,
    ERROR_STORE,
    ERROR_UPDATE_METADATA,
    ERROR_VERSION_NOT_FOUND,
    EXPORT_ENDPOINT,
    HEALTH_ENDPOINT,
    IMPORT_ENDPOINT,
    STORAGE_TYPE_REMOTE,
)
from core.errors import (
    VerstoreConfigError,
    VerstoreNotFoundError,
    VerstoreRemoteError,
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
    generate_storage_path,
    log_storage_error,
    require_valid_version_id,
    require_valid_version_info,
    serialize_payload,
    validate_config,
)
from storage.version_payload import (
    export_bundle_from_payload,
    export_bundle_to_payload,
    storage_metadata_from_payload,
    version_info_from_payload,
    version_info_to_payload,
    version_storage_from_payload,
)

_LOGGER = get_logger(__name__)
_NOT_FOUND = 404


class RemoteStorage:
    """Version store backed by a remote HTTP API."""

    def __init__(
        self,
        config: ConfigOverride = None,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the client from config without opening connections.

        Args:
            config: Complete config, partial mapping, or None for defaults.
            transport: Optional httpx transport, e.g. a proxy or mock. Clients
                built by this storage close it on dispose.
            sleep: Blocking delay function used between retry attempts.

        Raises:
            VerstoreConfigError: If the config targets another backend type.
        """
        self._config = _remote_config(config)
        self._transport = transport
        self._sleep = sleep
        self._client: httpx.Client | None = None
        self._initialized = False

    @property
    def storage_type(self) -> str:
        return STORAGE_TYPE_REMOTE

    @property
    def config(self) -> StorageConfig:
        return self._config

    @property
    def is_ready(self) -> bool:
        return self._initialized

    def initialize(self, config: StorageConfig | None = None) -> None:
        """Open the HTTP client and probe the health endpoint.

        Args:
            config: Optional replacement configuration.

        Raises:
            VerstoreRemoteError: If the health check answers non-2xx.
            httpx.TransportError: If the API is unreachable after all retries.
        """
        if config is not None:
            self._config = _remote_config(config)
            self._close_client()
        if self._client is None:
            self._client = self._build_client(self._config)
        response = self._request("GET", HEALTH_ENDPOINT)
        if not response.is_success:
            self._raise_for_response(
                response, "Remote storage initialization failed", ERROR_REMOTE_INIT, "initialize"
            )
        self._initialized = True
        _LOGGER.info("remote_storage_initialized", url=self._config.path)

    def store(self, version_info: VersionInfo, config: ConfigOverride = None) -> VersionStorage:
        """POST a version to the API.

        Args:
            version_info: Version snapshot to persist.
            config: Unused; the remote server owns storage options.

        Returns:
            Storage record from the server, completed with local values
            for any field the server omits.

        Raises:
            VerstoreValidationError: If the version fails structural checks.
            VerstoreRemoteError: If the server rejects the request.
        """
        ensure_initialized(self._initialized)
        require_valid_version_info(version_info)
        response = self._request("POST", "", version_info_to_payload(version_info))
        if not response.is_success:
            self._raise_for_response(
                response, "Failed to store version", ERROR_STORE, "store", version_info.id
            )
        result = self._json_body(response, optional=True)
        metadata = (
            storage_metadata_from_payload(result["metadata"])
            if isinstance(result.get("metadata"), Mapping)
            else build_storage_metadata(version_info)
        )
        _LOGGER.info("version_stored", version_id=version_info.id, url=self._config.path)
        return VersionStorage(
            id=str(result.get("id") or generate_storage_id(version_info.id)),
            version_id=version_info.id,
            path=str(result.get("path") or generate_storage_path(version_info.id, self._config)),
            metadata=metadata,
        )

    def retrieve(self, version_id: str) -> VersionInfo | None:
        """GET a version; a 404 answer yields None."""
        ensure_initialized(self._initialized)
        require_valid_version_id(version_id)
        response = self._request("GET", _version_endpoint(version_id))
        if response.status_code == _NOT_FOUND:
            return None
        if not response.is_success:
            self._raise_for_response(
                response, "Failed to retrieve version", ERROR_RETRIEVE, "retrieve", version_id
            )
        return _parse_payload(self._json_body(response), version_info_from_payload)

    def delete(self, version_id: str) -> bool:
        """DELETE a version; a 404 answer yields False."""
        ensure_initialized(self._initialized)
        require_valid_version_id(version_id)
        response = self._request("DELETE", _version_endpoint(version_id))
        if response.status_code == _NOT_FOUND:
            return False
        if not response.is_success:
            self._raise_for_response(
                response, "Failed to delete version", ERROR_DELETE, "delete", version_id
            )
        result = self._json_body(response, optional=True)
        deleted = bool(result.get("deleted", True))
        _LOGGER.info("version_deleted", version_id=version_id, deleted=deleted)
        return deleted

    def list_versions(self, config: ConfigOverride = None) -> list[VersionStorage]:
        """GET all storage records in server-defined order."""
        ensure_initialized(self._initialized)
        response = self._request("GET", "")
        if not response.is_success:
            self._raise_for_response(response, "Failed to list versions", ERROR_LIST, "list")
        raw_versions = self._json_body(response).get("versions") or []
        if not isinstance(raw_versions, list):
            raise create_error(
                "Invalid list response: 'versions' must be a list.",
                ERROR_INVALID_RESPONSE,
                {"url": self._config.path},
                error_type=VerstoreRemoteError,
            )
        return [_parse_payload(item, version_storage_from_payload) for item in raw_versions]

    def exists(self, version_id: str) -> bool:
        """HEAD the existence endpoint; a 404 answer yields False."""
        ensure_initialized(self._initialized)
        require_valid_version_id(version_id)
        response = self._request("HEAD", f"{_version_endpoint(version_id)}/exists")
        if response.status_code == _NOT_FOUND:
            return False
        if not response.is_success:
            self._raise_for_response(
                response, "Failed to check version existence", ERROR_EXISTS, "exists", version_id
            )
        return True

    def get_metadata(self, version_id: str) -> StorageMetadata:
        """GET storage metadata for a version.

        Raises:
            VerstoreNotFoundError: If the server answers 404.
            VerstoreRemoteError: For any other non-2xx answer.
        """
        ensure_initialized(self._initialized)
        require_valid_version_id(version_id)
        response = self._request("GET", f"{_version_endpoint(version_id)}/metadata")
        if response.status_code == _NOT_FOUND:
            raise _not_found(version_id)
        if not response.is_success:
            self._raise_for_response(
                response, "Failed to get metadata", ERROR_METADATA, "get_metadata", version_id
            )
        return storage_metadata_from_payload(self._json_body(response))

    def update_metadata(self, version_id: str, patch: Mapping[str, Any]) -> bool:
        """PATCH a version's metadata; the server applies merge semantics.

        Raises:
            VerstoreNotFoundError: If the server answers 404.
            VerstoreRemoteError: For any other non-2xx answer.
        """
        ensure_initialized(self._initialized)
        require_valid_version_id(version_id)
        response = self._request("PATCH", f"{_version_endpoint(version_id)}/metadata", dict(patch))
        if response.status_code == _NOT_FOUND:
            raise _not_found(version_id)
        if not response.is_success:
            self._raise_for_response(
                response,
                "Failed to update metadata",
                ERROR_UPDATE_METADATA,
                "update_metadata",
                version_id,
            )
        _LOGGER.info("version_metadata_updated", version_id=version_id, keys=sorted(patch))
        return True

    def cleanup(self, config: ConfigOverride = None) -> int:
        """Ask the server to apply the retention policy.

        Args:
            config: Optional override; its retention options are sent.

        Returns:
            The server-reported number of deleted versions.
        """
        ensure_initialized(self._initialized)
        effective = self._config if config is None else merge_with_defaults(config, self._config)
        retention = effective.options.retention
        body = {
            "maxAgeDays": retention.max_age_days,
            "maxVersions": retention.max_versions,
            "keepForever": list(retention.keep_forever),
        }
        response = self._request("POST", CLEANUP_ENDPOINT, body)
        if not response.is_success:
            self._raise_for_response(
                response, "Failed to cleanup versions", ERROR_CLEANUP, "cleanup"
            )
        deleted_count = self._json_body(response, optional=True).get("deletedCount", 0)
        _LOGGER.info("cleanup_completed", url=self._config.path, deleted=deleted_count)
        return int(deleted_count)

    def validate(self, config: StorageConfig | None = None) -> bool:
        """Probe the health endpoint once, without retries or state changes."""
        target = config or self._config
        if not validate_config(target):
            return False
        try:
            with self._build_client(target) as client:
                response = client.get(_url(target, HEALTH_ENDPOINT))
        except httpx.HTTPError as error:
            _LOGGER.warning("remote_storage_unreachable", url=target.path, error=str(error))
            return False
        return response.is_success

    def dispose(self) -> None:
        self._close_client()
        self._initialized = False

    def export_data(self) -> ExportBundle:
        """GET the server-side export bundle."""
        ensure_initialized(self._initialized)
        response = self._request("GET", EXPORT_ENDPOINT)
        if not response.is_success:
            self._raise_for_response(response, "Failed to export data", ERROR_EXPORT, "export")
        return _parse_payload(self._json_body(response), export_bundle_from_payload)

    def import_data(self, bundle: ExportBundle | Mapping[str, Any]) -> int:
        """POST an export bundle for server-side import.

        Returns:
            The server-reported import count, or the bundle size.

        Raises:
            VerstoreValidationError: If the bundle is malformed.
        """
        ensure_initialized(self._initialized)
        validated = operations.validate_import_bundle(bundle)
        response = self._request("POST", IMPORT_ENDPOINT, export_bundle_to_payload(validated))
        if not response.is_success:
            self._raise_for_response(response, "Failed to import data", ERROR_IMPORT, "import")
        imported = self._json_body(response, optional=True).get(
            "importedCount", len(validated.versions)
        )
        _LOGGER.info("versions_imported", url=self._config.path, count=imported)
        return int(imported)

    def _request(
        self,
        method: str,
        endpoint: str,
        body: Mapping[str, Any] | None = None,
    ) -> httpx.Response:
        """Send one request with up to ``retries + 1`` attempts.

        Transport failures and 5xx answers are retried after an exponential
        delay. The last transport error is re-raised unchanged once attempts
        run out; a final 5xx answer is returned to the caller.
        """
        if self._client is None:
            self._client = self._build_client(self._config)
        options = self._config.options
        url = _url(self._config, endpoint)
        content, headers = self._encode_body(body)
        attempts = options.retries + 1
        if attempts < 1:
            raise create_error(
                f"Invalid retries value {options.retries}: expected a value >= 0.",
                ERROR_INVALID_CONFIG,
                {"retries": options.retries},
                error_type=VerstoreConfigError,
            )
        last_error: httpx.TransportError | None = None
        for attempt in range(attempts):
            is_last_attempt = attempt == attempts - 1
            try:
                response = self._client.request(method, url, content=content, headers=headers)
            except httpx.TransportError as error:
                last_error = error
                if is_last_attempt:
                    break
                self._wait_before_retry(method, url, attempt, str(error))
                continue
            if response.is_server_error and not is_last_attempt:
                self._wait_before_retry(method, url, attempt, f"HTTP {response.status_code}")
                continue
            return response
        log_storage_error(_LOGGER, last_error, "request", method=method, url=url)
        raise last_error

    def _wait_before_retry(self, method: str, url: str, attempt: int, reason: str) -> None:
        delay_seconds = self._config.options.retry_delay_ms * (2**attempt) / 1000
        _LOGGER.warning(
            "remote_request_retry",
            method=method,
            url=url,
            attempt=attempt + 1,
            delay_seconds=delay_seconds,
            reason=reason,
        )
        self._sleep(delay_seconds)

    def _encode_body(
        self, body: Mapping[str, Any] | None
    ) -> tuple[bytes | None, dict[str, str]]:
        if body is None:
            return None, {}
        content = serialize_payload(body).encode("utf-8")
        if self._config.options.compression_enabled:
            return gzip.compress(content), {"Content-Encoding": "gzip"}
        return content, {}

    def _build_client(self, config: StorageConfig) -> httpx.Client:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if config.options.api_key:
            headers["Authorization"] = f"Bearer {config.options.api_key}"
        return httpx.Client(
            headers=headers,
            timeout=httpx.Timeout(config.options.timeout_ms / 1000),
            transport=self._transport,
        )

    def _close_client(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def _json_body(self, response: httpx.Response, optional: bool = False) -> dict[str, Any]:
        """Decode a JSON object body; empty bodies are allowed when optional."""
        if optional and not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError as error:
            raise create_error(
                f"Invalid JSON response from {response.request.url}: {error}",
                ERROR_INVALID_RESPONSE,
                {"status": response.status_code},
                error_type=VerstoreRemoteError,
            ) from error
        if not isinstance(payload, dict):
            raise create_error(
                f"Invalid response from {response.request.url}: expected a JSON object.",
                ERROR_INVALID_RESPONSE,
                {"status": response.status_code},
                error_type=VerstoreRemoteError,
            )
        return payload

    def _raise_for_response(
        self,
        response: httpx.Response,
        message: str,
        code: str,
        operation: str,
        version_id: str | None = None,
    ) -> None:
        error = create_error(
            message,
            code,
            {
                "status": response.status_code,
                "status_text": response.reason_phrase,
                "error": _error_body(response),
                "version_id": version_id,
            },
            error_type=VerstoreRemoteError,
        )
        log_storage_error(_LOGGER, error, operation, url=str(response.request.url))
        raise error


def _remote_config(config: ConfigOverride) -> StorageConfig:
    resolved = merge_with_defaults(config, default_storage_config(STORAGE_TYPE_REMOTE))
    if resolved.type != STORAGE_TYPE_REMOTE:
        raise VerstoreConfigError(
            f"RemoteStorage requires a '{STORAGE_TYPE_REMOTE}' config, got '{resolved.type}'."
        )
    return resolved


def _url(config: StorageConfig, endpoint: str) -> str:
    return f"{config.path.rstrip('/')}{endpoint}"


def _version_endpoint(version_id: str) -> str:
    return f"/{quote(version_id, safe='')}"


def _parse_payload(payload: object, parser: Callable[[object], Any]) -> Any:
    """Run a payload parser, reporting malformed server data as a remote error."""
    try:
        return parser(payload)
    except VerstoreValidationError as error:
        raise create_error(
            f"Invalid response payload: {error}",
            ERROR_INVALID_RESPONSE,
            error_type=VerstoreRemoteError,
        ) from error


def _not_found(version_id: str) -> VerstoreNotFoundError:
    return VerstoreNotFoundError(
        "Version not found", code=ERROR_VERSION_NOT_FOUND, context={"version_id": version_id}
    )


def _error_body(response: httpx.Response) -> object:
    try:
        return response.json()
    except ValueError:
        return response.text
