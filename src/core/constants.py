"""Core constants used across verstore modules.

This module centralizes defaults, file naming, and error codes.
Keeping values here avoids magic literals in storage logic.
"""

from __future__ import annotations

STORAGE_TYPE_LOCAL = "local"
STORAGE_TYPE_REMOTE = "remote"
SUPPORTED_STORAGE_TYPES = (STORAGE_TYPE_LOCAL, STORAGE_TYPE_REMOTE)

DEFAULT_LOCAL_PATH = "./versions"
DEFAULT_REMOTE_URL = "http://localhost:8080/versions"
DEFAULT_TIMEOUT_MS = 10000
DEFAULT_RETRIES = 3
DEFAULT_RETRY_DELAY_MS = 1000
DEFAULT_MAX_AGE_DAYS = 7.0
DEFAULT_MAX_VERSIONS = 10

VERSION_FILE_SUFFIX = ".json"
BACKUP_FILE_SUFFIX = ".backup"
TEMP_FILE_SUFFIX = ".tmp"
STORAGE_ID_PREFIX = "storage"
STORAGE_ID_DIGEST_LENGTH = 10
HASH_ALGORITHM = "sha256"

CHECKSUM_UNAVAILABLE = "error"
SIZE_UNAVAILABLE = 0

ENV_STORAGE_TYPE = "VERSTORE_STORAGE_TYPE"
ENV_STORAGE_PATH = "VERSTORE_STORAGE_PATH"
ENV_API_KEY = "VERSTORE_API_KEY"
ENV_TIMEOUT_MS = "VERSTORE_TIMEOUT_MS"
ENV_RETRIES = "VERSTORE_RETRIES"
ENV_BACKUP_ENABLED = "VERSTORE_BACKUP_ENABLED"

ERROR_STORAGE = "STORAGE_ERROR"
ERROR_INVALID_CONFIG = "INVALID_CONFIG"
ERROR_VALIDATION = "VALIDATION_ERROR"
ERROR_INVALID_VERSION_INFO = "INVALID_VERSION_INFO"
ERROR_INVALID_VERSION_ID = "INVALID_VERSION_ID"
ERROR_INVALID_IMPORT_DATA = "INVALID_IMPORT_DATA"
ERROR_NOT_INITIALIZED = "STORAGE_NOT_INITIALIZED"
ERROR_VERSION_NOT_FOUND = "VERSION_NOT_FOUND"
ERROR_STORAGE_IO = "STORAGE_IO_ERROR"
ERROR_STORAGE_INIT = "STORAGE_INIT_ERROR"
ERROR_REMOTE = "REMOTE_ERROR"
ERROR_REMOTE_INIT = "REMOTE_INIT_ERROR"
ERROR_INVALID_RESPONSE = "INVALID_RESPONSE"
ERROR_IMPORT_NOT_IMPLEMENTED = "IMPORT_NOT_IMPLEMENTED"
ERROR_READ = "READ_ERROR"
ERROR_WRITE = "WRITE_ERROR"
ERROR_DELETE = "DELETE_ERROR"
ERROR_LIST = "LIST_ERROR"
ERROR_METADATA = "METADATA_ERROR"
ERROR_BACKUP = "BACKUP_ERROR"
ERROR_STORE = "STORE_ERROR"
ERROR_RETRIEVE = "RETRIEVE_ERROR"
ERROR_EXISTS = "EXISTS_ERROR"
ERROR_UPDATE_METADATA = "UPDATE_METADATA_ERROR"
ERROR_CLEANUP = "CLEANUP_ERROR"
ERROR_EXPORT = "EXPORT_ERROR"
ERROR_IMPORT = "IMPORT_ERROR"

HEALTH_ENDPOINT = "/health"
CLEANUP_ENDPOINT = "/cleanup"
EXPORT_ENDPOINT = "/export"
IMPORT_ENDPOINT = "/import"
