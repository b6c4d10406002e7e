"""Verstore exception hierarchy.

This module defines traceable storage errors with clear boundaries.
Every error carries a machine-readable code, context, and timestamp.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from core.constants import (
    ERROR_IMPORT_NOT_IMPLEMENTED,
    ERROR_INVALID_CONFIG,
    ERROR_NOT_INITIALIZED,
    ERROR_REMOTE,
    ERROR_STORAGE,
    ERROR_STORAGE_IO,
    ERROR_VALIDATION,
    ERROR_VERSION_NOT_FOUND,
)


class VerstoreError(Exception):
    """Base exception for all storage engine failures."""

    default_code = ERROR_STORAGE

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.context: dict[str, Any] = dict(context or {})
        self.timestamp = datetime.now(timezone.utc).isoformat()


class VerstoreConfigError(VerstoreError):
    """Raised for invalid storage configuration."""

    default_code = ERROR_INVALID_CONFIG


class VerstoreValidationError(VerstoreError):
    """Raised when a version, id, or bundle fails structural checks."""

    default_code = ERROR_VALIDATION


class VerstoreNotInitializedError(VerstoreError):
    """Raised when a backend is used before initialize()."""

    default_code = ERROR_NOT_INITIALIZED


class VerstoreNotFoundError(VerstoreError):
    """Raised when a metadata operation targets a missing version."""

    default_code = ERROR_VERSION_NOT_FOUND


class VerstoreIOError(VerstoreError):
    """Raised for local filesystem failures."""

    default_code = ERROR_STORAGE_IO


class VerstoreRemoteError(VerstoreError):
    """Raised when the remote API answers with a non-success status."""

    default_code = ERROR_REMOTE


class VerstoreUnsupportedOperationError(VerstoreError):
    """Raised when a backend has not opted in to an extension point."""

    default_code = ERROR_IMPORT_NOT_IMPLEMENTED


def create_error(
    message: str,
    code: str,
    context: Mapping[str, Any] | None = None,
    error_type: type[VerstoreError] = VerstoreError,
) -> VerstoreError:
    """Build a coded storage error.

    Args:
        message: Human readable failure description.
        code: Stable machine-readable error code.
        context: Optional structured context for logs and callers.
        error_type: Concrete error class to instantiate.

    Returns:
        Error instance stamped with the current UTC timestamp.
    """
    return error_type(message, code=code, context=context)
