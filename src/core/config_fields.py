"""Type-safe field parsing helpers for storage configuration.

This module centralizes primitive parsing so config mappings from code,
environment, and files produce consistent validation errors.
"""

from __future__ import annotations

from typing import Mapping, Sequence, cast

from core.constants import SUPPORTED_STORAGE_TYPES
from core.errors import VerstoreConfigError
from core.types import StorageType


def optional_string(options: Mapping[str, object], field_name: str) -> str | None:
    """Read an optional string field from a config mapping."""
    value = options.get(field_name)
    if value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        return stripped if stripped else None
    raise VerstoreConfigError(f"Storage option '{field_name}' must be a string when provided.")


def optional_int(options: Mapping[str, object], field_name: str) -> int | None:
    """Read an optional non-negative integer field from a config mapping."""
    value = options.get(field_name)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise VerstoreConfigError(f"Storage option '{field_name}' must be an integer.")
    if value < 0:
        raise VerstoreConfigError(
            f"Storage option '{field_name}' must be >= 0, got {value}."
        )
    return value


def int_with_default(options: Mapping[str, object], field_name: str, default_value: int) -> int:
    """Read an integer field while preserving explicit zero values."""
    value = optional_int(options, field_name)
    return default_value if value is None else value


def optional_float(options: Mapping[str, object], field_name: str) -> float | None:
    """Read an optional non-negative numeric field from a config mapping."""
    value = options.get(field_name)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise VerstoreConfigError(f"Storage option '{field_name}' must be numeric.")
    if value < 0:
        raise VerstoreConfigError(
            f"Storage option '{field_name}' must be >= 0, got {value}."
        )
    return float(value)


def float_with_default(
    options: Mapping[str, object], field_name: str, default_value: float
) -> float:
    """Read a numeric field while preserving explicit zero values."""
    value = optional_float(options, field_name)
    return default_value if value is None else value


def optional_bool(
    options: Mapping[str, object],
    field_name: str,
    default_value: bool,
) -> bool:
    """Read an optional boolean field from a config mapping."""
    value = options.get(field_name)
    if value is None:
        return default_value
    if isinstance(value, bool):
        return value
    raise VerstoreConfigError(f"Storage option '{field_name}' must be true/false.")


def string_tuple(
    options: Mapping[str, object],
    field_name: str,
    default_value: tuple[str, ...],
) -> tuple[str, ...]:
    """Read an optional list of strings from a config mapping."""
    value = options.get(field_name)
    if value is None:
        return default_value
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        items = cast(Sequence[object], value)
        if all(isinstance(item, str) for item in items):
            return tuple(cast(Sequence[str], items))
    raise VerstoreConfigError(f"Storage option '{field_name}' must be a list of strings.")


def parse_storage_type(value: object) -> StorageType:
    """Parse and validate a storage backend type."""
    if isinstance(value, str) and value in SUPPORTED_STORAGE_TYPES:
        return cast(StorageType, value)
    supported_rows = ", ".join(SUPPORTED_STORAGE_TYPES)
    raise VerstoreConfigError(f"Invalid storage type {value!r}. Use one of: {supported_rows}.")


def parse_bool_text(raw_value: str, variable_name: str) -> bool:
    """Parse a boolean environment value."""
    normalized = raw_value.strip().lower()
    if normalized in ("1", "true", "yes", "on"):
        return True
    if normalized in ("0", "false", "no", "off"):
        return False
    raise VerstoreConfigError(
        f"Invalid {variable_name} value: expected true/false, got '{raw_value}'. "
        f"Set {variable_name} to 'true' or 'false'."
    )


def parse_int_text(raw_value: str, variable_name: str) -> int:
    """Parse a non-negative integer environment value."""
    try:
        parsed = int(raw_value)
    except ValueError as error:
        raise VerstoreConfigError(
            f"Invalid {variable_name} value: expected integer, got '{raw_value}'. "
            f"Set {variable_name} to a numeric value."
        ) from error
    if parsed < 0:
        raise VerstoreConfigError(
            f"Invalid {variable_name} value: expected value >= 0, got {parsed}."
        )
    return parsed
