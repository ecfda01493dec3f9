"""Type-safe field parsing helpers for reader configuration.

This module centralizes primitive parsing so config loaders stay concise
and produce consistent validation errors.
"""

from __future__ import annotations

from typing import Mapping, Sequence, cast

from core.constants import SUPPORTED_STORAGE_KINDS
from core.errors import SegFeedConfigError
from core.types import StorageKind


def expect_mapping(value: object, context: str) -> Mapping[str, object]:
    """Validate a mapping with string keys."""
    if isinstance(value, Mapping):
        normalized_mapping = {}
        for key, payload in value.items():
            if not isinstance(key, str):
                raise SegFeedConfigError(
                    f"Invalid {context}: expected string keys, got {type(key).__name__}."
                )
            normalized_mapping[key] = payload
        return normalized_mapping
    raise SegFeedConfigError(
        f"Invalid {context}: expected object mapping, got {type(value).__name__}."
    )


def expect_sequence(value: object, context: str) -> Sequence[object]:
    """Validate a list-like value that is not a string."""
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return value
    raise SegFeedConfigError(f"Invalid {context}: expected list, got {type(value).__name__}.")


def required_string(args: Mapping[str, object], field_name: str, context: str) -> str:
    """Read a required string field."""
    value = optional_string(args, field_name, context)
    if value is None:
        raise SegFeedConfigError(f"Invalid {context}: missing required field '{field_name}'.")
    return value


def optional_string(args: Mapping[str, object], field_name: str, context: str) -> str | None:
    """Read an optional string field."""
    value = args.get(field_name)
    if value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        return stripped if stripped else None
    raise SegFeedConfigError(
        f"Invalid {context}: field '{field_name}' must be a string when provided."
    )


def optional_int(args: Mapping[str, object], field_name: str, context: str) -> int | None:
    """Read an optional integer field, rejecting booleans."""
    value = args.get(field_name)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise SegFeedConfigError(f"Invalid {context}: field '{field_name}' must be an integer.")
    return value


def int_with_default(
    args: Mapping[str, object],
    field_name: str,
    default_value: int,
    context: str,
) -> int:
    """Read an integer field while preserving explicit zero values."""
    value = optional_int(args, field_name, context)
    return default_value if value is None else value


def optional_bool(
    args: Mapping[str, object],
    field_name: str,
    default_value: bool,
    context: str,
) -> bool:
    """Read an optional boolean field."""
    value = args.get(field_name)
    if value is None:
        return default_value
    if isinstance(value, bool):
        return value
    raise SegFeedConfigError(f"Invalid {context}: field '{field_name}' must be true/false.")


def parse_storage_kind(args: Mapping[str, object], context: str) -> StorageKind:
    """Parse the storage kind of a stream declaration."""
    value = required_string(args, "storage", context)
    if value in SUPPORTED_STORAGE_KINDS:
        return cast(StorageKind, value)
    supported_rows = ", ".join(SUPPORTED_STORAGE_KINDS)
    raise SegFeedConfigError(
        f"Invalid {context}: storage '{value}' is not supported. Use one of: {supported_rows}."
    )


def reject_unknown_keys(
    mapping: Mapping[str, object],
    allowed_keys: set[str],
    context: str,
) -> None:
    """Fail when a mapping carries keys outside the allowed set."""
    unknown_keys = sorted(set(mapping) - allowed_keys)
    if unknown_keys:
        raise SegFeedConfigError(f"{context} contains unknown fields: {', '.join(unknown_keys)}.")
