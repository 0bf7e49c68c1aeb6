"""Validation Error Taxonomy

Per-field problems are plain values accumulated during a validation run;
only schema misconfiguration raises, and it raises at definition time.

Error Format:
{
    "field": "address.zip",
    "message": "Field 'zip' has invalid format. Expected zip_code",
    "code": "invalid_format",
    "details": {"format": "zip_code", "value": "ABC"}
}
"""
from __future__ import annotations

import copy
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping


class ErrorCode(str, Enum):
    """Stable machine-readable codes carried by errors and warnings."""
    VALIDATION_FAILED = "validation_failed"
    REQUIRED_FIELD_MISSING = "required_field_missing"
    TYPE_MISMATCH = "type_mismatch"
    INVALID_FORMAT = "invalid_format"
    OUT_OF_RANGE = "out_of_range"
    INVALID_LENGTH = "invalid_length"
    CUSTOM_VALIDATION_FAILED = "custom_validation_failed"
    INVALID_ENUM_VALUE = "invalid_enum_value"
    PATTERN_MISMATCH = "pattern_mismatch"
    VALIDATOR_ERROR = "validator_error"
    REQUIRES_TOGETHER = "requires_together"
    REQUIRES_ONE_OF = "requires_one_of"
    UNEXPECTED_FIELD = "unexpected_field"
    INVALID_PAYLOAD = "invalid_payload"

    # File uploads
    NOT_A_FILE = "not_a_file"
    FILE_TOO_LARGE = "file_too_large"
    FILE_TOO_SMALL = "file_too_small"
    INVALID_CONTENT_TYPE = "invalid_content_type"
    MISSING_CONTENT_TYPE = "missing_content_type"
    INVALID_FILE_EXTENSION = "invalid_file_extension"
    INVALID_FILENAME_PATTERN = "invalid_filename_pattern"

    # Warnings
    WARNING = "warning"
    UNKNOWN_FIELD = "unknown_field"
    ELEMENT_DROPPED = "element_dropped"

    def __str__(self) -> str:
        return self.value


def _code(code: str | ErrorCode) -> str:
    return code.value if isinstance(code, ErrorCode) else str(code)


def _number(value: Any) -> Any:
    """Render integral floats without the trailing .0 in messages."""
    if isinstance(value, float) and value.is_integer(): return int(value)
    return value


@dataclass(frozen=True)
class FieldError:
    """A single field-addressed validation problem."""
    field: str
    message: str
    code: str = ErrorCode.VALIDATION_FAILED.value
    details: Mapping[str, Any] | None = None

    def __post_init__(self):
        object.__setattr__(self, "code", _code(self.code))
        if self.details is not None: object.__setattr__(self, "details", dict(self.details))

    def at(self, path: str) -> FieldError:
        """Copy of this error addressed to another field path (same code and details)."""
        moved = copy.copy(self)
        object.__setattr__(moved, "field", path)
        return moved

    def to_dict(self) -> dict[str, Any]:
        result = {"field": self.field, "message": self.message, "code": self.code}
        if self.details: result["details"] = dict(self.details)
        return result

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


class RequiredFieldMissing(FieldError):
    def __init__(self, field: str):
        super().__init__(field, f"Field '{field}' is required", ErrorCode.REQUIRED_FIELD_MISSING)


class TypeMismatch(FieldError):
    def __init__(self, field: str, expected: str, actual: str):
        super().__init__(
            field,
            f"Field '{field}' must be of type {expected}, got {actual}",
            ErrorCode.TYPE_MISMATCH,
            {"expected": expected, "actual": actual},
        )


class InvalidFormat(FieldError):
    def __init__(self, field: str, format: str, value: Any, message: str | None = None):
        super().__init__(
            field,
            message or f"Field '{field}' has invalid format. Expected {format}",
            ErrorCode.INVALID_FORMAT,
            {"format": format, "value": value},
        )


class OutOfRange(FieldError):
    def __init__(self, field: str, min: float | None = None, max: float | None = None, value: Any = None):
        details: dict[str, Any] = {}
        if min is not None and max is not None:
            message = f"Field '{field}' must be between {_number(min)} and {_number(max)}"
        elif min is not None:
            message = f"Field '{field}' must be at least {_number(min)}"
        elif max is not None:
            message = f"Field '{field}' must be at most {_number(max)}"
        else:
            message = f"Field '{field}' is out of range"
        if min is not None: details["min"] = min
        if max is not None: details["max"] = max
        if value is not None: details["value"] = value
        super().__init__(field, message, ErrorCode.OUT_OF_RANGE, details)


class InvalidLength(FieldError):
    def __init__(self, field: str, min: int | None = None, max: int | None = None, actual: int | None = None):
        details: dict[str, Any] = {}
        if min is not None and max is not None:
            message = f"Field '{field}' length must be between {min} and {max} characters"
        elif min is not None:
            message = f"Field '{field}' must be at least {min} characters"
        elif max is not None:
            message = f"Field '{field}' must be at most {max} characters"
        else:
            message = f"Field '{field}' has invalid length"
        if min is not None: details["min_length"] = min
        if max is not None: details["max_length"] = max
        if actual is not None: details["actual_length"] = actual
        super().__init__(field, message, ErrorCode.INVALID_LENGTH, details)


class CustomValidationFailure(FieldError):
    def __init__(self, field: str, message: str, code: str | ErrorCode = ErrorCode.CUSTOM_VALIDATION_FAILED,
                 details: Mapping[str, Any] | None = None):
        super().__init__(field, message, code, details)


@dataclass(frozen=True)
class FieldWarning:
    """Advisory notice that never turns a success into a failure."""
    field: str
    message: str
    code: str = ErrorCode.WARNING.value

    def __post_init__(self):
        object.__setattr__(self, "code", _code(self.code))

    def at(self, path: str) -> FieldWarning:
        return FieldWarning(path, self.message, self.code)

    def to_dict(self) -> dict[str, Any]:
        return {"field": self.field, "message": self.message, "code": self.code, "type": "warning"}


# ============================================================================
# Raised errors
# ============================================================================

class SchemaDefinitionError(Exception):
    """Programmer misconfiguration detected while a schema or registry is being built."""

    def __init__(self, message: str):
        self.detail = message
        super().__init__(f"Schema definition error: {message}")


class DuplicateFieldError(SchemaDefinitionError):
    def __init__(self, field_name: str):
        self.field_name = field_name
        super().__init__(f"Field '{field_name}' is already defined in this schema")


class InvalidSchemaError(SchemaDefinitionError):
    """A schema was used in a place that cannot accept it."""


class PayloadError(Exception):
    """Raw payload could not be decoded by a content parser."""

    def __init__(self, message: str, content_type: str | None = None):
        self.content_type = content_type
        super().__init__(message)
