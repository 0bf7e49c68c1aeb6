"""Per-call validation state."""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping

from formwork.errors.types import CustomValidationFailure, ErrorCode, FieldError, FieldWarning

if TYPE_CHECKING:
    from .schema import SchemaDefinition


class ValidationContext:
    """Input data plus the error/warning accumulator of one validation run.

    ``field_value`` prefers the coerced value of a declared field so that
    constraint validators see typed values; ``raw_value`` always returns the
    input as received.
    """

    __slots__ = ("data", "schema", "errors", "warnings", "coerced")

    def __init__(self, data: Mapping[str, Any], schema: SchemaDefinition | None = None):
        self.data = data
        self.schema = schema
        self.errors: list[FieldError] = []
        self.warnings: list[FieldWarning] = []
        self.coerced: dict[str, Any] = {}

    def field_exists(self, name: str) -> bool:
        return name in self.data

    def field_value(self, name: str, default: Any = None) -> Any:
        if name in self.coerced: return self.coerced[name]
        return self.data.get(name, default)

    def raw_value(self, name: str, default: Any = None) -> Any:
        return self.data.get(name, default)

    def add_error(self, error: FieldError) -> None:
        self.errors.append(error)

    def fail(self, field: str, message: str, code: str | ErrorCode = ErrorCode.CUSTOM_VALIDATION_FAILED,
             **details) -> None:
        """Shorthand for custom validators."""
        self.errors.append(CustomValidationFailure(field, message, code, details or None))

    def add_warning(self, warning: FieldWarning) -> None:
        self.warnings.append(warning)

    def warn(self, field: str, message: str, code: str | ErrorCode = ErrorCode.WARNING) -> None:
        self.warnings.append(FieldWarning(field, message, code))

    def has_errors(self) -> bool:
        return bool(self.errors)

    def has_error_for(self, field: str) -> bool:
        return any(e.field == field for e in self.errors)

    def __repr__(self) -> str:
        return f"ValidationContext(fields={list(self.data)!r}, errors={len(self.errors)}, warnings={len(self.warnings)})"
