"""Error and Warning Model

Per-field problems are values, accumulated during a validation run and
returned inside a Failure. Only definition-time misconfiguration raises.

Key components:
- FieldError and its taxonomy: RequiredFieldMissing, TypeMismatch,
  InvalidFormat, OutOfRange, InvalidLength, CustomValidationFailure
- FieldWarning: advisory notices that never fail a run
- ErrorCode: stable machine-readable codes
- ErrorFormatter: grouping and detail levels for client rendering
- FastAPI handlers turning failures into 422 responses

Usage:
    from formwork.errors import register_error_handlers

    app = FastAPI()
    register_error_handlers(app)
"""
from .types import (
    ErrorCode,
    FieldError,
    FieldWarning,
    RequiredFieldMissing,
    TypeMismatch,
    InvalidFormat,
    OutOfRange,
    InvalidLength,
    CustomValidationFailure,
    SchemaDefinitionError,
    DuplicateFieldError,
    InvalidSchemaError,
    PayloadError,
)

from .formatters import (
    ErrorFormatter,
    GroupBy,
    DetailLevel,
    summarize,
    detailed_report,
    to_html,
)

from .handlers import (
    SchemaValidationException,
    ValidationErrorResponse,
    failure_response,
    register_error_handlers,
    raise_for_outcome,
)

__all__ = [
    "ErrorCode", "FieldError", "FieldWarning",
    "RequiredFieldMissing", "TypeMismatch", "InvalidFormat", "OutOfRange", "InvalidLength",
    "CustomValidationFailure", "SchemaDefinitionError", "DuplicateFieldError", "InvalidSchemaError",
    "PayloadError",
    "ErrorFormatter", "GroupBy", "DetailLevel", "summarize", "detailed_report", "to_html",
    "SchemaValidationException", "ValidationErrorResponse", "failure_response",
    "register_error_handlers", "raise_for_outcome",
]
