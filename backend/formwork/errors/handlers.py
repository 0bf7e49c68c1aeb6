"""FastAPI Exception Handlers

Renders validation failures raised at the request boundary as 422 JSON
bodies and malformed payloads as 400s.
"""
from __future__ import annotations

from typing import Any, Literal

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from formwork.logging import api_logger

from .formatters import ErrorFormatter, summarize
from .types import ErrorCode, PayloadError

log = api_logger()


class ValidationErrorBody(BaseModel):
    type: Literal["validation_error"] = "validation_error"
    message: str
    error_count: int
    errors: list[Any] | dict[str, list[Any]]
    warnings: list[dict[str, Any]] = Field(default_factory=list)
    schema_name: str | None = None


class ValidationErrorResponse(BaseModel):
    """422 body; also usable in a route's ``responses=`` for documentation."""
    error: ValidationErrorBody


class SchemaValidationException(Exception):
    """Carries a ValidationFailure out of code that does not return outcomes (e.g. dependencies)."""

    def __init__(self, failure, schema_name: str | None = None):
        self.failure, self.schema_name = failure, schema_name
        super().__init__(str(failure))


def failure_response(
    failure,
    *,
    schema_name: str | None = None,
    formatter: ErrorFormatter | None = None,
    include_warnings: bool | None = None,
    status_code: int = 422,
) -> JSONResponse:
    """Convert a ValidationFailure to a JSONResponse."""
    from formwork.config import get_settings

    formatter = formatter or ErrorFormatter.from_settings()
    if include_warnings is None: include_warnings = get_settings().ERROR_INCLUDE_WARNINGS

    log.warning(
        "validation_error_response",
        schema=schema_name,
        error_count=failure.error_count,
        fields=sorted({e.field for e in failure.errors}),
        codes=sorted({e.code for e in failure.errors}),
    )

    body = ValidationErrorResponse(error=ValidationErrorBody(
        message=summarize(failure.errors),
        error_count=failure.error_count,
        errors=formatter.format(failure.errors),
        warnings=formatter.format_warnings(failure.warnings) if include_warnings else [],
        schema_name=schema_name,
    ))
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", exclude_none=True))


async def schema_validation_handler(request: Request, exc: SchemaValidationException) -> JSONResponse:
    """Handle SchemaValidationException raised in routes or dependencies."""
    return failure_response(exc.failure, schema_name=exc.schema_name)


async def payload_error_handler(request: Request, exc: PayloadError) -> JSONResponse:
    """Handle a PayloadError that escaped a parser call."""
    log.info("payload_rejected", content_type=exc.content_type, error=str(exc))
    return JSONResponse(
        status_code=400,
        content={"error": {"type": ErrorCode.INVALID_PAYLOAD.value, "message": str(exc)}},
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register the handlers on a FastAPI app.

    Usage:
        app = FastAPI(...)
        register_error_handlers(app)
    """
    app.add_exception_handler(SchemaValidationException, schema_validation_handler)
    app.add_exception_handler(PayloadError, payload_error_handler)


def raise_for_outcome(outcome, schema_name: str | None = None) -> Any:
    """Return the Success value or raise SchemaValidationException.

    Usage:
        data = raise_for_outcome(SCHEMA.validate(payload))
    """
    if outcome.is_failure(): raise SchemaValidationException(outcome.error, schema_name)
    return outcome.value
