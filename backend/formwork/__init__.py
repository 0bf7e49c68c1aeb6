"""Formwork: declarative schema validation and type coercion for request
and response payloads."""
__version__ = "0.1.0"

from formwork.config import Settings, get_settings
from formwork.logging import configure_logging, get_logger
from formwork.errors import (
    ErrorCode,
    FieldError,
    FieldWarning,
    SchemaDefinitionError,
    PayloadError,
    register_error_handlers,
)
from formwork.validation import (
    SchemaBuilder,
    SchemaDefinition,
    Success,
    Failure,
    TypeCoercion,
    CoercionRegistry,
    PayloadValidator,
    validated,
    request_schema,
    response_schema,
)
from formwork.parsers import ParserRegistry, default_registry
