"""Declarative Validation System

Schemas describe fields, types and constraints once; every validation run
coerces loosely typed input, accumulates every violation and returns an
Outcome (Success | Failure).

Key Features:
- SchemaBuilder with conditional groups, nested schemas and source routing
- Total, non-raising type coercion with an explicit custom-coercion registry
- Validator primitives: required, length, range, format, enum, pattern, custom
- Success/Failure outcome with map / flat_map / or_else and batch helpers
- Boundary validator for raw payloads and FastAPI dependencies

Usage:
    from formwork.validation import SchemaBuilder

    builder = SchemaBuilder("Signup")
    builder.field("name", str, required=True, min_length=2)
    builder.field("email", str, required=True, format="email")
    SIGNUP = builder.build()

    SIGNUP.validate({"name": "Al", "email": "al@example.com"}).match(
        success=lambda data: ...,
        failure=lambda failure: ...,
    )
"""
from .coercion import (
    NOT_COERCIBLE,
    DEFAULT_COERCER,
    CoercionRegistry,
    TypeCoercion,
    coerce,
    coerce_or_none,
    can_coerce,
    type_name,
)

from .context import ValidationContext

from .result import (
    Outcome,
    Success,
    Failure,
    ValidationFailure,
    success,
    failure,
    first_success,
    combine,
    sequence,
)

from .validators import (
    Validator,
    Required,
    Length,
    Range,
    Format,
    Enum,
    Pattern,
    Custom,
    Composite,
    Conditional,
    FileUpload,
    requires_together,
    requires_one_of,
)

from .schema import (
    PRESENT,
    ParamSource,
    UnknownFields,
    SchemaKind,
    FieldDefinition,
    ConditionalGroup,
    NestedBinding,
    SchemaDefinition,
    SchemaBuilder,
    request_schema,
    response_schema,
)

from .boundaries import (
    PayloadValidator,
    validate_payload,
    validate_request,
    validated,
)
