"""Validation at the Request Boundary

Ties the pieces together: raw payload → parser → optional sanitizer →
schema → outcome. Fields declared with a non-body source are read from
their own part of the request (path, query, headers, cookies).

Usage:
    validator = PayloadValidator(CREATE_USER)
    outcome = validator.validate_payload(body, "application/json")

    @app.post("/users")
    async def create_user(data: dict = Depends(validated(CREATE_USER))): ...
"""
from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping

from fastapi import Request
from starlette.exceptions import HTTPException
from starlette.formparsers import MultiPartException

from formwork.errors.handlers import SchemaValidationException
from formwork.errors.types import CustomValidationFailure, ErrorCode, PayloadError
from formwork.logging import api_logger, logging_context
from formwork.parsers.form import FormParser
from formwork.parsers.multipart import MultipartParser
from formwork.parsers.registry import ParserRegistry, default_registry
from formwork.parsers.sanitizer import Sanitizer

from .result import Failure, Outcome, failure
from .schema import ParamSource, SchemaDefinition

log = api_logger()

DEFAULT_REGISTRY = default_registry().freeze()
_BODY_SOURCES = (ParamSource.BODY, ParamSource.FORM, ParamSource.MULTIPART)


def payload_failure(error: PayloadError, payload: Any) -> Failure:
    """Failure with a single invalid_payload error at the document root."""
    raw = payload.decode("utf-8", "replace") if isinstance(payload, bytes) else payload
    return failure(CustomValidationFailure("$", str(error), ErrorCode.INVALID_PAYLOAD), raw)


class PayloadValidator:
    """Stateless validator for one schema.

    Usage:
        user_validator = PayloadValidator(USER_SCHEMA, sanitizer=Sanitizer.for_text())
        outcome = user_validator.validate_payload(raw, content_type)
    """

    __slots__ = ("schema", "registry", "sanitizer", "_query_parser")

    def __init__(self, schema: SchemaDefinition, registry: ParserRegistry | None = None,
                 sanitizer: Sanitizer | None = None):
        self.schema, self.registry, self.sanitizer = schema, registry or DEFAULT_REGISTRY, sanitizer
        self._query_parser = FormParser()

    def parse(self, payload: str | bytes | None, content_type: str | None = None) -> dict[str, Any]:
        """Decode a raw payload; raises PayloadError when it is malformed."""
        return self.registry.parse(payload, content_type)

    def validate_payload(self, payload: str | bytes | None, content_type: str | None = None) -> Outcome[dict[str, Any]]:
        """Parse then validate a request or response body."""
        try:
            data = self.parse(payload, content_type)
        except PayloadError as e:
            log.info("payload_rejected", schema=self.schema.name, content_type=content_type, error=str(e))
            return payload_failure(e, payload)
        return self.validate_data(data)

    def validate_data(self, data: Mapping[str, Any]) -> Outcome[dict[str, Any]]:
        if self.sanitizer is not None: data = self.sanitizer.clean(dict(data))
        return self.schema.validate(data)

    def validate_sources(
        self,
        *,
        body: Mapping[str, Any] | None = None,
        query: Mapping[str, Any] | Iterable[tuple[str, Any]] | None = None,
        path: Mapping[str, Any] | None = None,
        headers: Mapping[str, Any] | None = None,
        cookies: Mapping[str, Any] | None = None,
    ) -> Outcome[dict[str, Any]]:
        """Validate data already split by request part."""
        return self.validate_data(self.assemble(body=body, query=query, path=path, headers=headers, cookies=cookies))

    def assemble(
        self,
        *,
        body: Mapping[str, Any] | None = None,
        query: Mapping[str, Any] | Iterable[tuple[str, Any]] | None = None,
        path: Mapping[str, Any] | None = None,
        headers: Mapping[str, Any] | None = None,
        cookies: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """One mapping holding each declared field's value taken from its declared source.

        Body keys not claimed by another source are kept so the schema's
        unknown-field policy still sees them.
        """
        if query is None: query_data: dict[str, Any] = {}
        elif isinstance(query, Mapping): query_data = self._query_parser.from_mapping(query)
        else: query_data = self._query_parser.from_pairs(query)
        header_data = {str(k).lower(): v for k, v in (headers or {}).items()}
        sources: dict[ParamSource, Mapping[str, Any]] = {
            ParamSource.QUERY: query_data,
            ParamSource.PATH: path or {},
            ParamSource.COOKIE: cookies or {},
        }

        claimed = {f.name for f in self.schema.iter_fields() if f.source not in _BODY_SOURCES}
        data = {k: v for k, v in (body or {}).items() if k not in claimed}
        for definition in self.schema.iter_fields():
            if definition.source in _BODY_SOURCES: continue
            key = definition.alias or definition.name
            if definition.source is ParamSource.HEADER:
                for candidate in (key.lower(), key.lower().replace("_", "-")):
                    if candidate in header_data:
                        data[definition.name] = header_data[candidate]
                        break
                continue
            source = sources[definition.source]
            if key in source: data[definition.name] = source[key]
        return data


def validate_payload(schema: SchemaDefinition, payload: str | bytes | None, content_type: str | None = None, *,
                     registry: ParserRegistry | None = None, sanitizer: Sanitizer | None = None) -> Outcome[dict[str, Any]]:
    return PayloadValidator(schema, registry, sanitizer).validate_payload(payload, content_type)


def validate_request(schema: SchemaDefinition, *, registry: ParserRegistry | None = None,
                     sanitizer: Sanitizer | None = None, **sources: Any) -> Outcome[dict[str, Any]]:
    """``sources`` are the keyword arguments of ``PayloadValidator.validate_sources``."""
    return PayloadValidator(schema, registry, sanitizer).validate_sources(**sources)


# ============================================================================
# FastAPI Dependencies
# ============================================================================

async def read_body(request: Request, validator: PayloadValidator, raw: bytes,
                    content_type: str | None) -> dict[str, Any]:
    """Decoded request body; multipart forms go through Starlette's form parser."""
    if not raw: return {}
    parser = validator.registry.parser_for(content_type)
    if not isinstance(parser, MultipartParser): return validator.parse(raw, content_type)
    try:
        async with request.form() as form:
            return parser.from_parts(form.multi_items())
    except (HTTPException, MultiPartException) as e:
        message = getattr(e, "detail", None) or getattr(e, "message", None) or str(e)
        raise PayloadError(f"Malformed multipart payload: {message}", content_type) from e


def validated(schema: SchemaDefinition, *, registry: ParserRegistry | None = None,
              sanitizer: Sanitizer | None = None) -> Callable[[Request], Any]:
    """FastAPI dependency returning the validated mapping for a request.

    Raises SchemaValidationException (rendered as 422 by the registered
    handler) when the request does not satisfy ``schema``.

    Usage:
        @app.post("/users/{user_id}")
        async def update_user(data: dict = Depends(validated(UPDATE_USER))): ...
    """
    validator = PayloadValidator(schema, registry, sanitizer)

    async def dependency(request: Request) -> dict[str, Any]:
        raw = await request.body()
        content_type = request.headers.get("content-type")
        with logging_context(schema=schema.name, route=request.url.path):
            try:
                body = await read_body(request, validator, raw, content_type)
            except PayloadError as e:
                log.info("payload_rejected", content_type=content_type, error=str(e))
                raise SchemaValidationException(payload_failure(e, raw).error, schema.name) from e

            outcome = validator.validate_sources(
                body=body,
                query=request.query_params.multi_items(),
                path=request.path_params,
                headers=request.headers,
                cookies=request.cookies,
            )
        if isinstance(outcome, Failure):
            raise SchemaValidationException(outcome.error, schema.name)
        return outcome.value

    return dependency
