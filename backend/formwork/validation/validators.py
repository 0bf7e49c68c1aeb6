"""Validator Primitives

Each validator inspects a ``ValidationContext`` and appends zero or more
errors; none of them raises during validation. Misconfiguration (no bounds,
empty enum list, broken regex) raises ``SchemaDefinitionError`` when the
validator is constructed, so it surfaces while the schema is being built.

Features:
- Frozen dataclass validators for immutability
- Regexes compiled once at construction
- ``describe()`` for schema introspection
- Custom validators isolated from the run: an exception becomes an error
"""
from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from ipaddress import IPv4Address, IPv6Address
from typing import Any, Callable, Sequence
from urllib.parse import urlparse

from formwork.errors.types import (
    CustomValidationFailure, ErrorCode, InvalidFormat, InvalidLength, OutOfRange,
    RequiredFieldMissing, SchemaDefinitionError,
)
from formwork.logging import schema_logger

from .coercion import UUID_RE
from .context import ValidationContext

log = schema_logger()

EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_RE = re.compile(r"^\d{2}:\d{2}(:\d{2})?$")
ISO8601_RE = re.compile(r"^\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}(:\d{2}(\.\d+)?)?(Z|[+-]\d{2}:?\d{2})?$")
HOSTNAME_RE = re.compile(
    r"^(?=.{1,253}$)[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?(\.[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)
PHONE_RE = re.compile(r"^\+?[1-9]\d{5,14}$")


def is_blank(value: Any) -> bool:
    """Absent-equivalent for required checks: None or the empty string."""
    return value is None or value == ""


class Validator(ABC):
    """Base class for validators run against a ValidationContext."""

    @abstractmethod
    def validate(self, context: ValidationContext) -> None:
        """Append errors for violations found in ``context``."""

    def describe(self) -> dict[str, Any]:
        return {"kind": type(self).__name__.lower()}

    def __call__(self, context: ValidationContext) -> None:
        self.validate(context)


# ============================================================================
# Field Validators
# ============================================================================

@dataclass(frozen=True, slots=True)
class Required(Validator):
    """Fails on absence, None or ""; False, 0 and empty collections pass."""
    field: str

    def validate(self, context: ValidationContext) -> None:
        if not context.field_exists(self.field) or is_blank(context.raw_value(self.field)):
            context.add_error(RequiredFieldMissing(self.field))


@dataclass(frozen=True, slots=True)
class Length(Validator):
    """Character count of strings or size of lists, bounds inclusive."""
    field: str
    min: int | None = None
    max: int | None = None

    def __post_init__(self):
        if self.min is None and self.max is None:
            raise SchemaDefinitionError(f"Length validator for '{self.field}' requires min or max")
        if (self.min is not None and self.min < 0) or (self.max is not None and self.max < 0):
            raise SchemaDefinitionError(f"Length bounds for '{self.field}' must be non-negative")
        if self.min is not None and self.max is not None and self.min > self.max:
            raise SchemaDefinitionError(f"Length min exceeds max for '{self.field}'")

    def validate(self, context: ValidationContext) -> None:
        value = context.field_value(self.field)
        if not isinstance(value, (str, list, tuple)): return
        actual = len(value)
        if (self.min is not None and actual < self.min) or (self.max is not None and actual > self.max):
            context.add_error(InvalidLength(self.field, self.min, self.max, actual))

    def describe(self) -> dict[str, Any]:
        return {"kind": "length", "min": self.min, "max": self.max}


@dataclass(frozen=True, slots=True)
class Range(Validator):
    """Inclusive numeric bounds; non-numeric values are left to the type check."""
    field: str
    min: float | None = None
    max: float | None = None

    def __post_init__(self):
        if self.min is None and self.max is None:
            raise SchemaDefinitionError(f"Range validator for '{self.field}' requires min or max")
        if self.min is not None and self.max is not None and self.min > self.max:
            raise SchemaDefinitionError(f"Range min exceeds max for '{self.field}'")

    def validate(self, context: ValidationContext) -> None:
        value = context.field_value(self.field)
        if isinstance(value, bool) or not isinstance(value, (int, float)): return
        if (self.min is not None and value < self.min) or (self.max is not None and value > self.max):
            context.add_error(OutOfRange(self.field, self.min, self.max, value))

    def describe(self) -> dict[str, Any]:
        return {"kind": "range", "min": self.min, "max": self.max}


def _valid_url(value: str) -> bool:
    parsed = urlparse(value)
    return bool(parsed.scheme and parsed.netloc)


def _valid_datetime(value: str) -> bool:
    if not ISO8601_RE.match(value): return False
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return False
    return True


def _valid_date(value: str) -> bool:
    if not DATE_RE.match(value): return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def _valid_ip(cls) -> Callable[[str], bool]:
    def check(value: str) -> bool:
        try:
            cls(value)
        except ValueError:
            return False
        return True
    return check


NAMED_FORMATS: dict[str, Callable[[str], bool]] = {
    "email": lambda v: bool(EMAIL_RE.match(v)),
    "url": _valid_url,
    "uri": _valid_url,
    "uuid": lambda v: bool(UUID_RE.match(v)),
    "iso8601": _valid_datetime,
    "datetime": _valid_datetime,
    "date": _valid_date,
    "time": lambda v: bool(TIME_RE.match(v)),
    "ipv4": _valid_ip(IPv4Address),
    "ipv6": _valid_ip(IPv6Address),
    "hostname": lambda v: bool(HOSTNAME_RE.match(v)),
    "phone": lambda v: bool(PHONE_RE.match(v)),
}


@dataclass(frozen=True, slots=True)
class Format(Validator):
    """Named format check, or a regex-backed custom format.

    ``name`` is one of NAMED_FORMATS, ``"custom"`` together with ``pattern``,
    or any other string, which is itself compiled as the regex.
    """
    field: str
    name: str
    pattern: str | None = None
    message: str | None = None
    _check: Callable[[str], bool] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if self.pattern is None and self.name in NAMED_FORMATS:
            object.__setattr__(self, "_check", NAMED_FORMATS[self.name])
            return
        if self.name == "custom" and self.pattern is None:
            raise SchemaDefinitionError(f"Custom format for '{self.field}' requires a pattern")
        source = self.pattern if self.pattern is not None else self.name
        try:
            regex = re.compile(source)
        except re.error as e:
            raise SchemaDefinitionError(f"Invalid format pattern for '{self.field}': {e}") from e
        object.__setattr__(self, "_check", lambda v: regex.search(v) is not None)

    def validate(self, context: ValidationContext) -> None:
        value = context.field_value(self.field)
        if not isinstance(value, str): return
        if not self._check(value):
            context.add_error(InvalidFormat(self.field, self.name, value, self.message))

    def describe(self) -> dict[str, Any]:
        return {"kind": "format", "format": self.name, "pattern": self.pattern}


@dataclass(frozen=True, slots=True)
class Enum(Validator):
    """Membership of the value's string form in a non-empty allowed list."""
    field: str
    allowed: tuple[str, ...]

    def __init__(self, field: str, allowed: Sequence[Any]):
        object.__setattr__(self, "field", field)
        object.__setattr__(self, "allowed", tuple(_enum_text(v) for v in allowed))
        if not self.allowed:
            raise SchemaDefinitionError(f"Enum validator for '{field}' requires at least one allowed value")

    def validate(self, context: ValidationContext) -> None:
        value = context.field_value(self.field)
        if value is None: return
        if _enum_text(value) not in self.allowed:
            context.add_error(CustomValidationFailure(
                self.field,
                f"Field '{self.field}' must be one of: {', '.join(self.allowed)}",
                ErrorCode.INVALID_ENUM_VALUE,
                {"allowed": list(self.allowed), "value": value},
            ))

    def describe(self) -> dict[str, Any]:
        return {"kind": "enum", "allowed": list(self.allowed)}


def _enum_text(value: Any) -> str:
    if isinstance(value, bool): return "true" if value else "false"
    return str(value)


@dataclass(frozen=True, slots=True)
class Pattern(Validator):
    """Regex search against the stringified value."""
    field: str
    regex: str
    message: str | None = None
    _compiled: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        try:
            object.__setattr__(self, "_compiled", re.compile(self.regex))
        except re.error as e:
            raise SchemaDefinitionError(f"Invalid pattern for '{self.field}': {e}") from e

    def validate(self, context: ValidationContext) -> None:
        value = context.field_value(self.field)
        if value is None or isinstance(value, (dict, list)): return
        text = _enum_text(value)
        if self._compiled.search(text) is None:
            context.add_error(CustomValidationFailure(
                self.field,
                self.message or f"Field '{self.field}' does not match required pattern",
                ErrorCode.PATTERN_MISMATCH,
                {"pattern": self.regex, "value": text},
            ))

    def describe(self) -> dict[str, Any]:
        return {"kind": "pattern", "pattern": self.regex}


@dataclass(frozen=True, slots=True)
class FileUpload(Validator):
    """Checks a multipart file record: {"filename", "content_type", "size"}."""
    field: str
    max_size: int | None = None
    min_size: int | None = None
    allowed_types: tuple[str, ...] = ()
    allowed_extensions: tuple[str, ...] = ()
    filename_pattern: str | None = None
    _filename_re: re.Pattern | None = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "allowed_types", tuple(t.lower() for t in self.allowed_types))
        object.__setattr__(self, "allowed_extensions",
                           tuple(e.lower().lstrip(".") for e in self.allowed_extensions))
        if self.filename_pattern is not None:
            try:
                object.__setattr__(self, "_filename_re", re.compile(self.filename_pattern))
            except re.error as e:
                raise SchemaDefinitionError(f"Invalid filename pattern for '{self.field}': {e}") from e

    def validate(self, context: ValidationContext) -> None:
        value = context.field_value(self.field)
        if value is None: return
        if not isinstance(value, dict) or "filename" not in value:
            context.add_error(CustomValidationFailure(
                self.field, f"Field '{self.field}' must be a file upload", ErrorCode.NOT_A_FILE))
            return
        size = value.get("size") or 0
        filename = str(value.get("filename") or "")
        content_type = value.get("content_type")

        if self.max_size is not None and size > self.max_size:
            context.add_error(CustomValidationFailure(
                self.field, f"File '{filename}' exceeds maximum size of {self.max_size} bytes",
                ErrorCode.FILE_TOO_LARGE, {"max_size": self.max_size, "size": size}))
        if self.min_size is not None and size < self.min_size:
            context.add_error(CustomValidationFailure(
                self.field, f"File '{filename}' is smaller than minimum size of {self.min_size} bytes",
                ErrorCode.FILE_TOO_SMALL, {"min_size": self.min_size, "size": size}))
        if self.allowed_types:
            if not content_type:
                context.add_error(CustomValidationFailure(
                    self.field, f"File '{filename}' has no content type", ErrorCode.MISSING_CONTENT_TYPE))
            elif content_type.split(";")[0].strip().lower() not in self.allowed_types:
                context.add_error(CustomValidationFailure(
                    self.field, f"File type '{content_type}' is not allowed. Allowed: {', '.join(self.allowed_types)}",
                    ErrorCode.INVALID_CONTENT_TYPE, {"allowed": list(self.allowed_types)}))
        if self.allowed_extensions:
            extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
            if extension not in self.allowed_extensions:
                context.add_error(CustomValidationFailure(
                    self.field, f"File extension '{extension}' is not allowed. Allowed: {', '.join(self.allowed_extensions)}",
                    ErrorCode.INVALID_FILE_EXTENSION, {"allowed": list(self.allowed_extensions)}))
        if self._filename_re is not None and not self._filename_re.search(filename):
            context.add_error(CustomValidationFailure(
                self.field, f"Filename '{filename}' does not match required pattern",
                ErrorCode.INVALID_FILENAME_PATTERN, {"pattern": self.filename_pattern}))

    def describe(self) -> dict[str, Any]:
        return {"kind": "file_upload", "max_size": self.max_size, "min_size": self.min_size,
                "allowed_types": list(self.allowed_types), "allowed_extensions": list(self.allowed_extensions)}


# ============================================================================
# Schema-level Validators
# ============================================================================

class Custom(Validator):
    """Arbitrary logic with access to every field of the input.

    ``fn`` receives the context and reports problems through
    ``context.fail`` / ``context.add_error``. An exception raised by ``fn`` is
    logged and recorded as a ``validator_error`` at ``field``.
    """

    __slots__ = ("fn", "name", "field")

    def __init__(self, fn: Callable[[ValidationContext], Any], name: str | None = None, field: str = "$"):
        self.fn, self.field = fn, field
        self.name = name or getattr(fn, "__name__", "custom")

    def validate(self, context: ValidationContext) -> None:
        try:
            self.fn(context)
        except Exception as e:
            log.warning("custom_validator_raised", validator=self.name, error_type=type(e).__name__, error=str(e))
            context.add_error(CustomValidationFailure(
                self.field, f"Validator '{self.name}' failed: {e}", ErrorCode.VALIDATOR_ERROR,
                {"validator": self.name}))

    def describe(self) -> dict[str, Any]:
        return {"kind": "custom", "name": self.name}

    def __repr__(self) -> str:
        return f"Custom(name={self.name!r})"


class Composite(Validator):
    """Runs every member validator in order."""

    __slots__ = ("validators",)

    def __init__(self, validators: Sequence[Validator]):
        self.validators = tuple(validators)

    def validate(self, context: ValidationContext) -> None:
        for validator in self.validators:
            validator.validate(context)

    def describe(self) -> dict[str, Any]:
        return {"kind": "composite", "validators": [v.describe() for v in self.validators]}


class Conditional(Validator):
    """Runs ``validator`` only when ``predicate(context)`` is true."""

    __slots__ = ("predicate", "validator")

    def __init__(self, predicate: Callable[[ValidationContext], bool], validator: Validator):
        self.predicate, self.validator = predicate, validator

    def validate(self, context: ValidationContext) -> None:
        if self.predicate(context): self.validator.validate(context)

    def describe(self) -> dict[str, Any]:
        return {"kind": "conditional", "validator": self.validator.describe()}


def requires_together(*fields: str) -> Custom:
    """Either all of ``fields`` are present or none of them."""
    if len(fields) < 2: raise SchemaDefinitionError("requires_together needs at least two fields")

    def check(context: ValidationContext) -> None:
        present = [f for f in fields if not is_blank(context.raw_value(f))]
        if present and len(present) != len(fields):
            for missing in (f for f in fields if f not in present):
                context.fail(missing, f"Field '{missing}' is required when {', '.join(present)} is present",
                             ErrorCode.REQUIRES_TOGETHER, fields=list(fields))

    return Custom(check, name=f"requires_together({', '.join(fields)})")


def requires_one_of(*fields: str) -> Custom:
    """At least one of ``fields`` is present."""
    if len(fields) < 2: raise SchemaDefinitionError("requires_one_of needs at least two fields")

    def check(context: ValidationContext) -> None:
        if all(is_blank(context.raw_value(f)) for f in fields):
            context.fail(fields[0], f"At least one of {', '.join(fields)} is required",
                         ErrorCode.REQUIRES_ONE_OF, fields=list(fields))

    return Custom(check, name=f"requires_one_of({', '.join(fields)})")
