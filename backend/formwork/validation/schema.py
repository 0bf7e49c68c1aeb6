"""Declarative Schema Definitions

Schemas are assembled through an ordered sequence of builder calls and then
frozen into an immutable ``SchemaDefinition`` before first use:

    builder = SchemaBuilder("CreateAccount")
    builder.field("name", str, required=True, min_length=2)
    builder.field("email", str, required=True, format="email")
    builder.field("type", str, required=True, enum=["individual", "business"])
    with builder.when_field("type", "business") as group:
        group.field("tax_id", str, required=True, pattern=r"^\\d{9}$")
    builder.nested("address", ADDRESS_SCHEMA)
    ACCOUNT_SCHEMA = builder.build()

    outcome = ACCOUNT_SCHEMA.validate(payload)

Validation always runs to completion and accumulates every violation:
required fields, per-field coercion and constraints, custom validators,
conditional groups, nested schemas and finally the unknown-field policy.
"""
from __future__ import annotations

import json
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Iterator, Mapping, Sequence

from formwork.errors.types import (
    CustomValidationFailure, DuplicateFieldError, ErrorCode, InvalidSchemaError,
    RequiredFieldMissing, SchemaDefinitionError, TypeMismatch,
)
from formwork.logging import schema_logger

from .coercion import DEFAULT_COERCER, NOT_COERCIBLE, TypeCoercion, coercion_error, json_type_name, type_name
from .context import ValidationContext
from .result import Outcome, Success, failure
from .validators import Custom, Enum as EnumValidator, Format, Length, Pattern, Range, Validator, is_blank
from .validators import requires_one_of as _requires_one_of, requires_together as _requires_together

log = schema_logger()


class ParamSource(str, Enum):
    """Where a request field is read from."""
    PATH = "path"
    QUERY = "query"
    BODY = "body"
    HEADER = "header"
    COOKIE = "cookie"
    FORM = "form"
    MULTIPART = "multipart"


class UnknownFields(str, Enum):
    """Policy for input keys that no field declares."""
    IGNORE = "ignore"  # dropped from the output
    ALLOW = "allow"    # passed through untouched
    WARN = "warn"      # passed through with an unknown_field warning
    FORBID = "forbid"  # unexpected_field error


class SchemaKind(str, Enum):
    REQUEST = "request"
    RESPONSE = "response"


class _Present:
    def __repr__(self) -> str:
        return "PRESENT"


class _NoDefault:
    def __repr__(self) -> str:
        return "NO_DEFAULT"


PRESENT: Any = _Present()
NO_DEFAULT: Any = _NoDefault()


@dataclass(frozen=True, slots=True)
class FieldDefinition:
    """One declared field: type, requiredness, default, source and constraints."""
    name: str
    type: str = "str"
    required: bool = False
    default: Any = NO_DEFAULT
    source: ParamSource = ParamSource.BODY
    validators: tuple[Validator, ...] = ()
    alias: str | None = None
    description: str | None = None

    @property
    def has_default(self) -> bool:
        return self.default is not NO_DEFAULT

    @property
    def constraints(self) -> tuple[dict[str, Any], ...]:
        return tuple(v.describe() for v in self.validators)

    def describe(self) -> dict[str, Any]:
        info: dict[str, Any] = {
            "name": self.name, "type": self.type, "required": self.required,
            "source": self.source.value, "constraints": list(self.constraints),
        }
        if self.has_default: info["default"] = self.default
        if self.alias: info["alias"] = self.alias
        if self.description: info["description"] = self.description
        return info


@dataclass(frozen=True, slots=True)
class ConditionalGroup:
    """Fields that apply only when ``trigger`` equals ``value`` (or merely exists, for PRESENT).

    A list-valued trigger activates the group when it contains ``value``.
    """
    trigger: str
    value: Any
    fields: tuple[FieldDefinition, ...]
    required: frozenset[str]

    @property
    def presence_triggered(self) -> bool:
        return self.value is PRESENT

    def is_active(self, context: ValidationContext) -> bool:
        if not context.field_exists(self.trigger): return False
        if self.presence_triggered: return True
        return _matches(context.raw_value(self.trigger), self.value) or (
            self.trigger in context.coerced and _matches(context.coerced[self.trigger], self.value))

    def describe(self) -> dict[str, Any]:
        return {
            "trigger": self.trigger,
            "value": "present" if self.presence_triggered else self.value,
            "fields": [f.describe() for f in self.fields],
            "required": sorted(self.required),
        }


def _matches(actual: Any, expected: Any) -> bool:
    # list-valued triggers match when they contain the expected value
    if isinstance(actual, (list, tuple)) and not isinstance(expected, (list, tuple)):
        return any(_matches(item, expected) for item in actual)
    if isinstance(actual, bool) or isinstance(expected, bool):
        return isinstance(actual, bool) and isinstance(expected, bool) and actual == expected
    return actual == expected


@dataclass(frozen=True, slots=True)
class NestedBinding:
    """A field whose map value (or list of map values, when ``many``) follows another schema."""
    name: str
    schema: SchemaDefinition
    many: bool = False


def nested_container(value: Any, many: bool) -> Any:
    """The map (or list) a nested binding validates, its entries left as sent.

    JSON text is decoded first; anything else of the wrong shape is NOT_COERCIBLE.
    """
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return NOT_COERCIBLE
    if many: return list(value) if isinstance(value, (list, tuple)) else NOT_COERCIBLE
    return dict(value) if isinstance(value, Mapping) else NOT_COERCIBLE


def _join(parent: str, child: str) -> str:
    if child == "$": return parent
    if child.startswith("["): return f"{parent}{child}"
    return f"{parent}.{child}"


# ============================================================================
# Schema Definition
# ============================================================================

@dataclass(frozen=True)
class SchemaDefinition:
    """Immutable, reusable description of a payload.

    Build with ``SchemaBuilder``; every ``validate`` call owns its own
    context, so one definition serves concurrent requests.
    """
    name: str
    fields: Mapping[str, FieldDefinition]
    required_names: frozenset[str]
    custom_validators: tuple[Validator, ...] = ()
    conditionals: tuple[ConditionalGroup, ...] = ()
    nested: Mapping[str, NestedBinding] = field(default_factory=dict)
    content_types: tuple[str, ...] = ()
    success_type: str | None = None
    failure_type: str | None = None
    kind: SchemaKind = SchemaKind.REQUEST
    unknown_fields: UnknownFields = UnknownFields.IGNORE
    strip_nulls: bool = False
    strip_empty_lists: bool = False
    coercer: TypeCoercion = field(default=DEFAULT_COERCER, repr=False, compare=False)

    # ------------------------------------------------------------------ introspection

    @property
    def field_names(self) -> list[str]:
        return list(self.fields)

    @property
    def all_field_names(self) -> list[str]:
        """Top-level names followed by conditional group names, without repeats."""
        names = list(self.fields)
        for group in self.conditionals:
            names.extend(f.name for f in group.fields if f.name not in names)
        return names

    @property
    def has_conditionals(self) -> bool:
        return bool(self.conditionals)

    @property
    def nested_bindings(self) -> list[NestedBinding]:
        return list(self.nested.values())

    def has_field(self, name: str) -> bool:
        return name in self.all_field_names

    def get_field(self, name: str) -> FieldDefinition:
        return self.fields[name]

    def fields_from(self, source: ParamSource | str) -> list[FieldDefinition]:
        source = ParamSource(source)
        return [f for f in self.iter_fields() if f.source is source]

    def uses_source(self, source: ParamSource | str) -> bool:
        return bool(self.fields_from(source))

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "fields": [f.describe() for f in self.fields.values()],
            "required": sorted(self.required_names),
            "conditionals": [g.describe() for g in self.conditionals],
            "nested": {n: {"schema": b.schema.name, "many": b.many} for n, b in self.nested.items()},
            "validators": [v.describe() for v in self.custom_validators],
            "content_types": list(self.content_types),
            "success_type": self.success_type,
            "failure_type": self.failure_type,
            "unknown_fields": self.unknown_fields.value,
        }

    def iter_fields(self) -> Iterator[FieldDefinition]:
        """Top-level fields, then conditional-group fields, each name once."""
        yield from self.fields.values()
        seen = set(self.fields)
        for group in self.conditionals:
            for definition in group.fields:
                if definition.name not in seen:
                    seen.add(definition.name)
                    yield definition

    # ------------------------------------------------------------------ validation

    def validate(self, data: Any) -> Outcome[dict[str, Any]]:
        """Validate ``data`` and return Success(cleaned payload) or Failure(every error)."""
        if not isinstance(data, Mapping):
            return failure(TypeMismatch("$", "object", json_type_name(data)), data)

        data = self._resolve_aliases(data)
        context = ValidationContext(data, self)

        # 1. presence of required top-level fields
        for name in self.fields:
            if name in self.required_names and (name not in data or is_blank(data[name])):
                context.add_error(RequiredFieldMissing(name))

        # 2. coercion feasibility then constraints, per present field
        for definition in self.fields.values():
            self._check_field(context, definition)

        # 3. custom validators in declaration order
        for validator in self.custom_validators:
            validator.validate(context)

        # 4. conditional groups
        active = [group for group in self.conditionals if group.is_active(context)]
        checked: set[str] = set()
        for group in active:
            for definition in group.fields:
                if definition.name in checked: continue
                checked.add(definition.name)
                if definition.name in group.required and (definition.name not in data or is_blank(data[definition.name])):
                    context.add_error(RequiredFieldMissing(definition.name))
                self._check_field(context, definition, required=definition.name in group.required)

        # 5. nested schemas
        for binding in self.nested.values():
            self._check_nested(context, binding)

        # 6. keys nobody declared
        known = set(self.all_field_names)
        unknown = [key for key in data if key not in known]
        self._apply_unknown_policy(context, unknown)

        if context.errors:
            log.debug("validation_failed", schema=self.name, error_count=len(context.errors),
                      fields=sorted({e.field for e in context.errors}))
            return failure(context.errors, dict(data), context.warnings)
        return Success(self._output(context, active, unknown), tuple(context.warnings))

    def conform(self, data: Any) -> Any:
        """Cleaned payload on success, the input unchanged otherwise."""
        return self.validate(data).unwrap_or(data)

    def _resolve_aliases(self, data: Mapping[str, Any]) -> Mapping[str, Any]:
        aliased = [f for f in self.iter_fields() if f.alias and f.alias in data and f.name not in data]
        if not aliased: return data
        resolved = dict(data)
        for definition in aliased:
            resolved[definition.name] = resolved.pop(definition.alias)
        return resolved

    def _check_field(self, context: ValidationContext, definition: FieldDefinition, *, required: bool | None = None) -> None:
        name = definition.name
        if not context.field_exists(name): return
        value = context.raw_value(name)
        if value is None:
            context.coerced[name] = None
            return
        required = definition.required if required is None else required
        if required and value == "": return

        dropped: list = []
        binding = self.nested.get(name)
        if binding is not None: coerced = nested_container(value, binding.many)
        else: coerced = self.coercer.coerce(value, definition.type, dropped)
        if coerced is NOT_COERCIBLE:
            context.add_error(coercion_error(name, value, definition.type))
            return
        context.coerced[name] = coerced
        for position in dropped:
            path = f"{name}[{position}]" if isinstance(position, int) else f"{name}.{position}"
            context.warn(path, f"Value at '{path}' could not be converted to {definition.type} and was dropped",
                         ErrorCode.ELEMENT_DROPPED)

        for validator in definition.validators:
            validator.validate(context)

    def _check_nested(self, context: ValidationContext, binding: NestedBinding) -> None:
        name = binding.name
        value = context.coerced.get(name)
        if value is None: return
        if not binding.many:
            context.coerced[name] = self._merge_nested(context, binding.schema.validate(value), name)
            return
        cleaned = []
        for index, element in enumerate(value):
            path = f"{name}[{index}]"
            if not isinstance(element, Mapping):
                context.add_error(TypeMismatch(path, "object", json_type_name(element)))
                continue
            cleaned.append(self._merge_nested(context, binding.schema.validate(element), path))
        context.coerced[name] = cleaned

    def _merge_nested(self, context: ValidationContext, outcome: Outcome, path: str) -> Any:
        for warning in outcome.warnings:
            context.add_warning(warning.at(_join(path, warning.field)))
        if isinstance(outcome, Success): return outcome.value
        for error in outcome.errors:
            context.add_error(error.at(_join(path, error.field)))
        return None

    def _apply_unknown_policy(self, context: ValidationContext, unknown: list[str]) -> None:
        if self.unknown_fields is UnknownFields.WARN:
            for key in unknown:
                context.warn(key, f"Field '{key}' is not defined in schema {self.name}", ErrorCode.UNKNOWN_FIELD)
        elif self.unknown_fields is UnknownFields.FORBID:
            for key in unknown:
                context.add_error(CustomValidationFailure(
                    key, f"Field '{key}' is not allowed", ErrorCode.UNEXPECTED_FIELD))

    def _output(self, context: ValidationContext, active: list[ConditionalGroup], unknown: list[str]) -> dict[str, Any]:
        definitions = list(self.fields.values())
        for group in active:
            definitions.extend(d for d in group.fields if d.name not in {x.name for x in definitions})

        output: dict[str, Any] = {}
        for definition in definitions:
            if definition.name in context.coerced:
                output[definition.name] = context.coerced[definition.name]
            elif not context.field_exists(definition.name) and definition.has_default:
                output[definition.name] = definition.default
        if self.unknown_fields in (UnknownFields.ALLOW, UnknownFields.WARN):
            for key in unknown:
                output[key] = context.raw_value(key)

        if self.strip_nulls: output = {k: v for k, v in output.items() if v is not None}
        if self.strip_empty_lists: output = {k: v for k, v in output.items() if v != []}
        return output


# ============================================================================
# Builders
# ============================================================================

def make_field(
    name: str,
    type: Any = str,
    *,
    required: bool = False,
    default: Any = NO_DEFAULT,
    source: ParamSource | str = ParamSource.BODY,
    alias: str | None = None,
    description: str | None = None,
    min_length: int | None = None,
    max_length: int | None = None,
    min: float | None = None,
    max: float | None = None,
    format: str | None = None,
    enum: Sequence[Any] | None = None,
    pattern: str | None = None,
    validators: Sequence[Validator] = (),
    coercer: TypeCoercion = DEFAULT_COERCER,
) -> FieldDefinition:
    """Build a FieldDefinition, turning keyword constraints into validators."""
    if not name or not isinstance(name, str): raise SchemaDefinitionError(f"Invalid field name: {name!r}")
    declared = type_name(type)

    constraints: list[Validator] = []
    if min_length is not None or max_length is not None: constraints.append(Length(name, min_length, max_length))
    if min is not None or max is not None: constraints.append(Range(name, min, max))
    if format is not None: constraints.append(Format(name, format))
    if enum is not None: constraints.append(EnumValidator(name, enum))
    if pattern is not None: constraints.append(Pattern(name, pattern))
    constraints.extend(validators)

    if default is not NO_DEFAULT and default is not None:
        coerced = coercer.coerce(default, declared)
        if coerced is NOT_COERCIBLE:
            raise SchemaDefinitionError(f"Default value {default!r} for '{name}' is not coercible to {declared}")
        default = coerced

    return FieldDefinition(
        name=name, type=declared, required=required, default=default, source=ParamSource(source),
        validators=tuple(constraints), alias=alias, description=description,
    )


class _FieldCollector:
    """Shared ``field`` behavior for schema and conditional-group builders."""

    def __init__(self, coercer: TypeCoercion):
        self._coercer = coercer
        self._fields: dict[str, FieldDefinition] = {}
        self._source = ParamSource.BODY

    def field(self, name: str, type: Any = str, **options) -> _FieldCollector:
        if name in self._fields or self._collides(name): raise DuplicateFieldError(name)
        options.setdefault("source", self._source)
        self._fields[name] = make_field(name, type, coercer=self._coercer, **options)
        return self

    def _collides(self, name: str) -> bool:
        return False


class GroupBuilder(_FieldCollector):
    """Collects the fields of one conditional group."""

    def __init__(self, parent: SchemaBuilder, trigger: str, value: Any):
        super().__init__(parent._coercer)
        self._parent, self.trigger, self.value = parent, trigger, value
        self._source = parent._source

    def _collides(self, name: str) -> bool:
        return name in self._parent._fields

    def build(self) -> ConditionalGroup:
        return ConditionalGroup(
            trigger=self.trigger,
            value=self.value,
            fields=tuple(self._fields.values()),
            required=frozenset(n for n, f in self._fields.items() if f.required),
        )


class SchemaBuilder(_FieldCollector):
    """Ordered, mutable assembly of a schema; ``build()`` freezes it."""

    def __init__(
        self,
        name: str,
        *,
        kind: SchemaKind | str = SchemaKind.REQUEST,
        coercer: TypeCoercion | None = None,
        unknown_fields: UnknownFields | str | None = None,
        strip_nulls: bool = False,
        strip_empty_lists: bool = False,
    ):
        super().__init__(coercer or DEFAULT_COERCER)
        self.name = name
        self._kind = SchemaKind(kind)
        default_policy = UnknownFields.WARN if self._kind is SchemaKind.RESPONSE else UnknownFields.IGNORE
        self._unknown = UnknownFields(unknown_fields) if unknown_fields is not None else default_policy
        self._strip_nulls, self._strip_empty_lists = strip_nulls, strip_empty_lists
        self._custom: list[Validator] = []
        self._groups: list[ConditionalGroup] = []
        self._nested: dict[str, NestedBinding] = {}
        self._content_types: list[str] = []
        self._success_type: str | None = None
        self._failure_type: str | None = None

    def _collides(self, name: str) -> bool:
        return any(name == f.name for group in self._groups for f in group.fields)

    # ------------------------------------------------------------------ nesting

    def nested(self, name: str, schema: SchemaDefinition | SchemaBuilder, **options) -> SchemaBuilder:
        """Field whose map value is validated against ``schema``."""
        self.field(name, "dict[any]", **options)
        self._nested[name] = NestedBinding(name, _as_definition(schema))
        return self

    def nested_list(self, name: str, schema: SchemaDefinition | SchemaBuilder, **options) -> SchemaBuilder:
        """Field whose value is a list of maps, each validated against ``schema``."""
        self.field(name, "list[any]", **options)
        self._nested[name] = NestedBinding(name, _as_definition(schema), many=True)
        return self

    # ------------------------------------------------------------------ conditionals

    @contextmanager
    def when_field(self, trigger: str, value: Any) -> Iterator[GroupBuilder]:
        """Fields declared inside apply only when ``trigger`` equals ``value``."""
        group = GroupBuilder(self, trigger, value)
        yield group
        self._groups.append(group.build())

    @contextmanager
    def when_present(self, trigger: str) -> Iterator[GroupBuilder]:
        """Fields declared inside apply whenever ``trigger`` exists, whatever its value."""
        group = GroupBuilder(self, trigger, PRESENT)
        yield group
        self._groups.append(group.build())

    # ------------------------------------------------------------------ sources

    @contextmanager
    def from_source(self, source: ParamSource | str) -> Iterator[SchemaBuilder]:
        previous, self._source = self._source, ParamSource(source)
        try:
            yield self
        finally:
            self._source = previous

    def from_query(self):
        return self.from_source(ParamSource.QUERY)

    def from_path(self):
        return self.from_source(ParamSource.PATH)

    def from_body(self):
        return self.from_source(ParamSource.BODY)

    def from_header(self):
        return self.from_source(ParamSource.HEADER)

    def from_cookie(self):
        return self.from_source(ParamSource.COOKIE)

    def from_form(self):
        return self.from_source(ParamSource.FORM)

    # ------------------------------------------------------------------ schema-level rules

    def validate(self, fn: Callable[[ValidationContext], Any] | None = None, *,
                 name: str | None = None, field: str = "$"):
        """Register a custom validator; returns ``fn`` so it also works as a decorator."""
        def register(f: Callable[[ValidationContext], Any]):
            self._custom.append(Custom(f, name=name, field=field))
            return f
        return register if fn is None else register(fn)

    def add_validator(self, validator: Validator) -> SchemaBuilder:
        self._custom.append(validator)
        return self

    def requires_together(self, *fields: str) -> SchemaBuilder:
        self._custom.append(_requires_together(*fields))
        return self

    def requires_one_of(self, *fields: str) -> SchemaBuilder:
        self._custom.append(_requires_one_of(*fields))
        return self

    def content_type(self, *types: str) -> SchemaBuilder:
        self._content_types.extend(t.split(";")[0].strip().lower() for t in types)
        return self

    def validates_to(self, success_type: Any, failure_type: Any = None) -> SchemaBuilder:
        self._success_type = _type_label(success_type)
        self._failure_type = _type_label(failure_type) if failure_type is not None else None
        return self

    def unknown_fields(self, policy: UnknownFields | str) -> SchemaBuilder:
        self._unknown = UnknownFields(policy)
        return self

    def build(self) -> SchemaDefinition:
        triggers = {g.trigger for g in self._groups}
        declared = set(self._fields) | {f.name for g in self._groups for f in g.fields}
        if missing := sorted(triggers - declared):
            log.debug("conditional_trigger_undeclared", schema=self.name, triggers=missing)

        schema = SchemaDefinition(
            name=self.name,
            fields=MappingProxyType(dict(self._fields)),
            required_names=frozenset(n for n, f in self._fields.items() if f.required),
            custom_validators=tuple(self._custom),
            conditionals=tuple(self._groups),
            nested=MappingProxyType(dict(self._nested)),
            content_types=tuple(self._content_types),
            success_type=self._success_type,
            failure_type=self._failure_type,
            kind=self._kind,
            unknown_fields=self._unknown,
            strip_nulls=self._strip_nulls,
            strip_empty_lists=self._strip_empty_lists,
            coercer=self._coercer,
        )
        log.debug("schema_built", schema=self.name, fields=len(schema.fields),
                  conditionals=len(schema.conditionals), nested=len(schema.nested))
        return schema


def _as_definition(schema: Any) -> SchemaDefinition:
    if isinstance(schema, SchemaBuilder): return schema.build()
    if isinstance(schema, SchemaDefinition): return schema
    raise InvalidSchemaError(f"Nested schema must be a SchemaDefinition, got {type(schema).__name__}")


def _type_label(value: Any) -> str:
    return value if isinstance(value, str) else getattr(value, "__name__", repr(value))


def request_schema(name: str, **options) -> SchemaBuilder:
    return SchemaBuilder(name, kind=SchemaKind.REQUEST, **options)


def response_schema(name: str, **options) -> SchemaBuilder:
    options.setdefault("strip_nulls", True)
    return SchemaBuilder(name, kind=SchemaKind.RESPONSE, **options)
