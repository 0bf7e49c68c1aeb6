"""Type Coercion Engine

Best-effort conversion of loosely typed wire values (query strings, form
fields, JSON scalars) into the declared type of a field.

``coerce`` is total: it returns the converted value or ``NOT_COERCIBLE`` and
never raises. Targets are type names ("int", "list[int]", "dict[str, float]")
or the equivalent Python types (``int``, ``list[int]``, ``dict[str, float]``).

Custom coercions live in an explicit ``CoercionRegistry`` that is populated
once at startup and handed to the engine:

    registry = CoercionRegistry()
    registry.register("money", parse_money)
    registry.freeze()
    coercer = TypeCoercion(registry)
"""
from __future__ import annotations

import json
import re
import typing
from datetime import date, datetime, timezone
from typing import Any, Callable
from uuid import UUID

from formwork.errors.types import SchemaDefinitionError, TypeMismatch
from formwork.logging import coercion_logger

log = coercion_logger()


class _NotCoercible:
    """Marker returned when a value cannot be converted."""
    _instance: _NotCoercible | None = None

    def __new__(cls):
        if cls._instance is None: cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_COERCIBLE"


NOT_COERCIBLE: Any = _NotCoercible()

INT64_MIN, INT64_MAX = -(2 ** 63), 2 ** 63 - 1
INT32_MIN, INT32_MAX = -(2 ** 31), 2 ** 31 - 1

TRUE_VALUES = frozenset({"true", "1", "yes", "y", "on", "t", "enabled", "active"})
FALSE_VALUES = frozenset({"false", "0", "no", "n", "off", "f", "disabled", "inactive"})

INT_RE = re.compile(r"^[+-]?\d+$")
FLOAT_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
UUID_RE = re.compile(r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$")

# First match wins; ISO8601 variants first, then common regional layouts.
DATETIME_FORMATS = (
    "%Y-%m-%dT%H:%M:%S.%fZ",
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M:%S %z",
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y/%m/%d %H:%M:%S",
    "%d/%m/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M:%S",
    "%Y-%m-%d",
    "%d-%m-%Y",
    "%m-%d-%Y",
    "%d/%m/%Y",
    "%m/%d/%Y",
)

PRIMITIVE_ELEMENT_TYPES = frozenset({"str", "int", "int32", "float"})

TYPE_ALIASES = {
    "str": "str", "string": "str", "text": "str",
    "int": "int", "integer": "int", "int64": "int", "long": "int",
    "int32": "int32",
    "float": "float", "float64": "float", "double": "float", "number": "float",
    "bool": "bool", "boolean": "bool",
    "datetime": "datetime", "time": "datetime", "timestamp": "datetime",
    "date": "date",
    "uuid": "uuid",
    "list": "list[any]", "array": "list[any]",
    "dict": "dict[any]", "hash": "dict[any]", "object": "dict[any]",
    "any": "any",
}

PYTHON_TYPES: dict[Any, str] = {
    str: "str", int: "int", float: "float", bool: "bool",
    datetime: "datetime", date: "date", UUID: "uuid",
    list: "list[any]", tuple: "list[any]", dict: "dict[any]",
    Any: "any", object: "any",
}

_CONTAINER_RE = re.compile(r"^(list|array|dict|hash)\s*[\[(](.*)[\])]$", re.IGNORECASE)


def type_name(target: Any) -> str:
    """Normalize a Python type or a type name to the canonical name used by the engine."""
    if isinstance(target, str): return _normalize_name(target)
    if target in PYTHON_TYPES: return PYTHON_TYPES[target]
    origin = typing.get_origin(target)
    if origin in (list, tuple, set, frozenset):
        args = typing.get_args(target)
        return f"list[{type_name(args[0]) if args else 'any'}]"
    if origin is dict:
        args = typing.get_args(target)
        return f"dict[{type_name(args[-1]) if args else 'any'}]"
    if isinstance(target, type): return target.__name__
    raise SchemaDefinitionError(f"Unsupported field type: {target!r}")


def _normalize_name(name: str) -> str:
    name = name.strip()
    if (alias := TYPE_ALIASES.get(name.lower())) is not None: return alias
    if match := _CONTAINER_RE.match(name):
        kind, inner = match.group(1).lower(), match.group(2)
        if kind in ("list", "array"): return f"list[{_normalize_name(inner) if inner.strip() else 'any'}]"
        # dict[str, T] keys are always strings; only the value type matters
        value_type = inner.split(",")[-1] if inner.strip() else "any"
        return f"dict[{_normalize_name(value_type)}]"
    return name


def element_type(name: str) -> str | None:
    """Inner type of a canonical list[...] or dict[...] name."""
    if name.startswith(("list[", "dict[")) and name.endswith("]"): return name[5:-1]
    return None


def json_type_name(value: Any) -> str:
    """Wire-level type label used in TypeMismatch details."""
    if value is None: return "null"
    if isinstance(value, bool): return "boolean"
    if isinstance(value, int): return "integer"
    if isinstance(value, float): return "float"
    if isinstance(value, str): return "string"
    if isinstance(value, (list, tuple)): return "array"
    if isinstance(value, dict): return "object"
    return type(value).__name__


# ============================================================================
# Registry
# ============================================================================

class CoercionRegistry:
    """Table of custom coercion functions keyed by type name.

    Populated once at startup; a custom function replaces built-in behavior for
    its name. Returning ``None`` or raising means "not coercible".
    """

    __slots__ = ("_functions", "_frozen")

    def __init__(self, functions: dict[str, Callable[[Any], Any]] | None = None):
        self._functions: dict[str, Callable[[Any], Any]] = {}
        self._frozen = False
        for name, fn in (functions or {}).items():
            self.register(name, fn)

    def register(self, target: Any, fn: Callable[[Any], Any]) -> None:
        name = type_name(target)
        if self._frozen: raise SchemaDefinitionError(f"Coercion registry is frozen; cannot register '{name}'")
        if name in self._functions: raise SchemaDefinitionError(f"Coercion for type '{name}' is already registered")
        self._functions[name] = fn
        log.debug("custom_coercion_registered", type_name=name)

    def get(self, name: str) -> Callable[[Any], Any] | None:
        return self._functions.get(name)

    def freeze(self) -> CoercionRegistry:
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __contains__(self, target: Any) -> bool:
        return type_name(target) in self._functions

    def __len__(self) -> int:
        return len(self._functions)


# ============================================================================
# Engine
# ============================================================================

class TypeCoercion:
    """Coercion engine bound to one registry."""

    __slots__ = ("registry",)

    def __init__(self, registry: CoercionRegistry | None = None):
        self.registry = registry if registry is not None else CoercionRegistry()

    def coerce(self, value: Any, target: Any, dropped: list | None = None) -> Any:
        """Convert ``value`` to ``target`` or return NOT_COERCIBLE.

        When ``dropped`` is given, indices of list elements (or keys of map
        entries) that were discarded during container coercion are appended.
        """
        name = type_name(target)
        if value is None: return NOT_COERCIBLE
        if (custom := self.registry.get(name)) is not None: return self._custom(custom, value, name)

        if name == "any": return value
        if name == "str": return _to_str(value)
        if name == "int": return _to_int(value, INT64_MIN, INT64_MAX)
        if name == "int32": return _to_int(value, INT32_MIN, INT32_MAX)
        if name == "float": return _to_float(value)
        if name == "bool": return _to_bool(value)
        if name == "datetime": return _to_datetime(value)
        if name == "date": return _to_date(value)
        if name == "uuid": return _to_uuid(value)
        if name.startswith("list["): return self._to_list(value, element_type(name), dropped)
        if name.startswith("dict["): return self._to_dict(value, element_type(name), dropped)
        return value

    def can_coerce(self, value: Any, target: Any) -> bool:
        return self.coerce(value, target) is not NOT_COERCIBLE

    def _custom(self, fn: Callable[[Any], Any], value: Any, name: str) -> Any:
        try:
            result = fn(value)
        except Exception as e:
            log.debug("custom_coercion_failed", type_name=name, error=str(e))
            return NOT_COERCIBLE
        return NOT_COERCIBLE if result is None else result

    def _to_list(self, value: Any, inner: str, dropped: list | None) -> Any:
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.startswith("["):
                try:
                    parsed = json.loads(stripped)
                except ValueError:
                    parsed = None
                if isinstance(parsed, list): return self._coerce_elements(parsed, inner, dropped)
            if inner in PRIMITIVE_ELEMENT_TYPES:
                if not stripped: return []
                return self._coerce_elements([part.strip() for part in stripped.split(",")], inner, dropped)
            single = self.coerce(value, inner)
            return NOT_COERCIBLE if single is NOT_COERCIBLE else [single]
        if isinstance(value, (list, tuple)): return self._coerce_elements(value, inner, dropped)
        if isinstance(value, dict): return NOT_COERCIBLE
        single = self.coerce(value, inner)
        return NOT_COERCIBLE if single is NOT_COERCIBLE else [single]

    def _coerce_elements(self, items, inner: str, dropped: list | None) -> list:
        result = []
        for index, item in enumerate(items):
            coerced = self.coerce(item, inner)
            if coerced is NOT_COERCIBLE:
                if dropped is not None: dropped.append(index)
                continue
            result.append(coerced)
        return result

    def _to_dict(self, value: Any, inner: str, dropped: list | None) -> Any:
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except ValueError:
                return NOT_COERCIBLE
        if not isinstance(value, dict): return NOT_COERCIBLE
        result = {}
        for key, item in value.items():
            coerced = self.coerce(item, inner)
            if coerced is NOT_COERCIBLE:
                if dropped is not None: dropped.append(key)
                continue
            result[str(key)] = coerced
        return result


def _to_str(value: Any) -> Any:
    if isinstance(value, str): return value
    if isinstance(value, bool): return "true" if value else "false"
    if isinstance(value, (int, float)): return str(value)
    if isinstance(value, UUID): return str(value)
    if isinstance(value, (datetime, date)): return value.isoformat()
    return NOT_COERCIBLE


def _to_int(value: Any, low: int, high: int) -> Any:
    if isinstance(value, bool): return NOT_COERCIBLE
    if isinstance(value, int): return value if low <= value <= high else NOT_COERCIBLE
    if isinstance(value, float):
        if not value.is_integer(): return NOT_COERCIBLE
        number = int(value)
        return number if low <= number <= high else NOT_COERCIBLE
    if isinstance(value, str):
        stripped = value.strip()
        # 64-bit values never need more than 20 characters; longer text would hit int()'s digit limit
        if len(stripped) > 20 or not INT_RE.match(stripped): return NOT_COERCIBLE
        number = int(stripped)
        return number if low <= number <= high else NOT_COERCIBLE
    return NOT_COERCIBLE


def _to_float(value: Any) -> Any:
    if isinstance(value, bool): return NOT_COERCIBLE
    if isinstance(value, float): return value
    if isinstance(value, int):
        try:
            return float(value)
        except OverflowError:
            return NOT_COERCIBLE
    if isinstance(value, str):
        stripped = value.strip()
        if not FLOAT_RE.match(stripped): return NOT_COERCIBLE
        number = float(stripped)
        return NOT_COERCIBLE if number in (float("inf"), float("-inf")) else number
    return NOT_COERCIBLE


def _to_bool(value: Any) -> Any:
    if isinstance(value, bool): return value
    if isinstance(value, (int, float)):
        if value == 1: return True
        if value == 0: return False
        return NOT_COERCIBLE
    if isinstance(value, str):
        token = value.strip().lower()
        if token in TRUE_VALUES: return True
        if token in FALSE_VALUES: return False
    return NOT_COERCIBLE


def parse_datetime(value: Any) -> datetime | None:
    """Parse a temporal wire value into an aware datetime (naive values are UTC)."""
    if isinstance(value, bool): return None
    if isinstance(value, datetime): parsed = value
    elif isinstance(value, date): parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, int):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str): parsed = _parse_datetime_string(value.strip())
    else: return None
    if parsed is None: return None
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=timezone.utc)


def _parse_datetime_string(text: str) -> datetime | None:
    if not text: return None
    for fmt in DATETIME_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        if fmt.endswith("Z"): parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None


def format_datetime(value: datetime) -> str:
    """Canonical RFC 3339 text: whole seconds, ``Z`` for UTC."""
    offset = value.utcoffset()
    if offset is None or not offset: return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    return value.isoformat(timespec="seconds")


def _to_datetime(value: Any) -> Any:
    parsed = parse_datetime(value)
    return NOT_COERCIBLE if parsed is None else format_datetime(parsed)


def _to_date(value: Any) -> Any:
    parsed = parse_datetime(value)
    return NOT_COERCIBLE if parsed is None else parsed.date().isoformat()


def _to_uuid(value: Any) -> Any:
    if isinstance(value, UUID): return str(value)
    if isinstance(value, str) and UUID_RE.match(value.strip()): return value.strip().lower()
    return NOT_COERCIBLE


# ============================================================================
# Convenience API
# ============================================================================

DEFAULT_COERCER = TypeCoercion()


def coerce(value: Any, target: Any, coercer: TypeCoercion | None = None) -> Any:
    """Coerce with the default engine unless one is given."""
    return (coercer or DEFAULT_COERCER).coerce(value, target)


def coerce_or_none(value: Any, target: Any, coercer: TypeCoercion | None = None) -> Any:
    result = coerce(value, target, coercer)
    return None if result is NOT_COERCIBLE else result


def can_coerce(value: Any, target: Any, coercer: TypeCoercion | None = None) -> bool:
    return coerce(value, target, coercer) is not NOT_COERCIBLE


def coercion_error(field: str, value: Any, target: Any) -> TypeMismatch:
    """TypeMismatch describing a failed coercion of ``value`` to ``target``."""
    return TypeMismatch(field, type_name(target), json_type_name(value))
