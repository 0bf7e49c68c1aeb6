"""
Tests for the type coercion engine.

Covers:
- Scalar targets: str, int/int32, float, bool
- Temporal and identifier targets with canonical output
- List and map targets dropping unconvertible members
- Custom coercion registry: override, failure, registration rules
- Totality and idempotence
"""
from datetime import date, datetime, timezone
from uuid import UUID

import pytest

from formwork.errors import SchemaDefinitionError
from formwork.validation.coercion import (
    NOT_COERCIBLE, CoercionRegistry, TypeCoercion, coerce, coerce_or_none, coercion_error, type_name,
)


class TestTypeNames:
    @pytest.mark.parametrize("target,expected", [
        (str, "str"),
        (int, "int"),
        (bool, "bool"),
        (list[int], "list[int]"),
        (dict[str, float], "dict[float]"),
        ("Integer", "int"),
        ("dict[str, int]", "dict[int]"),
        ("list[list[int]]", "list[list[int]]"),
        ("array", "list[any]"),
        ("money", "money"),
    ])
    def test_normalization(self, target, expected):
        assert type_name(target) == expected


class TestBoolean:
    @pytest.mark.parametrize("raw,expected", [
        ("YES", True), ("off", False), (" true ", True), ("Enabled", True),
        ("inactive", False), ("t", True), ("N", False), (1, True), (0, False),
        (1.0, True), (True, True),
    ])
    def test_tokens(self, raw, expected):
        assert coerce(raw, bool) is expected

    @pytest.mark.parametrize("raw", ["maybe", "", 2, -1, 0.5, [], {}])
    def test_rejects(self, raw):
        assert coerce(raw, bool) is NOT_COERCIBLE


class TestInteger:
    @pytest.mark.parametrize("raw,expected", [
        ("42", 42), (" -7 ", -7), ("+3", 3), (3.0, 3), (12, 12),
    ])
    def test_accepts(self, raw, expected):
        assert coerce(raw, int) == expected

    @pytest.mark.parametrize("raw", ["", "  ", "4.2", "1e3", "abc", 3.5, True, False, 2 ** 63, "9223372036854775808", [1]])
    def test_rejects(self, raw):
        assert coerce(raw, int) is NOT_COERCIBLE

    def test_int32_bounds(self):
        assert coerce(2 ** 31 - 1, "int32") == 2 ** 31 - 1
        assert coerce(2 ** 31, "int32") is NOT_COERCIBLE
        assert coerce(str(-(2 ** 31) - 1), "int32") is NOT_COERCIBLE


class TestFloat:
    @pytest.mark.parametrize("raw,expected", [
        ("1.5", 1.5), ("1.5e3", 1500.0), (".5", 0.5), ("-2", -2.0), (3, 3.0), (2.25, 2.25),
    ])
    def test_accepts(self, raw, expected):
        assert coerce(raw, float) == expected

    @pytest.mark.parametrize("raw", ["nan", "inf", "abc", "", "1.2.3", True, None])
    def test_rejects(self, raw):
        assert coerce(raw, float) is NOT_COERCIBLE


class TestString:
    def test_numbers_and_booleans_stringify(self):
        assert coerce(42, str) == "42"
        assert coerce(1.5, str) == "1.5"
        assert coerce(True, str) == "true"
        assert coerce(False, str) == "false"

    def test_collections_are_not_strings(self):
        assert coerce([1], str) is NOT_COERCIBLE
        assert coerce({"a": 1}, str) is NOT_COERCIBLE


class TestTemporal:
    @pytest.mark.parametrize("raw,expected", [
        ("2024-01-15T10:30:00Z", "2024-01-15T10:30:00Z"),
        ("2024-01-15T10:30:00.250Z", "2024-01-15T10:30:00Z"),
        ("2024-01-15T10:30:00+02:00", "2024-01-15T10:30:00+02:00"),
        ("2024-01-15 10:30:00", "2024-01-15T10:30:00Z"),
        ("2024/01/15 10:30:00", "2024-01-15T10:30:00Z"),
        ("2024-01-15", "2024-01-15T00:00:00Z"),
        ("15/01/2024", "2024-01-15T00:00:00Z"),
        ("01/02/2024", "2024-02-01T00:00:00Z"),
        (0, "1970-01-01T00:00:00Z"),
        (1705314600, "2024-01-15T10:30:00Z"),
        (datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc), "2024-01-15T10:30:00Z"),
        (date(2024, 1, 15), "2024-01-15T00:00:00Z"),
    ])
    def test_datetime_formats(self, raw, expected):
        assert coerce(raw, datetime) == expected

    @pytest.mark.parametrize("raw", ["not a date", "2024-13-45", "", True, 1.5])
    def test_datetime_rejects(self, raw):
        assert coerce(raw, "datetime") is NOT_COERCIBLE

    def test_date_target(self):
        assert coerce("2024-01-15T23:10:00Z", date) == "2024-01-15"
        assert coerce("15-01-2024", "date") == "2024-01-15"


class TestIdentifier:
    def test_canonical_lowercase(self):
        assert coerce("550E8400-E29B-41D4-A716-446655440000", UUID) == "550e8400-e29b-41d4-a716-446655440000"

    def test_uuid_objects(self):
        value = UUID("550e8400-e29b-41d4-a716-446655440000")
        assert coerce(value, "uuid") == str(value)

    @pytest.mark.parametrize("raw", ["550e8400e29b41d4a716446655440000", "nope", 12])
    def test_rejects(self, raw):
        assert coerce(raw, "uuid") is NOT_COERCIBLE


class TestLists:
    def test_comma_separated_drops_bad_elements(self):
        dropped = []
        assert TypeCoercion().coerce("1,x,3", list[int], dropped) == [1, 3]
        assert dropped == [1]

    def test_json_literal(self):
        assert coerce('[1, "2", "x"]', "list[int]") == [1, 2]

    def test_list_input(self):
        assert coerce(["1", 2, "nope", 4.0], list[int]) == [1, 2, 4]

    def test_scalar_becomes_single_element(self):
        assert coerce(5, list[int]) == [5]
        assert coerce("true", "list[bool]") == [True]

    def test_empty_string_is_empty_list(self):
        assert coerce("", list[str]) == []

    def test_strings_are_trimmed(self):
        assert coerce("a, b ,c", list[str]) == ["a", "b", "c"]

    def test_mapping_is_not_a_list(self):
        assert coerce({"a": 1}, list[int]) is NOT_COERCIBLE


class TestMaps:
    def test_drops_failing_entries(self):
        dropped = []
        assert TypeCoercion().coerce({"a": "1", "b": "x"}, dict[str, int], dropped) == {"a": 1}
        assert dropped == ["b"]

    def test_json_object_string(self):
        assert coerce('{"a": "2"}', "dict[int]") == {"a": 2}

    def test_rejects_non_maps(self):
        assert coerce("[1]", dict) is NOT_COERCIBLE
        assert coerce(3, dict) is NOT_COERCIBLE


class TestCustomCoercions:
    def test_unregistered_name_passes_through(self):
        assert coerce("12.50 EUR", "money") == "12.50 EUR"

    def test_custom_function_is_used(self):
        registry = CoercionRegistry()
        registry.register("money", lambda v: round(float(str(v).split()[0]) * 100))
        assert TypeCoercion(registry).coerce("12.50 EUR", "money") == 1250

    def test_custom_overrides_builtin(self):
        registry = CoercionRegistry({"bool": lambda v: v == "si"})
        coercer = TypeCoercion(registry)
        assert coercer.coerce("si", bool) is True
        assert coercer.coerce("yes", bool) is False

    def test_exception_or_none_means_not_coercible(self):
        registry = CoercionRegistry({"money": lambda v: float(v), "nothing": lambda v: None})
        coercer = TypeCoercion(registry)
        assert coercer.coerce("abc", "money") is NOT_COERCIBLE
        assert coercer.coerce("abc", "nothing") is NOT_COERCIBLE

    def test_duplicate_registration_rejected(self):
        registry = CoercionRegistry({"money": float})
        with pytest.raises(SchemaDefinitionError):
            registry.register("money", float)

    def test_frozen_registry_rejects_registration(self):
        registry = CoercionRegistry().freeze()
        with pytest.raises(SchemaDefinitionError):
            registry.register("money", float)

    def test_registries_are_independent(self):
        registry = CoercionRegistry({"money": float})
        assert "money" in registry
        assert "money" not in TypeCoercion().registry


class TestTotality:
    VALUES = [None, "", " ", "abc", "1", "1.5", "-0", 0, -1, 2 ** 70, 1.5, float("nan"), float("inf"),
              True, False, [], [None, "x"], {}, {"k": None}, object(), b"bytes", (1, 2), "9" * 5000]
    TARGETS = ["str", "int", "int32", "float", "bool", "datetime", "date", "uuid",
               "list[int]", "list[str]", "list[bool]", "dict[int]", "any", "money"]

    @pytest.mark.parametrize("target", TARGETS)
    def test_never_raises(self, target):
        for value in self.VALUES:
            coerce(value, target)

    def test_none_is_never_coercible(self):
        for target in self.TARGETS:
            assert coerce(None, target) is NOT_COERCIBLE

    @pytest.mark.parametrize("value,target", [
        ("text", str), (42, int), (1.25, float), (True, bool), (False, bool),
        ("2024-01-15T10:30:00Z", "datetime"), ("2024-01-15", "date"),
        ("550e8400-e29b-41d4-a716-446655440000", "uuid"),
        ([1, 2, 3], list[int]), ({"a": "x"}, dict[str, str]),
    ])
    def test_correctly_typed_values_are_unchanged(self, value, target):
        assert coerce(value, target) == value


class TestHelpers:
    def test_coerce_or_none(self):
        assert coerce_or_none("x", int) is None
        assert coerce_or_none("3", int) == 3

    def test_coercion_error_details(self):
        error = coercion_error("age", "abc", int)
        assert error.code == "type_mismatch"
        assert error.details == {"expected": "int", "actual": "string"}
