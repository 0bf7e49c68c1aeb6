"""
Tests for validator primitives.

Covers:
- Required, Length, Range, Format, Enum, Pattern semantics and skips
- Custom validators, including ones that raise
- Composite / Conditional and the cross-field helpers
- File upload records
- Definition-time misconfiguration
"""
import pytest

from formwork.errors import SchemaDefinitionError
from formwork.validation import (
    Composite, Conditional, Custom, Enum, FileUpload, Format, Length, Pattern, Range, Required,
    ValidationContext, requires_one_of, requires_together,
)


def run(validator, data, coerced=None):
    context = ValidationContext(data)
    context.coerced.update(coerced or {})
    validator.validate(context)
    return context.errors


class TestRequired:
    @pytest.mark.parametrize("data", [{}, {"f": None}, {"f": ""}])
    def test_missing_values_fail(self, data):
        errors = run(Required("f"), data)
        assert [e.code for e in errors] == ["required_field_missing"]
        assert errors[0].message == "Field 'f' is required"

    @pytest.mark.parametrize("value", [False, 0, [], {}, " "])
    def test_falsy_values_pass(self, value):
        assert run(Required("f"), {"f": value}) == []


class TestLength:
    def test_too_short(self):
        errors = run(Length("name", min=2, max=5), {"name": "A"})
        assert errors[0].code == "invalid_length"
        assert errors[0].details == {"min_length": 2, "max_length": 5, "actual_length": 1}

    def test_list_size(self):
        assert run(Length("tags", max=2), {"tags": [1, 2, 3]})[0].details["actual_length"] == 3
        assert run(Length("tags", max=3), {"tags": [1, 2, 3]}) == []

    def test_non_sized_values_skipped(self):
        assert run(Length("n", min=3), {"n": 5}) == []
        assert run(Length("n", min=3), {}) == []

    def test_requires_a_bound(self):
        with pytest.raises(SchemaDefinitionError):
            Length("name")
        with pytest.raises(SchemaDefinitionError):
            Length("name", min=5, max=2)


class TestRange:
    def test_inclusive_bounds(self):
        assert run(Range("age", min=18, max=65), {"age": 18}) == []
        assert run(Range("age", min=18, max=65), {"age": 65}) == []
        error = run(Range("age", min=18, max=65), {"age": 17})[0]
        assert error.code == "out_of_range"
        assert error.message == "Field 'age' must be between 18 and 65"
        assert error.details == {"min": 18, "max": 65, "value": 17}

    def test_single_bound_messages(self):
        assert run(Range("n", min=1), {"n": 0})[0].message == "Field 'n' must be at least 1"
        assert run(Range("n", max=1), {"n": 2})[0].message == "Field 'n' must be at most 1"

    def test_skips_non_numeric(self):
        assert run(Range("age", min=18), {"age": "twelve"}) == []
        assert run(Range("age", min=18), {"age": True}) == []

    def test_sees_coerced_value(self):
        assert run(Range("age", min=18), {"age": "12"}, coerced={"age": 12})[0].code == "out_of_range"

    def test_requires_a_bound(self):
        with pytest.raises(SchemaDefinitionError):
            Range("age")


class TestFormat:
    @pytest.mark.parametrize("name,good,bad", [
        ("email", "al@example.com", "bad"),
        ("url", "https://example.com/a?b=1", "example.com"),
        ("uri", "ftp://files.example.com", "/relative"),
        ("uuid", "550e8400-e29b-41d4-a716-446655440000", "550e8400"),
        ("iso8601", "2024-01-15T10:30:00Z", "2024-01-15T25:30:00Z"),
        ("datetime", "2024-01-15T10:30:00+02:00", "yesterday"),
        ("date", "2024-02-29", "2023-02-29"),
        ("time", "10:30", "10h30"),
        ("ipv4", "192.168.0.1", "256.1.1.1"),
        ("ipv6", "::1", "192.168.0.1"),
        ("hostname", "api.example.com", "-bad-.com"),
        ("phone", "+15551234567", "555-1234"),
    ])
    def test_named_formats(self, name, good, bad):
        assert run(Format("f", name), {"f": good}) == []
        error = run(Format("f", name), {"f": bad})[0]
        assert error.code == "invalid_format"
        assert error.details == {"format": name, "value": bad}

    def test_custom_regex_name(self):
        validator = Format("zip", r"^\d{5}$")
        assert run(validator, {"zip": "02134"}) == []
        assert run(validator, {"zip": "2134"})[0].code == "invalid_format"

    def test_custom_with_pattern(self):
        validator = Format("sku", "custom", pattern=r"^[A-Z]{3}-\d+$")
        assert run(validator, {"sku": "ABC-12"}) == []
        assert run(validator, {"sku": "abc"})[0].details["format"] == "custom"

    def test_skips_non_strings_absent_and_null(self):
        validator = Format("email", "email")
        assert run(validator, {"email": 5}) == []
        assert run(validator, {"email": None}) == []
        assert run(validator, {}) == []

    def test_bad_regex_is_definition_error(self):
        with pytest.raises(SchemaDefinitionError):
            Format("f", "custom", pattern="[unclosed")
        with pytest.raises(SchemaDefinitionError):
            Format("f", "custom")


class TestEnum:
    def test_membership(self):
        validator = Enum("type", ["individual", "business"])
        assert run(validator, {"type": "business"}) == []
        error = run(validator, {"type": "Business"})[0]
        assert error.code == "invalid_enum_value"
        assert error.message == "Field 'type' must be one of: individual, business"

    def test_untrimmed(self):
        assert run(Enum("type", ["a"]), {"type": " a"})[0].code == "invalid_enum_value"

    def test_string_representation(self):
        assert run(Enum("level", [1, 2, 3]), {"level": 2}) == []
        assert run(Enum("level", [1, 2, 3]), {"level": "2"}) == []

    def test_empty_list_rejected(self):
        with pytest.raises(SchemaDefinitionError):
            Enum("type", [])


class TestPattern:
    def test_stringified_match(self):
        validator = Pattern("code", r"^\d{4}$")
        assert run(validator, {"code": 1234}) == []
        error = run(validator, {"code": "12a4"})[0]
        assert error.code == "pattern_mismatch"

    def test_custom_message(self):
        validator = Pattern("code", r"^\d+$", message="Digits only")
        assert run(validator, {"code": "x"})[0].message == "Digits only"

    def test_invalid_regex(self):
        with pytest.raises(SchemaDefinitionError):
            Pattern("code", "(")


class TestCustom:
    def test_reads_sibling_fields(self):
        def passwords_match(ctx):
            if ctx.field_value("password") != ctx.field_value("confirm"):
                ctx.fail("confirm", "Passwords do not match", "password_mismatch")

        errors = run(Custom(passwords_match), {"password": "a", "confirm": "b"})
        assert [(e.field, e.code) for e in errors] == [("confirm", "password_mismatch")]

    def test_exception_becomes_error(self):
        def broken(ctx):
            raise RuntimeError("lookup service down")

        errors = run(Custom(broken), {})
        assert errors[0].code == "validator_error"
        assert errors[0].field == "$"
        assert "lookup service down" in errors[0].message


class TestComposition:
    def test_composite_runs_all(self):
        validator = Composite([Required("a"), Required("b")])
        assert [e.field for e in run(validator, {})] == ["a", "b"]

    def test_conditional(self):
        validator = Conditional(lambda ctx: ctx.field_value("kind") == "x", Required("extra"))
        assert run(validator, {"kind": "y"}) == []
        assert run(validator, {"kind": "x"})[0].field == "extra"

    def test_context_bookkeeping(self):
        context = ValidationContext({"a": "1"})
        assert not context.has_errors()
        context.fail("a", "Nope", "custom_code", hint="x")
        assert context.has_errors() and context.has_error_for("a")
        assert context.errors[0].details == {"hint": "x"}

    def test_requires_together(self):
        validator = requires_together("lat", "lng")
        assert run(validator, {}) == []
        assert run(validator, {"lat": 1, "lng": 2}) == []
        errors = run(validator, {"lat": 1})
        assert [(e.field, e.code) for e in errors] == [("lng", "requires_together")]

    def test_requires_one_of(self):
        validator = requires_one_of("email", "phone")
        assert run(validator, {"phone": "+15551234567"}) == []
        assert run(validator, {"email": ""})[0].code == "requires_one_of"


class TestFileUpload:
    def record(self, **overrides):
        return {"filename": "avatar.png", "content_type": "image/png", "size": 2048, **overrides}

    def test_accepts_matching_file(self):
        validator = FileUpload("avatar", max_size=4096, allowed_types=("image/png",), allowed_extensions=("png",))
        assert run(validator, {"avatar": self.record()}) == []

    def test_reports_every_violation(self):
        validator = FileUpload("avatar", max_size=1024, allowed_types=("image/jpeg",),
                               allowed_extensions=(".jpg",), filename_pattern=r"^[a-z]+\.jpg$")
        codes = [e.code for e in run(validator, {"avatar": self.record()})]
        assert codes == ["file_too_large", "invalid_content_type", "invalid_file_extension", "invalid_filename_pattern"]

    def test_missing_content_type(self):
        validator = FileUpload("avatar", allowed_types=("image/png",))
        assert run(validator, {"avatar": self.record(content_type=None)})[0].code == "missing_content_type"

    def test_not_a_file(self):
        assert run(FileUpload("avatar", max_size=10), {"avatar": "text"})[0].code == "not_a_file"
