"""Validation Outcome Monad

Exactly two variants: ``Success`` carries the cleaned payload, ``Failure``
carries a ``ValidationFailure`` (one or more errors, the raw input snapshot
and any warnings). Both are immutable; combinators never mutate in place.

Usage:
    outcome = schema.validate(data)
    outcome.map(to_model).or_else(lambda failure: fallback(failure))
    outcome.match(
        success=lambda value: render(value),
        failure=lambda failure: render_errors(failure.errors),
    )
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Iterator, Mapping, NoReturn, Sequence, TypeVar, Union, final

from formwork.errors.types import FieldError, FieldWarning

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class ValidationFailure:
    """Accumulated error set of one validation run."""
    errors: tuple[FieldError, ...]
    raw_data: Any = None
    warnings: tuple[FieldWarning, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "errors", tuple(self.errors))
        object.__setattr__(self, "warnings", tuple(self.warnings))
        if not self.errors: raise ValueError("ValidationFailure requires at least one error")

    @property
    def messages(self) -> list[str]:
        return [e.message for e in self.errors]

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def errors_by_field(self) -> dict[str, list[FieldError]]:
        grouped: dict[str, list[FieldError]] = {}
        for error in self.errors:
            grouped.setdefault(error.field, []).append(error)
        return grouped

    def errors_for(self, field_path: str) -> list[FieldError]:
        return [e for e in self.errors if e.field == field_path]

    def has_error_for(self, field_path: str) -> bool:
        return any(e.field == field_path for e in self.errors)

    def codes_for(self, field_path: str) -> list[str]:
        return [e.code for e in self.errors if e.field == field_path]

    def to_dict(self, *, include_raw_data: bool = True) -> dict[str, Any]:
        result: dict[str, Any] = {
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
        }
        if include_raw_data: result["raw_data"] = self.raw_data
        return result

    def __str__(self) -> str:
        return "Validation failed: " + "; ".join(str(e) for e in self.errors)


@final
@dataclass(frozen=True)
class Success(Generic[T]):
    """Success variant. Warnings ride along without affecting control flow."""
    value: T
    warnings: tuple[FieldWarning, ...] = field(default=(), compare=False)

    def is_success(self) -> bool:
        return True

    def is_failure(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def map(self, f: Callable[[T], U]) -> Outcome[U]:
        """Transform the success value."""
        return Success(f(self.value), self.warnings)

    def flat_map(self, f: Callable[[T], Outcome[U]]) -> Outcome[U]:
        """Chain a dependent step that may fail."""
        return f(self.value)

    def and_then(self, f: Callable[[T], Outcome[U]]) -> Outcome[U]:
        """Alias for flat_map."""
        return f(self.value)

    def or_else(self, f: Callable[[ValidationFailure], Outcome[T]]) -> Outcome[T]:
        """No-op for Success."""
        return self

    def recover(self, f: Callable[[ValidationFailure], Outcome[T]]) -> Outcome[T]:
        return self

    def on_success(self, f: Callable[[T], Any]) -> Outcome[T]:
        f(self.value)
        return self

    def on_failure(self, f: Callable[[ValidationFailure], Any]) -> Outcome[T]:
        return self

    def match(self, success: Callable[[T], U], failure: Callable[[ValidationFailure], U]) -> U:
        """Pattern match on the outcome. Forces handling of both variants."""
        return success(self.value)

    def to_dict(self) -> dict[str, Any]:
        return {"success": True, "data": self.value, "warnings": [w.to_dict() for w in self.warnings]}

    def __iter__(self) -> Iterator[T]:
        yield self.value


@final
@dataclass(frozen=True)
class Failure:
    """Failure variant wrapping a ValidationFailure."""
    error: ValidationFailure

    def is_success(self) -> bool:
        return False

    def is_failure(self) -> bool:
        return True

    @property
    def errors(self) -> tuple[FieldError, ...]:
        return self.error.errors

    @property
    def warnings(self) -> tuple[FieldWarning, ...]:
        return self.error.warnings

    def unwrap(self) -> NoReturn:
        raise ValueError(f"Called unwrap on Failure: {self.error}")

    def unwrap_or(self, default: T) -> T:
        return default

    def map(self, f: Callable[[Any], U]) -> Outcome[U]:
        """No-op for Failure."""
        return self

    def flat_map(self, f: Callable[[Any], Outcome[U]]) -> Outcome[U]:
        return self

    def and_then(self, f: Callable[[Any], Outcome[U]]) -> Outcome[U]:
        return self

    def or_else(self, f: Callable[[ValidationFailure], Outcome[T]]) -> Outcome[T]:
        """Substitute a new outcome computed from the failure."""
        return f(self.error)

    def recover(self, f: Callable[[ValidationFailure], Outcome[T]]) -> Outcome[T]:
        return f(self.error)

    def on_success(self, f: Callable[[Any], Any]) -> Failure:
        return self

    def on_failure(self, f: Callable[[ValidationFailure], Any]) -> Failure:
        f(self.error)
        return self

    def match(self, success: Callable[[Any], U], failure: Callable[[ValidationFailure], U]) -> U:
        return failure(self.error)

    def to_dict(self) -> dict[str, Any]:
        return {"success": False, **self.error.to_dict()}

    def __iter__(self) -> Iterator:
        return iter([])


Outcome = Union[Success[T], Failure]


def success(value: T, warnings: Sequence[FieldWarning] = ()) -> Success[T]:
    """Construct Success variant."""
    return Success(value, tuple(warnings))


def failure(errors: FieldError | Sequence[FieldError], raw_data: Any = None,
            warnings: Sequence[FieldWarning] = ()) -> Failure:
    """Construct Failure variant from one or more errors."""
    if isinstance(errors, FieldError): errors = (errors,)
    return Failure(ValidationFailure(tuple(errors), raw_data, tuple(warnings)))


# ============================================================================
# Batch helpers
# ============================================================================

def first_success(outcomes: Sequence[Outcome[T]]) -> Outcome[T]:
    """First Success in order, otherwise the last Failure."""
    if not outcomes: raise ValueError("first_success requires at least one outcome")
    for outcome in outcomes:
        if outcome.is_success(): return outcome
    return outcomes[-1]


def combine(outcomes: Sequence[Outcome[T]]) -> Outcome[list[T]]:
    """All successes become one Success of a list, otherwise one Failure aggregating every error."""
    values: list[T] = []
    errors: list[FieldError] = []
    warnings: list[FieldWarning] = []
    raw: list[Any] = []
    for outcome in outcomes:
        warnings.extend(outcome.warnings)
        if isinstance(outcome, Success):
            values.append(outcome.value)
        else:
            errors.extend(outcome.error.errors)
            raw.append(outcome.error.raw_data)
    if errors: return failure(errors, raw, warnings)
    return Success(values, tuple(warnings))


def sequence(outcomes: Mapping[str, Outcome[T]]) -> Outcome[dict[str, T]]:
    """Keyed variant of combine."""
    values: dict[str, T] = {}
    errors: list[FieldError] = []
    warnings: list[FieldWarning] = []
    raw: dict[str, Any] = {}
    for key, outcome in outcomes.items():
        warnings.extend(outcome.warnings)
        if isinstance(outcome, Success):
            values[key] = outcome.value
        else:
            errors.extend(outcome.error.errors)
            raw[key] = outcome.error.raw_data
    if errors: return failure(errors, raw, warnings)
    return Success(values, tuple(warnings))
