"""Rendering of error lists for clients, logs and HTML forms."""
from __future__ import annotations

import html
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Sequence

from .types import FieldError, FieldWarning

if TYPE_CHECKING:
    from formwork.config import Settings


class GroupBy(str, Enum):
    FIELD = "field"
    CODE = "code"
    NONE = "none"


class DetailLevel(str, Enum):
    MINIMAL = "minimal"    # message only
    STANDARD = "standard"  # field, message, code
    FULL = "full"          # everything, details included


@dataclass(frozen=True, slots=True)
class ErrorFormatter:
    group_by: GroupBy = GroupBy.FIELD
    detail_level: DetailLevel = DetailLevel.STANDARD
    include_field_path: bool = True

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> ErrorFormatter:
        if settings is None:
            from formwork.config import get_settings
            settings = get_settings()
        return cls(GroupBy(settings.ERROR_GROUP_BY), DetailLevel(settings.ERROR_DETAIL_LEVEL))

    def format(self, errors: Sequence[FieldError]) -> list[Any] | dict[str, list[Any]]:
        if self.group_by is GroupBy.NONE: return [self.format_error(e) for e in errors]
        grouped: dict[str, list[Any]] = {}
        for error in errors:
            key = error.field if self.group_by is GroupBy.FIELD else error.code
            grouped.setdefault(key, []).append(self.format_error(error))
        return grouped

    def format_error(self, error: FieldError) -> Any:
        if self.detail_level is DetailLevel.MINIMAL: return error.message
        if self.detail_level is DetailLevel.FULL: return error.to_dict()
        result = {"message": error.message, "code": error.code}
        if self.include_field_path and error.field: result["field"] = error.field
        return result

    def format_warnings(self, warnings: Sequence[FieldWarning]) -> list[dict[str, Any]]:
        return [w.to_dict() for w in warnings]


def summarize(errors: Sequence[FieldError]) -> str:
    """One-line summary: the message itself for a single error, counts otherwise."""
    if not errors: return "No errors"
    if len(errors) == 1: return errors[0].message
    field_count = len({e.field for e in errors})
    return f"{len(errors)} validation errors in {field_count} field{'s' if field_count != 1 else ''}"


def detailed_report(errors: Sequence[FieldError], warnings: Sequence[FieldWarning] = ()) -> str:
    """Multi-line report for logs and debugging."""
    lines = ["Validation Errors:"]
    grouped: dict[str, list[FieldError]] = {}
    for error in errors:
        grouped.setdefault(error.field, []).append(error)
    for field, field_errors in grouped.items():
        lines.append(f"\n  Field: {field or '(general)'}")
        for error in field_errors:
            lines.append(f"    - {error.message} ({error.code})")
            if error.details: lines.append(f"      Details: {dict(error.details)}")
    if warnings:
        lines.append("\nWarnings:")
        lines.extend(f"  - {w.field}: {w.message} ({w.code})" for w in warnings)
    return "\n".join(lines)


def to_html(errors: Sequence[FieldError]) -> str:
    if not errors: return ""
    items = []
    for error in errors:
        label = f"<strong>{html.escape(error.field)}:</strong> " if error.field else ""
        items.append(f"<li>{label}{html.escape(error.message)}</li>")
    return f'<div class="validation-errors"><ul>{"".join(items)}</ul></div>'
