"""String cleanup applied to parsed payloads before validation."""
from __future__ import annotations

import html
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")


class SanitizeOption(str, Enum):
    TRIM_WHITESPACE = "trim_whitespace"
    REMOVE_HTML = "remove_html"
    ESCAPE_HTML = "escape_html"
    LOWERCASE = "lowercase"
    UPPERCASE = "uppercase"
    REMOVE_NON_PRINTABLE = "remove_non_printable"
    NORMALIZE_WHITESPACE = "normalize_whitespace"


@dataclass(frozen=True, slots=True)
class Sanitizer:
    """Applies a fixed set of options to every string in a payload.

    ``fields`` limits cleanup to those top-level keys; empty means all.
    """
    options: frozenset[SanitizeOption] = frozenset()
    fields: frozenset[str] = frozenset()

    @classmethod
    def of(cls, *options: SanitizeOption | str, fields: Iterable[str] = ()) -> Sanitizer:
        return cls(frozenset(SanitizeOption(o) for o in options), frozenset(fields))

    @classmethod
    def for_text(cls) -> Sanitizer:
        return cls.of(SanitizeOption.TRIM_WHITESPACE, SanitizeOption.REMOVE_NON_PRINTABLE,
                      SanitizeOption.NORMALIZE_WHITESPACE)

    @classmethod
    def for_html(cls) -> Sanitizer:
        return cls.of(SanitizeOption.TRIM_WHITESPACE, SanitizeOption.ESCAPE_HTML)

    @classmethod
    def for_username(cls) -> Sanitizer:
        return cls.of(SanitizeOption.TRIM_WHITESPACE, SanitizeOption.LOWERCASE,
                      SanitizeOption.REMOVE_NON_PRINTABLE, SanitizeOption.REMOVE_HTML)

    @classmethod
    def for_email(cls) -> Sanitizer:
        return cls.of(SanitizeOption.TRIM_WHITESPACE, SanitizeOption.LOWERCASE)

    def clean_string(self, text: str) -> str:
        opts = self.options
        if SanitizeOption.REMOVE_NON_PRINTABLE in opts: text = "".join(c for c in text if c.isprintable() or c in "\t\n\r")
        if SanitizeOption.REMOVE_HTML in opts: text = _TAG_RE.sub("", text)
        if SanitizeOption.ESCAPE_HTML in opts: text = html.escape(text, quote=True)
        if SanitizeOption.NORMALIZE_WHITESPACE in opts: text = _WHITESPACE_RE.sub(" ", text)
        if SanitizeOption.TRIM_WHITESPACE in opts: text = text.strip()
        if SanitizeOption.LOWERCASE in opts: text = text.lower()
        elif SanitizeOption.UPPERCASE in opts: text = text.upper()
        return text

    def clean(self, value: Any) -> Any:
        """Recursively clean strings inside mappings and lists."""
        if isinstance(value, dict) and self.fields:
            return {k: self._clean_value(v) if k in self.fields else v for k, v in value.items()}
        return self._clean_value(value)

    def _clean_value(self, value: Any) -> Any:
        if isinstance(value, str): return self.clean_string(value)
        if isinstance(value, dict): return {k: self._clean_value(v) for k, v in value.items()}
        if isinstance(value, list): return [self._clean_value(v) for v in value]
        return value

    def __call__(self, value: Any) -> Any:
        return self.clean(value)
