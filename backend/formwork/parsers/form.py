"""URL-encoded key/value payloads (form bodies, query strings)."""
from __future__ import annotations

from typing import Any, Iterable, Mapping
from urllib.parse import parse_qsl, urlencode

from .base import ContentParser, build_nested, charset_of, decode_text


class FormParser(ContentParser):
    """Rebuilds nesting from ``a[b][c]`` / ``a.b.c`` keys and retypes scalar values."""

    media_types = ("application/x-www-form-urlencoded",)

    def __init__(self, retype: bool = True):
        self.retype = retype

    def parse(self, payload: str | bytes, content_type: str | None = None) -> dict[str, Any]:
        text = decode_text(payload, charset_of(content_type))
        return self.from_pairs(parse_qsl(text.strip(), keep_blank_values=True))

    def from_pairs(self, pairs: Iterable[tuple[str, Any]]) -> dict[str, Any]:
        return build_nested(pairs, retype=self.retype)

    def from_mapping(self, mapping: Mapping[str, Any]) -> dict[str, Any]:
        """Already-split data; list values count as repeated keys."""
        pairs: list[tuple[str, Any]] = []
        for key, value in mapping.items():
            if isinstance(value, (list, tuple)): pairs.extend((key, item) for item in value)
            else: pairs.append((key, value))
        return self.from_pairs(pairs)


def to_query_string(data: Mapping[str, Any], prefix: str = "") -> str:
    """Inverse of FormParser for flat and nested mappings."""
    return urlencode(list(_flatten(data, prefix)))


def _flatten(data: Mapping[str, Any], prefix: str) -> Iterable[tuple[str, str]]:
    for key, value in data.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if isinstance(value, Mapping):
            yield from _flatten(value, name)
        elif isinstance(value, (list, tuple)):
            for item in value:
                yield f"{name}[]", _text(item)
        else:
            yield name, _text(value)


def _text(value: Any) -> str:
    if value is None: return "null"
    if isinstance(value, bool): return "true" if value else "false"
    return str(value)
