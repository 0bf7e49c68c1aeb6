"""Shared pieces of the content parsers: the parser interface, opportunistic
scalar retyping and reconstruction of nested keys (``a[b][c]``, ``a.b.c``,
``tags[]``)."""
from __future__ import annotations

import json
import math
import re
from abc import ABC, abstractmethod
from typing import Any, Iterable

from formwork.errors.types import PayloadError
from formwork.logging import parser_logger

log = parser_logger()

INT_TEXT_RE = re.compile(r"^-?(0|[1-9]\d*)$")
FLOAT_TEXT_RE = re.compile(r"^-?((0|[1-9]\d*)?\.\d+([eE][+-]?\d+)?|(0|[1-9]\d*)[eE][+-]?\d+)$")
_KEY_SPLIT_RE = re.compile(r"\]\[|\[|\]\.|\]|\.")


class ContentParser(ABC):
    """Turns a raw payload into a string-keyed mapping."""

    media_types: tuple[str, ...] = ()

    @abstractmethod
    def parse(self, payload: str | bytes, content_type: str | None = None) -> dict[str, Any]:
        """Decode ``payload``; raises PayloadError when it is malformed."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


def decode_text(payload: str | bytes, charset: str | None = None) -> str:
    if isinstance(payload, str): return payload
    try:
        return payload.decode(charset or "utf-8")
    except (UnicodeDecodeError, LookupError) as e:
        raise PayloadError(f"Payload is not valid {charset or 'utf-8'} text: {e}") from e


def charset_of(content_type: str | None) -> str | None:
    for param in (content_type or "").split(";")[1:]:
        key, _, value = param.partition("=")
        if key.strip().lower() == "charset": return value.strip().strip('"') or None
    return None


def retype_value(text: str) -> Any:
    """Best guess at the scalar a textual wire value stands for.

    Booleans, null, integers (no leading zeros, so "02134" stays text),
    floats, then JSON object/array literals; anything else stays a string.
    """
    lowered = text.lower()
    if lowered == "true": return True
    if lowered == "false": return False
    if lowered == "null": return None
    if INT_TEXT_RE.match(text):
        try:
            return int(text)
        except ValueError:  # beyond the interpreter's int-from-str digit limit
            return text
    if FLOAT_TEXT_RE.match(text):
        number = float(text)
        return text if math.isinf(number) else number
    if text[:1] in ("{", "["):
        try:
            return json.loads(text)
        except ValueError:
            return text
    return text


def split_key(key: str) -> tuple[list[str], bool]:
    """Path segments of a bracket/dot key and whether it appends to a list."""
    append = key.endswith("[]")
    if append: key = key[:-2]
    return [part for part in _KEY_SPLIT_RE.split(key) if part], append


def set_nested_value(target: dict[str, Any], key: str, value: Any) -> bool:
    """Store ``value`` under the nested path encoded in ``key``.

    A repeated plain key turns into a list. Returns False (and stores nothing)
    when the path runs into a value of a different shape.
    """
    parts, append = split_key(key)
    if not parts: return False
    node = target
    for part in parts[:-1]:
        child = node.get(part)
        if child is None:
            child = node[part] = {}
        elif not isinstance(child, dict):
            log.debug("key_conflict", key=key, segment=part)
            return False
        node = child

    last = parts[-1]
    existing = node.get(last)
    if isinstance(existing, dict):
        log.debug("key_conflict", key=key, segment=last)
        return False
    if append:
        if last not in node: node[last] = [value]
        elif isinstance(existing, list): existing.append(value)
        else: node[last] = [existing, value]
    elif last in node:
        node[last] = existing + [value] if isinstance(existing, list) else [existing, value]
    else:
        node[last] = value
    return True


def build_nested(pairs: Iterable[tuple[str, Any]], *, retype: bool = True) -> dict[str, Any]:
    """Fold (key, value) pairs into a nested mapping."""
    result: dict[str, Any] = {}
    for key, value in pairs:
        if retype and isinstance(value, str): value = retype_value(value)
        set_nested_value(result, key, value)
    return result
