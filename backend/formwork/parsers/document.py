"""JSON documents."""
from __future__ import annotations

import json
from typing import Any

from formwork.errors.types import PayloadError

from .base import ContentParser, charset_of, decode_text

ARRAY_ROOT_KEY = "data"
SCALAR_ROOT_KEY = "value"


class JSONParser(ContentParser):
    """Object roots are returned as-is; array roots wrap under "data", scalars under "value"."""

    media_types = ("application/json", "text/json")

    def parse(self, payload: str | bytes, content_type: str | None = None) -> dict[str, Any]:
        text = decode_text(payload, charset_of(content_type))
        if not text.strip(): return {}
        try:
            document = json.loads(text)
        except ValueError as e:
            raise PayloadError(f"Invalid JSON: {e}", content_type) from e
        if isinstance(document, dict): return document
        if isinstance(document, list): return {ARRAY_ROOT_KEY: document}
        return {SCALAR_ROOT_KEY: document}
