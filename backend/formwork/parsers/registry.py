"""Content-type to parser lookup."""
from __future__ import annotations

from typing import Any

from formwork.errors.types import SchemaDefinitionError
from formwork.logging import parser_logger

from .base import ContentParser
from .document import JSONParser
from .form import FormParser
from .multipart import MultipartParser
from .xml import XMLParser

log = parser_logger()


def normalize_content_type(content_type: str | None) -> str:
    """Media type only: parameters stripped, lowercased."""
    return (content_type or "").split(";", 1)[0].strip().lower()


class ParserRegistry:
    """Maps normalized media types to parsers.

    Populated at startup, then read concurrently. Structured suffixes
    (``application/vnd.api+json``) fall back to the base parser; unknown
    types are sniffed from the payload, else parse to an empty mapping.
    """

    __slots__ = ("_parsers", "_frozen")

    def __init__(self):
        self._parsers: dict[str, ContentParser] = {}
        self._frozen = False

    def register(self, content_type: str, parser: ContentParser, *, replace: bool = False) -> ParserRegistry:
        media_type = normalize_content_type(content_type)
        if self._frozen: raise SchemaDefinitionError(f"Parser registry is frozen; cannot register '{media_type}'")
        if not media_type: raise SchemaDefinitionError("Parser content type must not be empty")
        if media_type in self._parsers and not replace:
            raise SchemaDefinitionError(f"Parser for '{media_type}' is already registered")
        self._parsers[media_type] = parser
        return self

    def register_parser(self, parser: ContentParser, *, replace: bool = False) -> ParserRegistry:
        for media_type in parser.media_types:
            self.register(media_type, parser, replace=replace)
        return self

    def freeze(self) -> ParserRegistry:
        self._frozen = True
        return self

    @property
    def content_types(self) -> list[str]:
        return sorted(self._parsers)

    def parser_for(self, content_type: str | None) -> ContentParser | None:
        media_type = normalize_content_type(content_type)
        if parser := self._parsers.get(media_type): return parser
        if media_type.endswith("+json"): return self._parsers.get("application/json")
        if media_type.endswith("+xml"): return self._parsers.get("application/xml")
        return None

    def supports(self, content_type: str | None) -> bool:
        return self.parser_for(content_type) is not None

    def parse(self, payload: str | bytes | None, content_type: str | None = None) -> dict[str, Any]:
        if payload is None: return {}
        if parser := self.parser_for(content_type): return parser.parse(payload, content_type)
        return self._sniff(payload, content_type)

    def _sniff(self, payload: str | bytes, content_type: str | None) -> dict[str, Any]:
        head = payload.lstrip()[:1]
        if isinstance(head, bytes): head = head.decode("latin-1")
        if head.startswith(("{", "[")) and (parser := self._parsers.get("application/json")):
            log.debug("parser_fallback", content_type=content_type, detected="json")
            return parser.parse(payload, content_type)
        if head.startswith("<") and (parser := self._parsers.get("application/xml")):
            log.debug("parser_fallback", content_type=content_type, detected="xml")
            return parser.parse(payload, content_type)
        log.debug("parser_fallback", content_type=content_type, detected=None)
        return {}


def default_registry() -> ParserRegistry:
    """Registry with the JSON, form, multipart and XML parsers."""
    return (
        ParserRegistry()
        .register_parser(JSONParser())
        .register_parser(FormParser())
        .register_parser(MultipartParser())
        .register_parser(XMLParser())
    )
