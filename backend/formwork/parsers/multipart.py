"""multipart/form-data payloads.

Text parts follow the same key reconstruction and retyping as form bodies;
file parts become records of filename, declared content type and byte size.
The file content itself is not kept.
"""
from __future__ import annotations

from typing import Any, Iterable

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser as StreamingParser
from python_multipart.multipart import parse_options_header

from formwork.errors.types import PayloadError

from .base import ContentParser, build_nested, retype_value


def file_record(filename: str, content_type: str | None, size: int) -> dict[str, Any]:
    return {"filename": filename, "content_type": content_type, "size": size}


class _PartCollector:
    """Callback target for the streaming parser: headers and bytes of each part."""

    def __init__(self):
        self.parts: list[tuple[dict[bytes, bytes], bytearray]] = []
        self.finished = False
        self._header_name = b""
        self._header_value = b""

    def callbacks(self) -> dict[str, Any]:
        return {
            "on_part_begin": self.on_part_begin,
            "on_part_data": self.on_part_data,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
            "on_end": self.on_end,
        }

    def on_part_begin(self) -> None:
        self.parts.append(({}, bytearray()))

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        self.parts[-1][1].extend(data[start:end])

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_name += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def on_header_end(self) -> None:
        self.parts[-1][0][self._header_name.strip().lower()] = self._header_value.strip()
        self._header_name = self._header_value = b""

    def on_end(self) -> None:
        self.finished = True


class MultipartParser(ContentParser):
    media_types = ("multipart/form-data",)

    def parse(self, payload: str | bytes, content_type: str | None = None) -> dict[str, Any]:
        _, params = parse_options_header(content_type or "")
        boundary = params.get(b"boundary")
        if not boundary:
            raise PayloadError("Multipart payload requires a boundary in its content type", content_type)

        body = payload.encode("utf-8") if isinstance(payload, str) else payload
        collector = _PartCollector()
        parser = StreamingParser(boundary, collector.callbacks())
        try:
            parser.write(body)
            parser.finalize()
        except MultipartParseError as e:
            raise PayloadError(f"Malformed multipart payload: {e}", content_type) from e
        if not collector.finished:
            raise PayloadError("Malformed multipart payload: closing boundary not found", content_type)

        pairs: list[tuple[str, Any]] = []
        for headers, content in collector.parts:
            _, disposition = parse_options_header(headers.get(b"content-disposition", b""))
            name = disposition.get(b"name", b"").decode("utf-8", "replace")
            if not name: continue
            declared, type_params = parse_options_header(headers.get(b"content-type", b""))
            if b"filename" in disposition:
                filename = disposition[b"filename"].decode("utf-8", "replace")
                pairs.append((name, file_record(filename, declared.decode("latin-1") or None, len(content))))
                continue
            charset = type_params.get(b"charset", b"utf-8").decode("latin-1")
            try:
                text = bytes(content).decode(charset)
            except (UnicodeDecodeError, LookupError) as e:
                raise PayloadError(f"Part '{name}' is not valid {charset} text", content_type) from e
            pairs.append((name, retype_value(text)))
        return build_nested(pairs, retype=False)

    def from_parts(self, parts: Iterable[tuple[str, Any]]) -> dict[str, Any]:
        """Pre-parsed (name, value) pairs, e.g. ``(await request.form()).multi_items()``.

        Values exposing ``filename`` are treated as uploads and read for
        ``content_type`` and ``size``.
        """
        pairs: list[tuple[str, Any]] = []
        for name, value in parts:
            if getattr(value, "filename", None) is not None:
                value = file_record(value.filename, getattr(value, "content_type", None), getattr(value, "size", None) or 0)
            elif isinstance(value, str):
                value = retype_value(value)
            pairs.append((name, value))
        return build_nested(pairs, retype=False)
