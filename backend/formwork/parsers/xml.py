"""XML documents.

The root element's children become top-level keys. Attributes are stored
as ``@name``, text next to child elements as ``#text``, repeated child
elements as lists. Leaf text is retyped like form values.
"""
from __future__ import annotations

from typing import Any
from xml.etree import ElementTree as ET

from formwork.errors.types import PayloadError

from .base import ContentParser, retype_value
from .document import SCALAR_ROOT_KEY

TEXT_KEY = "#text"


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def element_to_value(element: ET.Element) -> Any:
    children = list(element)
    text = (element.text or "").strip()
    if not children and not element.attrib: return retype_value(text)

    node: dict[str, Any] = {f"@{_local_name(k)}": retype_value(v) for k, v in element.attrib.items()}
    repeated: set[str] = set()
    for child in children:
        tag, value = _local_name(child.tag), element_to_value(child)
        if tag not in node:
            node[tag] = value
        elif tag in repeated:
            node[tag].append(value)
        else:
            node[tag] = [node[tag], value]
            repeated.add(tag)
    if text: node[TEXT_KEY] = retype_value(text)
    return node


class XMLParser(ContentParser):
    media_types = ("application/xml", "text/xml")

    def parse(self, payload: str | bytes, content_type: str | None = None) -> dict[str, Any]:
        if isinstance(payload, str): payload = payload.encode("utf-8")
        if not payload.strip(): return {}
        try:
            root = ET.fromstring(payload)
        except ET.ParseError as e:
            raise PayloadError(f"Invalid XML: {e}", content_type) from e
        value = element_to_value(root)
        return value if isinstance(value, dict) else {SCALAR_ROOT_KEY: value}
