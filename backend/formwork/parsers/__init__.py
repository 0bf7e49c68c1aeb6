"""Content Parsers

Turn a raw payload plus its content type into a plain string-keyed mapping
ready for schema validation.
"""
from .base import ContentParser, retype_value, set_nested_value, split_key
from .document import JSONParser
from .form import FormParser, to_query_string
from .multipart import MultipartParser, file_record
from .xml import XMLParser
from .sanitizer import Sanitizer, SanitizeOption
from .registry import ParserRegistry, default_registry, normalize_content_type

__all__ = [
    "ContentParser", "retype_value", "set_nested_value", "split_key",
    "JSONParser", "FormParser", "to_query_string", "MultipartParser", "file_record", "XMLParser",
    "Sanitizer", "SanitizeOption",
    "ParserRegistry", "default_registry", "normalize_content_type",
]
