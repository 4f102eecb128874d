"""Response parsers: pure functions converting raw model text into values."""

from .json_extraction import (
    ResponseParser,
    extract_fenced_block,
    extract_json,
    iter_balanced_spans,
    json_field_parser,
    json_parser,
    preview_text,
    repair_trailing_commas,
)
from .structured import labeled_fields_parser, regex_parser, text_parser

__all__ = [
    "ResponseParser",
    "extract_fenced_block",
    "extract_json",
    "iter_balanced_spans",
    "json_field_parser",
    "json_parser",
    "labeled_fields_parser",
    "preview_text",
    "regex_parser",
    "repair_trailing_commas",
    "text_parser",
]
