"""
JSON Parsers

LLM output is not reliably well-formed JSON: code fences, leading prose and
trailing commentary are common. ``json_parser`` tries, in order:

1. The whole trimmed response
2. The first fenced code block (```json, ```JSON or bare ```)
3. The first balanced {...} span, else the first balanced [...] span
   (string- and escape-aware), with a trailing-comma repair attempt
4. ParseError with a preview of the cleaned input
"""

import json
import re
from typing import Any, Callable, Iterator, List, Optional, Tuple, TypeVar

from ..core.types import ParseError

T = TypeVar("T")

ResponseParser = Callable[[str], T]

PREVIEW_LENGTH = 100

_FENCE_PATTERN = re.compile(r"```(?:json|JSON)?[ \t]*\r?\n?(.*?)```", re.DOTALL)

_MISSING = object()


def preview_text(text: str, length: int = PREVIEW_LENGTH) -> str:
    """Truncated single-line preview used in error messages."""
    flat = " ".join(text.split())
    return flat if len(flat) <= length else flat[:length] + "..."


def repair_trailing_commas(json_str: str) -> str:
    """
    Remove trailing commas in objects and arrays.

    Args:
        json_str: JSON string with trailing commas

    Returns:
        JSON string without trailing commas
    """
    repaired = re.sub(r",\s*}", "}", json_str)
    repaired = re.sub(r",\s*]", "]", repaired)
    return repaired


def _loads(text: str) -> Any:
    """json.loads that returns _MISSING instead of raising."""
    try:
        return json.loads(text)
    except (json.JSONDecodeError, RecursionError):
        return _MISSING


def extract_fenced_block(text: str) -> Optional[str]:
    """Content of the first fenced code block, or None."""
    match = _FENCE_PATTERN.search(text)
    return match.group(1).strip() if match else None


def iter_balanced_spans(text: str, open_char: str, close_char: str) -> Iterator[str]:
    """
    Yield balanced ``open_char ... close_char`` spans in order of their start.

    A single pass pairs brackets with a stack of open positions, so input
    full of unmatched brackets stays linear. Quotes only open a string
    inside a span; backslash escapes inside strings are honored.
    """
    pairs: List[Tuple[int, int]] = []
    stack: List[int] = []
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"' and stack:
            in_string = True
        elif ch == open_char:
            stack.append(i)
        elif ch == close_char and stack:
            pairs.append((stack.pop(), i))

    for start, end in sorted(pairs):
        yield text[start : end + 1]


def _parse_span(text: str, open_char: str, close_char: str) -> Any:
    for span in iter_balanced_spans(text, open_char, close_char):
        parsed = _loads(span)
        if parsed is _MISSING:
            parsed = _loads(repair_trailing_commas(span))
        if parsed is not _MISSING:
            return parsed
    return _MISSING


def extract_json(text: str) -> Any:
    """
    Extract a JSON value from LLM response text.

    Args:
        text: Raw LLM response

    Returns:
        The parsed JSON value

    Raises:
        ParseError: If no strategy produced valid JSON
    """
    cleaned = text.strip()

    parsed = _loads(cleaned)
    if parsed is not _MISSING:
        return parsed

    block = extract_fenced_block(cleaned)
    if block is not None:
        parsed = _loads(block)
        if parsed is not _MISSING:
            return parsed

    for open_char, close_char in (("{", "}"), ("[", "]")):
        parsed = _parse_span(cleaned, open_char, close_char)
        if parsed is not _MISSING:
            return parsed

    preview = preview_text(cleaned)
    raise ParseError(f"No valid JSON found in response: {preview}", preview=preview)


def json_parser() -> ResponseParser[Any]:
    """Create a parser that extracts JSON from a text response and parses it."""
    return extract_json


def json_field_parser(field: str) -> ResponseParser[Any]:
    """Create a parser that returns one field of a JSON object response."""

    def parse(raw: str) -> Any:
        parsed = extract_json(raw)
        if not isinstance(parsed, dict):
            raise ParseError(
                f"Expected a JSON object with field '{field}', got {type(parsed).__name__}",
                preview=preview_text(raw),
            )
        if field not in parsed:
            raise ParseError(
                f"Field '{field}' not found in response JSON",
                preview=preview_text(raw),
            )
        # An explicit null is a value
        return parsed[field]

    return parse
