"""Text-based response parsers: regex, labeled fields and plain text."""

import re
from typing import Dict, Mapping, Pattern, Union

from ..core.types import ParseError
from .json_extraction import ResponseParser, preview_text

_LABELED_LINE = re.compile(r"^([^:]+):\s*(.+)$")


def regex_parser(patterns: Mapping[str, Union[str, Pattern[str]]]) -> ResponseParser[Dict[str, str]]:
    """
    Create a parser that extracts one value per key with a regular expression.

    Each pattern's first capture group (trimmed) becomes the value. Parsing
    stops at the first pattern that does not match.

    Args:
        patterns: Mapping of result key to pattern (string or compiled)

    Returns:
        Parser producing a dict of extracted values
    """
    compiled = {key: re.compile(pattern) for key, pattern in patterns.items()}

    def parse(raw: str) -> Dict[str, str]:
        result = {}
        for key, pattern in compiled.items():
            match = pattern.search(raw)
            if not match or not match.groups() or not match.group(1):
                raise ParseError(
                    f"Failed to extract '{key}' using pattern {pattern.pattern!r}",
                    preview=preview_text(raw),
                )
            result[key] = match.group(1).strip()
        return result

    return parse


def labeled_fields_parser() -> ResponseParser[Dict[str, str]]:
    """Create a parser for ``Label: value`` lines. Unmatched lines are skipped."""

    def parse(raw: str) -> Dict[str, str]:
        result = {}
        for line in raw.splitlines():
            match = _LABELED_LINE.match(line)
            if match:
                result[match.group(1).strip()] = match.group(2).strip()
        return result

    return parse


def text_parser() -> ResponseParser[str]:
    """Simple parser that returns the raw text without surrounding whitespace."""
    return str.strip
