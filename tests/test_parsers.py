"""Tests for response parsers."""

import json
import re
import time

import pytest

from llm_nodes.core.types import ParseError
from llm_nodes.parsers import (
    extract_fenced_block,
    iter_balanced_spans,
    json_field_parser,
    json_parser,
    labeled_fields_parser,
    regex_parser,
    repair_trailing_commas,
    text_parser,
)


class TestTextParser:
    """Tests for text_parser."""

    def test_strips_whitespace(self):
        """Test surrounding whitespace is removed."""
        assert text_parser()("  hello world \n") == "hello world"

    def test_empty(self):
        """Test empty input parses to an empty string."""
        assert text_parser()("") == ""


class TestJsonParser:
    """Layered JSON extraction."""

    def test_fenced_block_with_prose(self):
        """Test JSON inside a ```json fence surrounded by prose."""
        raw = 'Here is the result:\n```json\n{"a": 5}\n```\nThanks'
        assert json_parser()(raw) == {"a": 5}

    def test_plain_json(self):
        """Test a bare JSON document."""
        assert json_parser()('{"a": [1, 2, {"b": null}]}') == {"a": [1, 2, {"b": None}]}

    @pytest.mark.parametrize("value", [42, "text", True, None, [1, "two"], {"k": {"n": 1.5}}])
    def test_round_trips_json_values(self, value):
        """Test every JSON value kind parses back unchanged."""
        assert json_parser()(json.dumps(value)) == value

    def test_uppercase_fence(self):
        """Test ```JSON fences are recognized."""
        assert json_parser()('```JSON\n{"x": 1}\n```') == {"x": 1}

    def test_bare_fence(self):
        """Test fences without a language tag."""
        assert json_parser()('```\n[1, 2]\n```') == [1, 2]

    def test_object_embedded_in_prose(self):
        """Test an object between leading and trailing prose."""
        raw = 'Sure! The answer is {"name": "Ann", "tags": ["a"]} as requested.'
        assert json_parser()(raw) == {"name": "Ann", "tags": ["a"]}

    def test_braces_inside_strings_are_ignored(self):
        """Test brackets inside string values do not end the span."""
        raw = 'Result: {"text": "a } tricky { value", "n": 1} done'
        assert json_parser()(raw) == {"text": "a } tricky { value", "n": 1}

    def test_escaped_quotes_inside_strings(self):
        """Test escaped quotes keep the scanner inside the string."""
        raw = 'Output: {"quote": "she said \\"}\\" loudly"} end'
        assert json_parser()(raw) == {"quote": 'she said "}" loudly'}

    def test_object_preferred_over_array(self):
        """Test an object span wins over an earlier array span."""
        raw = 'List [1, 2] and object {"a": 1}'
        assert json_parser()(raw) == {"a": 1}

    def test_array_when_no_object(self):
        """Test array spans are used when no object is present."""
        assert json_parser()("Values: [1, 2, 3].") == [1, 2, 3]

    def test_skips_unparseable_span(self):
        """Test a later valid span is found after an invalid one."""
        raw = 'first {not json} then {"ok": true}'
        assert json_parser()(raw) == {"ok": True}

    def test_trailing_comma_repair(self):
        """Test trailing commas are repaired inside a span."""
        assert json_parser()('Here: {"a": 1, "b": [1, 2,],}') == {"a": 1, "b": [1, 2]}

    def test_failure_has_preview(self):
        """Test ParseError carries a truncated preview."""
        with pytest.raises(ParseError) as exc_info:
            json_parser()("no json here at all " * 20)
        assert "No valid JSON found" in str(exc_info.value)
        assert exc_info.value.preview.endswith("...")
        assert len(exc_info.value.preview) <= 103

    def test_object_after_unmatched_braces(self):
        """Test an object is still found after many unclosed braces."""
        raw = "{" * 500 + ' noise {"a": 1}'
        assert json_parser()(raw) == {"a": 1}

    def test_unmatched_braces_fail_fast(self):
        """Test a large run of unclosed braces is rejected in linear time."""
        start = time.perf_counter()
        with pytest.raises(ParseError):
            json_parser()("{" * 20000)
        assert time.perf_counter() - start < 2.0

    def test_deeply_nested_brackets_fail_cleanly(self):
        """Test nesting deeper than the decoder allows raises ParseError."""
        with pytest.raises(ParseError):
            json_parser()("[" * 5000)

    def test_many_small_code_blocks(self):
        """Test brace-heavy code listings stay fast."""
        raw = "function f() { if (x) { return y; } }\n" * 2000 + '{"done": true}'
        start = time.perf_counter()
        assert json_parser()(raw) == {"done": True}
        assert time.perf_counter() - start < 2.0


class TestJsonFieldParser:
    """Tests for json_field_parser."""

    def test_returns_field(self):
        """Test the named field is returned."""
        assert json_field_parser("answer")('{"answer": 42, "other": 1}') == 42

    def test_missing_field(self):
        """Test an absent key raises a ParseError naming it."""
        with pytest.raises(ParseError, match="answer"):
            json_field_parser("answer")('{"other": 1}')

    def test_null_field_is_returned(self):
        """Test an explicit JSON null is a value, not a missing field."""
        assert json_field_parser("answer")('{"answer": null}') is None

    def test_non_object_payload(self):
        """Test a non-object payload is rejected."""
        with pytest.raises(ParseError):
            json_field_parser("answer")("[1, 2]")

    def test_falsy_values_are_returned(self):
        """Test falsy values such as 0 are returned as-is."""
        assert json_field_parser("n")('{"n": 0}') == 0


class TestRegexParser:
    """Tests for regex_parser."""

    def test_extracts_group(self):
        """Test capture group 1 is extracted per key."""
        assert regex_parser({"name": r"Name: (.+)"})("Name: Alice\n") == {"name": "Alice"}

    def test_non_match_raises(self):
        """Test a non-match names the key and the pattern."""
        with pytest.raises(ParseError) as exc_info:
            regex_parser({"name": r"Name: (.+)"})("Nom: Alice")
        assert "name" in str(exc_info.value)
        assert "Name: (.+)" in str(exc_info.value)

    def test_compiled_patterns(self):
        """Test precompiled patterns keep their flags."""
        parser = regex_parser({"age": re.compile(r"age\s*=\s*(\d+)", re.IGNORECASE)})
        assert parser("AGE = 31") == {"age": "31"}

    def test_first_failure_aborts(self):
        """Test the first missing key aborts parsing."""
        parser = regex_parser({"a": r"A: (\w+)", "b": r"B: (\w+)"})
        with pytest.raises(ParseError, match="'b'"):
            parser("A: one")

    def test_values_are_trimmed(self):
        """Test captured values are stripped."""
        assert regex_parser({"v": r"V:(.*)"})("V:   padded   ") == {"v": "padded"}


class TestLabeledFieldsParser:
    """Tests for labeled_fields_parser."""

    def test_parses_labeled_lines(self):
        """Test label: value lines are collected, others skipped."""
        raw = "Name: Alice\nRole: Engineer\nnot a labeled line\nTeam: Core: Infra"
        assert labeled_fields_parser()(raw) == {
            "Name": "Alice",
            "Role": "Engineer",
            "Team": "Core: Infra",
        }

    def test_never_fails(self):
        """Test unlabeled text yields an empty mapping."""
        assert labeled_fields_parser()("nothing useful") == {}


class TestHelpers:
    """Tests for the extraction helpers."""

    def test_extract_fenced_block(self):
        """Test fenced block content is returned, or None."""
        assert extract_fenced_block("a\n```json\n{}\n```") == "{}"
        assert extract_fenced_block("no fence") is None

    def test_iter_balanced_spans_in_order(self):
        """Test spans are yielded outermost first, in start order."""
        spans = list(iter_balanced_spans('{"a": {"b": 1}} x {"c": 2}', "{", "}"))
        assert spans == ['{"a": {"b": 1}}', '{"b": 1}', '{"c": 2}']

    def test_iter_balanced_spans_skips_unmatched(self):
        """Test unclosed and stray closing brackets produce no spans."""
        assert list(iter_balanced_spans("} { {x} {", "{", "}")) == ["{x}"]

    def test_repair_trailing_commas(self):
        """Test trailing commas before closers are removed."""
        assert repair_trailing_commas('{"a": [1,],}') == '{"a": [1]}'
