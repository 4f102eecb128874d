"""Tests for ClassificationNode."""

from types import SimpleNamespace
from typing import List

import pytest

from llm_nodes import (
    ClassificationError,
    ClassificationNode,
    ConfigurationError,
    OpenAIConfig,
)
from llm_nodes.core.llm_client import LLMProvider
from llm_nodes.core.types import LLMResponse
from llm_nodes.nodes.classification import adapt_input


class MockProvider(LLMProvider):
    provider = "mock"

    def __init__(self, response: str):
        self.response = response
        self.prompts: List[str] = []
        self.configs = []

    async def invoke(self, prompt, config):
        self.prompts.append(prompt)
        self.configs.append(config)
        return LLMResponse(content=self.response)


def make_node(response, categories=("Safe", "Unsafe"), **kwargs):
    provider = MockProvider(response)
    node = ClassificationNode(
        categories=list(categories),
        llm_config=kwargs.pop("llm_config", OpenAIConfig(model="gpt-4o-mini")),
        provider=provider,
        **kwargs,
    )
    return node, provider


class TestConstruction:
    """Tests for ClassificationNode construction."""

    def test_duplicate_categories_rejected(self):
        """Test duplicate categories raise."""
        with pytest.raises(ConfigurationError, match="unique"):
            make_node("", categories=["A", "B", "A"])

    def test_case_sensitive_uniqueness(self):
        """Test categories differing only in case are distinct."""
        node, _ = make_node("", categories=["yes", "Yes"])
        assert node.categories == ["yes", "Yes"]

    def test_empty_categories_rejected(self):
        """Test an empty category list raises."""
        with pytest.raises(ConfigurationError):
            make_node("", categories=[])

    def test_default_temperature(self):
        """Test the low default temperature is applied."""
        node, _ = make_node("")
        assert node.llm_config.temperature == 0.2

    def test_caller_temperature_kept(self):
        """Test a caller-chosen temperature is kept."""
        node, _ = make_node("", llm_config=OpenAIConfig(model="m", temperature=0.7))
        assert node.llm_config.temperature == 0.7

    def test_descriptions_for_unknown_categories_rejected(self):
        """Test descriptions must name declared categories."""
        with pytest.raises(ConfigurationError):
            make_node("", category_descriptions={"Maybe": "unsure"})


class TestPrompt:
    """Tests for the classification prompt."""

    @pytest.mark.asyncio
    async def test_default_prompt_includes_instructions(self):
        """Test the default prompt lists categories and the JSON shape."""
        node, provider = make_node('{"category": "Safe", "confidence": 0.9}', include_explanation=True)

        await node.execute({"input": "How do I bake bread?"})

        prompt = provider.prompts[0]
        assert prompt.startswith("Content to classify:\nHow do I bake bread?")
        assert "- Safe\n- Unsafe" in prompt
        assert "exactly ONE" in prompt
        assert '"confidence"' in prompt
        assert '"explanation"' in prompt

    @pytest.mark.asyncio
    async def test_category_guidance(self):
        """Test category descriptions appear as guidance."""
        node, provider = make_node(
            '{"category": "Safe", "confidence": 0.9}',
            category_descriptions={"Unsafe": "Anything harmful"},
        )
        await node.execute("text")
        assert "- Unsafe: Anything harmful" in provider.prompts[0]

    @pytest.mark.asyncio
    async def test_custom_template_is_decorated(self):
        """Test a custom template still gets the output instructions."""
        node, provider = make_node(
            '{"category": "Safe", "confidence": 0.9}',
            prompt_template="Review this message: {{message}}",
        )

        await node.execute({"message": "hello"})

        prompt = provider.prompts[0]
        assert prompt.startswith("Review this message: hello\n\nCLASSIFICATION TASK:")
        assert node.node.prompt_template is not None

    @pytest.mark.asyncio
    async def test_config_sent_with_default_temperature(self):
        """Test the provider receives the defaulted config."""
        node, provider = make_node('{"category": "Safe", "confidence": 0.9}')
        await node.execute("x")
        assert provider.configs[0].temperature == 0.2


class TestParsing:
    """Tests for parsing classification responses."""

    @pytest.mark.asyncio
    async def test_canonical_case_substituted(self):
        """Test the declared category spelling is returned."""
        node, _ = make_node('{"category":"safe","confidence":0.9}')

        result = await node.execute({"input": "hi"})

        assert result.category == "Safe"
        assert result.confidence == 0.9

    @pytest.mark.asyncio
    async def test_explanation_included_when_enabled(self):
        """Test the explanation is kept when requested."""
        node, _ = make_node(
            '{"category": "Unsafe", "confidence": 0.8, "explanation": "threatening"}',
            include_explanation=True,
        )
        result = await node.execute("x")
        assert result.explanation == "threatening"

    @pytest.mark.asyncio
    async def test_explanation_dropped_when_disabled(self):
        """Test the explanation is dropped when not requested."""
        node, _ = make_node('{"category": "Unsafe", "confidence": 0.8, "explanation": "e"}')
        assert (await node.execute("x")).explanation is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("confidence", ["1.5", "-0.1", '"NaN"', '"high"'])
    async def test_invalid_confidence_rejected(self, confidence):
        """Test out-of-range confidences raise."""
        node, _ = make_node(f'{{"category": "Safe", "confidence": {confidence}}}')
        with pytest.raises(ClassificationError, match="confidence"):
            await node.execute("x")

    @pytest.mark.asyncio
    async def test_boundary_confidences_accepted(self):
        """Test confidences of exactly 0 and 1 are accepted."""
        for value in (0, 1):
            node, _ = make_node(f'{{"category": "Safe", "confidence": {value}}}')
            assert (await node.execute("x")).confidence == float(value)

    @pytest.mark.asyncio
    async def test_text_fallback(self):
        """Test a category is found in plain text responses."""
        node, _ = make_node(
            "I would say this is UNSAFE. Confidence: 0.75. Explanation: mentions weapons",
            include_explanation=True,
        )

        result = await node.execute("x")

        assert result.category == "Unsafe"
        assert result.confidence == 0.75
        assert result.explanation.startswith("mentions weapons")

    @pytest.mark.asyncio
    async def test_text_fallback_default_confidence(self):
        """Test the text fallback uses the default confidence."""
        node, _ = make_node("Definitely Safe.")
        result = await node.execute("x")
        assert (result.category, result.confidence) == ("Safe", 0.5)

    @pytest.mark.asyncio
    async def test_text_fallback_prefers_whole_words(self):
        """Test whole-word matches win over substrings."""
        node, _ = make_node("This message is unsafe")
        assert (await node.execute("x")).category == "Unsafe"

    @pytest.mark.asyncio
    async def test_undeclared_json_category_falls_back_to_text(self):
        """Test an undeclared JSON category triggers the text fallback."""
        node, _ = make_node('{"category": "Dangerous", "confidence": 0.9} - closest is unsafe')
        assert (await node.execute("x")).category == "Unsafe"

    @pytest.mark.asyncio
    async def test_text_fallback_confidence_still_validated(self):
        """Test confidences found by the text fallback are validated."""
        node, _ = make_node("Safe, confidence: 7")
        with pytest.raises(ClassificationError):
            await node.execute("x")

    @pytest.mark.asyncio
    async def test_unknown_category_names_allowed_set(self):
        """Test the error for an unknown category lists the allowed set."""
        node, _ = make_node('{"category": "Maybe", "confidence": 0.4}')
        with pytest.raises(ClassificationError) as exc_info:
            await node.execute("x")
        assert "Safe, Unsafe" in str(exc_info.value)
        assert exc_info.value.node_name == "classification"


class TestInputAdaptation:
    """Tests for turning node input into classifier text."""

    def test_field_present(self):
        """Test input already holding the field passes through unchanged."""
        data = {"input": "a", "other": 1}
        assert adapt_input(data, "input") is data

    def test_content_key(self):
        """Test a content key is used as the text."""
        assert adapt_input({"content": "c", "x": 1}, "input")["input"] == "c"

    def test_plain_string(self):
        """Test a plain string passes through."""
        assert adapt_input("just text", "input") == {"input": "just text"}

    def test_first_primitive_attribute(self):
        """Test the first primitive attribute is used."""
        obj = SimpleNamespace(meta={"k": 1}, title="Hello", body="World")
        assert adapt_input(obj, "input") == {"input": "Hello"}

    def test_object_with_content_attribute(self):
        """Test an object's content attribute is used."""
        assert adapt_input(SimpleNamespace(content="c"), "text") == {"text": "c"}

    def test_json_fallback(self):
        """Test other inputs are serialized to JSON."""
        assert adapt_input([1, 2], "input") == {"input": "[1, 2]"}

    @pytest.mark.asyncio
    async def test_custom_input_field(self):
        """Test a custom input field is read."""
        node, provider = make_node('{"category": "Safe", "confidence": 1}', input_field="message")
        await node.execute({"message": "hello there"})
        assert provider.prompts[0].startswith("Content to classify:\nhello there")
