"""
Classification Node

Classifies content into exactly one of a fixed set of categories, with a
confidence score and an optional explanation.

Parsing:
1. JSON response -> category, confidence, explanation
2. Fallback text scan when the JSON is missing or names an undeclared
   category: first declared category found in the text, a
   ``confidence: <number>`` token (default 0.5), an explanation phrase
3. Category normalized to its declared spelling; confidence must lie in [0, 1]
"""

import json
import logging
import math
import re
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Union

from pydantic import BaseModel

from ..core.config import BaseLLMConfig, parse_llm_config, with_default_temperature
from ..core.llm_client import LLMProvider
from ..core.node_base import ComposedNode, LLMNode
from ..core.template import PromptTemplate, render
from ..core.types import ClassificationError, ConfigurationError, ParseError
from ..parsers import extract_json, preview_text

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.2
DEFAULT_CONFIDENCE = 0.5

_CONFIDENCE_PATTERN = re.compile(r"confidence[:\s\"']+([0-9]*\.?[0-9]+)", re.IGNORECASE)
_EXPLANATION_PATTERN = re.compile(r"explanation[:\s\"']+([^\"\n]+)", re.IGNORECASE)

_PRIMITIVES = (str, int, float, bool)


class ClassificationResult(BaseModel):
    category: str
    confidence: float
    explanation: Optional[str] = None


def adapt_input(input: Any, field: str) -> Any:
    """
    Make sure ``input`` exposes ``field`` for the default prompt.

    Tries, in order: the field itself, an ``input`` or ``content`` entry,
    a plain string, the first primitive-valued entry, a JSON dump.
    """
    if isinstance(input, Mapping):
        if field in input:
            return input
        return {**input, field: _derive_value(input, dict(input))}
    members = _attributes(input)
    if field in members:
        return {field: members[field]}
    return {field: _derive_value(input, members)}


def _attributes(input: Any) -> Dict[str, Any]:
    if isinstance(input, BaseModel):
        return dict(input)
    try:
        return {k: v for k, v in vars(input).items() if not k.startswith("_")}
    except TypeError:
        return {}


def _derive_value(input: Any, members: Dict[str, Any]) -> Any:
    for key in ("input", "content"):
        if members.get(key) is not None:
            return members[key]
    if isinstance(input, str):
        return input
    for value in members.values():
        if isinstance(value, _PRIMITIVES):
            return value
    if isinstance(input, BaseModel):
        return input.model_dump_json()
    return json.dumps(input, default=str)


class ClassificationNode(ComposedNode):
    """
    Classify content into one of a declared set of categories.

    Example:
        node = ClassificationNode(
            categories=["Safe", "Unsafe"],
            llm_config=OpenAIConfig(model="gpt-4o-mini"),
            include_explanation=True,
        )
        result = await node.execute({"input": "How do I bake bread?"})
        # ClassificationResult(category="Safe", confidence=0.97, ...)
    """

    def __init__(
        self,
        categories: Sequence[str],
        llm_config: Union[BaseLLMConfig, Mapping[str, Any]],
        prompt_template: Optional[PromptTemplate] = None,
        include_explanation: bool = False,
        category_descriptions: Optional[Mapping[str, str]] = None,
        default_prompt: Optional[bool] = None,
        input_field: str = "input",
        preprocessor: Optional[Callable[[Any], Any]] = None,
        provider: Optional[LLMProvider] = None,
        name: Optional[str] = None,
    ):
        """
        Initialize classification node.

        Args:
            categories: Distinct category labels (case-sensitive)
            llm_config: Provider configuration (temperature defaults to 0.2)
            prompt_template: Custom base prompt (classification instructions
                are appended)
            include_explanation: Request a short explanation
            category_descriptions: Optional guidance per category
            default_prompt: Use the built-in "Content to classify" prompt
                (default: only when no prompt_template is given)
            input_field: Input key holding the content for the default prompt
            preprocessor: Optional input transform
            provider: Provider override
            name: Node identifier for logging

        Raises:
            ConfigurationError: On empty or duplicate categories, or
                descriptions for undeclared categories
        """
        categories = list(categories)
        if not categories:
            raise ConfigurationError("Classification requires at least one category")
        if len(set(categories)) != len(categories):
            raise ConfigurationError("Classification categories must be unique")
        descriptions = dict(category_descriptions or {})
        unknown = [c for c in descriptions if c not in categories]
        if unknown:
            raise ConfigurationError(f"Descriptions given for undeclared categories: {unknown}")

        self.categories = categories
        self.category_descriptions = descriptions
        self.include_explanation = include_explanation
        self.input_field = input_field

        use_default = prompt_template is None or bool(default_prompt)
        if use_default:
            base: PromptTemplate = f"Content to classify:\n{{{{{input_field}}}}}\n"
        else:
            base = prompt_template

        def prepare(input: Any) -> Any:
            if preprocessor is not None:
                input = preprocessor(input)
            return adapt_input(input, input_field) if use_default else input

        instructions = self.classification_instructions()
        config = with_default_temperature(parse_llm_config(llm_config), DEFAULT_TEMPERATURE)
        self.node = LLMNode(
            prompt_template=lambda input: f"{render(base, input)}\n\n{instructions}",
            llm_config=config,
            parser=self.parse,
            preprocessor=prepare,
            provider=provider,
            name=name or "classification",
        )

    # ========================================================================
    # Prompt
    # ========================================================================

    def classification_instructions(self) -> str:
        categories_list = "\n".join(f"- {c}" for c in self.categories)
        lines = [
            "CLASSIFICATION TASK:",
            "Analyze the above content and classify it into exactly ONE of the following categories:",
            categories_list,
        ]

        if self.category_descriptions:
            lines += ["", "Category guidance:"]
            lines += [
                f"- {c}: {self.category_descriptions[c]}"
                for c in self.categories
                if c in self.category_descriptions
            ]

        shape = [
            "{",
            '  "category": "the_selected_category",',
            '  "confidence": 0.95' + ("," if self.include_explanation else ""),
        ]
        if self.include_explanation:
            shape.append('  "explanation": "A brief explanation of why you selected this category"')
        shape.append("}")

        lines += [
            "",
            "Your response MUST be in JSON format with the following structure:",
            *shape,
            "",
            "Make sure to:",
            "1. Choose ONLY ONE category from the list provided",
            "2. Provide a confidence score between 0 and 1",
            "3. Return valid JSON that can be parsed directly",
        ]
        return "\n".join(lines)

    # ========================================================================
    # Parsing
    # ========================================================================

    def normalize_category(self, category: Any) -> Optional[str]:
        """Declared spelling of ``category`` (case-insensitive), or None."""
        if not isinstance(category, str):
            return None
        if category in self.categories:
            return category
        lowered = category.strip().lower()
        for declared in self.categories:
            if declared.lower() == lowered:
                return declared
        return None

    def _validate_confidence(self, value: Any) -> float:
        if isinstance(value, bool):
            value = None
        try:
            confidence = float(value)
        except (TypeError, ValueError):
            raise ClassificationError(
                self.name, f"Invalid confidence value: {value!r}. Must be between 0 and 1."
            )
        if math.isnan(confidence) or not 0.0 <= confidence <= 1.0:
            raise ClassificationError(
                self.name, f"Invalid confidence value: {value}. Must be between 0 and 1."
            )
        return confidence

    def _from_json(self, raw: str) -> Optional[ClassificationResult]:
        try:
            data = extract_json(raw)
        except ParseError:
            return None
        if not isinstance(data, dict):
            return None
        category = self.normalize_category(data.get("category"))
        if category is None:
            logger.warning(
                f"[{self.name}] Undeclared category {data.get('category')!r}, scanning text"
            )
            return None

        confidence = self._validate_confidence(data.get("confidence", DEFAULT_CONFIDENCE))
        explanation = data.get("explanation") if self.include_explanation else None
        return ClassificationResult(
            category=category,
            confidence=confidence,
            explanation=str(explanation) if explanation is not None else None,
        )

    def _find_category(self, text: str) -> Optional[str]:
        lowered = text.lower()
        # Whole-word matches win, so "Safe" is not found inside "unsafe"
        for category in self.categories:
            if re.search(rf"(?<!\w){re.escape(category.lower())}(?!\w)", lowered):
                return category
        for category in self.categories:
            if category.lower() in lowered:
                return category
        return None

    def _from_text(self, raw: str) -> ClassificationResult:
        category = self._find_category(raw)
        if category is None:
            raise ClassificationError(
                self.name,
                f"Could not extract a valid category from response: {preview_text(raw)}. "
                f"Must be one of: {', '.join(self.categories)}",
            )

        match = _CONFIDENCE_PATTERN.search(raw)
        confidence = self._validate_confidence(match.group(1) if match else DEFAULT_CONFIDENCE)

        explanation = None
        if self.include_explanation:
            match = _EXPLANATION_PATTERN.search(raw)
            if match:
                explanation = match.group(1).strip()

        return ClassificationResult(category=category, confidence=confidence, explanation=explanation)

    def parse(self, raw: str) -> ClassificationResult:
        result = self._from_json(raw)
        if result is not None:
            return result
        logger.warning(f"[{self.name}] JSON classification unavailable, falling back to text scan")
        return self._from_text(raw)

    # ========================================================================
    # Execution
    # ========================================================================

    async def execute(self, input: Any) -> ClassificationResult:
        return await self.node.execute(input)

    def __repr__(self) -> str:
        return f"ClassificationNode(categories={self.categories!r}, node={self.node!r})"
