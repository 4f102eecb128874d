"""
Extraction Node

Pulls named fields out of unstructured text.

Strategies:
    direct     One call for all fields. Required fields that come back
               missing or null produce warnings; an unparseable response
               falls back to a per-field regex scan of the raw text.
    iterative  One call per field. A failed field is recorded as a warning
               and never stops the remaining fields.

Partial results are always returned; warnings say what went wrong.
"""

import logging
import re
from typing import Any, Callable, Dict, List, Literal, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field

from ..core.config import BaseLLMConfig, parse_llm_config, with_default_temperature
from ..core.llm_client import LLMProvider
from ..core.node_base import ComposedNode, LLMNode
from ..core.template import PromptTemplate, render
from ..core.types import ConfigurationError, ParseError
from ..parsers import extract_json, preview_text

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.3
FALLBACK_CONFIDENCE = 0.3

ExtractionStrategy = Literal["direct", "iterative"]

# Placeholder values shown in the response envelope, by format hint
_FORMAT_EXAMPLES = {
    "number": "42",
    "date": '"2023-01-01"',
    "list": '["item1", "item2"]',
}


class ExtractionField(BaseModel):
    """Declarative description of one field to extract."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    description: str
    example: Optional[str] = None
    required: bool = True
    format: Optional[str] = None


class ExtractionResult(BaseModel):
    data: Dict[str, Any] = Field(default_factory=dict)
    confidences: Optional[Dict[str, float]] = None
    warnings: List[str] = Field(default_factory=list)


class FieldResult(BaseModel):
    """Parsed response of a single-field extraction call."""

    data: Any = None
    confidence: Optional[float] = None
    warning: Optional[str] = None


def _example_value(field: ExtractionField) -> str:
    if field.example:
        return f'"{field.example}"'
    return _FORMAT_EXAMPLES.get(field.format or "", '"extracted value"')


class ExtractionNode(ComposedNode):
    """
    Extract declared fields from text.

    Example:
        node = ExtractionNode(
            fields=[
                ExtractionField(name="email", description="Sender email", format="email"),
                ExtractionField(name="phone", description="Phone number", required=False),
            ],
            prompt_template="Email body:\\n{{body}}",
            llm_config=OpenAIConfig(model="gpt-4o-mini"),
        )
        result = await node.execute({"body": text})
        result.data["email"], result.warnings
    """

    def __init__(
        self,
        fields: Sequence[Union[ExtractionField, Mapping[str, Any]]],
        prompt_template: PromptTemplate,
        llm_config: Union[BaseLLMConfig, Mapping[str, Any]],
        include_confidence: bool = True,
        extraction_strategy: ExtractionStrategy = "direct",
        preprocessor: Optional[Callable[[Any], Any]] = None,
        provider: Optional[LLMProvider] = None,
        name: Optional[str] = None,
    ):
        """
        Initialize extraction node.

        Args:
            fields: Field descriptors (models or plain mappings)
            prompt_template: Base prompt; extraction instructions are appended
            llm_config: Provider configuration (temperature defaults to 0.3)
            include_confidence: Request per-field confidence scores
            extraction_strategy: "direct" (one call) or "iterative" (one call per field)
            preprocessor: Optional input transform
            provider: Provider override
            name: Node identifier for logging

        Raises:
            ConfigurationError: On duplicate field names or unknown strategy
        """
        self.fields = [
            f if isinstance(f, ExtractionField) else ExtractionField.model_validate(f)
            for f in fields
        ]
        names = [f.name for f in self.fields]
        if not names:
            raise ConfigurationError("Extraction requires at least one field")
        if len(set(names)) != len(names):
            raise ConfigurationError("Field names for extraction must be unique")
        if extraction_strategy not in ("direct", "iterative"):
            raise ConfigurationError(
                f"Unknown extraction strategy: {extraction_strategy!r}. Use 'direct' or 'iterative'"
            )

        self.include_confidence = include_confidence
        self.extraction_strategy = extraction_strategy
        self.base_template = prompt_template

        instructions = self.extraction_instructions()
        config = with_default_temperature(parse_llm_config(llm_config), DEFAULT_TEMPERATURE)
        self.node = LLMNode(
            prompt_template=lambda input: f"{render(prompt_template, input)}\n\n{instructions}",
            llm_config=config,
            parser=self.parse,
            preprocessor=preprocessor,
            provider=provider,
            name=name or "extraction",
        )

    # ========================================================================
    # Prompts
    # ========================================================================

    def fields_table(self) -> str:
        rows = []
        for field in self.fields:
            row = f"- {field.name}: {field.description} ({'Required' if field.required else 'Optional'})"
            if field.example:
                row += f' Example: "{field.example}"'
            if field.format:
                row += f" Format: {field.format}"
            rows.append(row)
        return "\n".join(rows)

    def extraction_instructions(self) -> str:
        data_lines = ",\n".join(f'    "{f.name}": {_example_value(f)}' for f in self.fields)
        envelope = ["{", '  "data": {', data_lines, "  },"]
        if self.include_confidence:
            confidence_lines = ",\n".join(f'    "{f.name}": 0.95' for f in self.fields)
            envelope += ['  "confidences": {', confidence_lines, "  },"]
        envelope += [
            '  "warnings": ["Only include warnings if there are issues with extraction"]',
            "}",
        ]

        steps = [
            "1. Extract ALL fields listed above",
            "2. For required fields, make your best effort to extract them",
            "3. For optional fields, include them only if you find them",
            "4. Return null for fields you cannot extract, do not omit them",
            "5. Return valid JSON that can be parsed directly",
        ]
        if self.include_confidence:
            steps.append("6. Include confidence scores (0-1) for each extracted field")

        return "\n".join(
            [
                "EXTRACTION TASK:",
                "Extract the following fields from the above content:",
                self.fields_table(),
                "",
                "Your response MUST be in JSON format with the following structure:",
                *envelope,
                "",
                "Make sure to:",
                *steps,
            ]
        )

    def field_instructions(self, field: ExtractionField) -> str:
        lines = [
            "Extract the following field from the above content:",
            "",
            f"Field: {field.name}",
            f"Description: {field.description}",
        ]
        if field.format:
            lines.append(f"Format: {field.format}")
        if field.example:
            lines.append(f'Example: "{field.example}"')
        lines.append("This field is required." if field.required else "This field is optional.")

        shape = ['  "data": "extracted value",']
        if self.include_confidence:
            shape.append('  "confidence": 0.95,')
        shape.append('  "warning": "Include a warning only if there is an issue"')

        lines += [
            "",
            "Your response MUST be in JSON format with the following structure:",
            "{",
            *shape,
            "}",
            "",
            "Make sure to:",
            f"1. Focus ONLY on extracting the {field.name} field",
            "2. Return null if you cannot find the field",
            "3. Return valid JSON that can be parsed directly",
        ]
        return "\n".join(lines)

    # ========================================================================
    # Parsing
    # ========================================================================

    def parse(self, raw: str) -> ExtractionResult:
        """Parse a direct-strategy response, falling back to a regex scan."""
        try:
            parsed = extract_json(raw)
        except ParseError:
            return self._scan_fields(raw)

        if isinstance(parsed, dict) and isinstance(parsed.get("data"), dict):
            data = parsed["data"]
            confidences = parsed.get("confidences")
            warnings = parsed.get("warnings") or []
        elif isinstance(parsed, dict):
            # Bare field object without the envelope
            data, confidences, warnings = parsed, None, []
        else:
            return self._scan_fields(raw)

        warnings = [str(w) for w in warnings] if isinstance(warnings, list) else [str(warnings)]
        for field in self.fields:
            if field.required and data.get(field.name) is None:
                warnings.append(f"Required field '{field.name}' is missing or null")

        return ExtractionResult(
            data=data,
            confidences=self._clean_confidences(confidences),
            warnings=warnings,
        )

    def _clean_confidences(self, confidences: Any) -> Optional[Dict[str, float]]:
        if not self.include_confidence or not isinstance(confidences, dict):
            return None
        cleaned = {}
        for key, value in confidences.items():
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                cleaned[key] = float(value)
        return cleaned or None

    def _scan_fields(self, raw: str) -> ExtractionResult:
        logger.warning(f"[{self.name}] JSON parse failed, falling back to regex extraction")
        data: Dict[str, Any] = {}
        warnings = ["Failed to parse JSON response, falling back to regex extraction"]
        for field in self.fields:
            pattern = re.compile(
                rf"{re.escape(field.name)}[\s:\"]*([\w\s.@\-+]+)[\"\s,}}]", re.IGNORECASE
            )
            match = pattern.search(raw)
            if match and match.group(1).strip():
                data[field.name] = match.group(1).strip()
            elif field.required:
                warnings.append(f"Could not extract required field '{field.name}'")
        return ExtractionResult(data=data, warnings=warnings)

    def parse_field_response(self, raw: str, field_name: str) -> FieldResult:
        """Parse a single-field response, with a low-confidence regex fallback."""
        try:
            parsed = extract_json(raw)
        except ParseError:
            parsed = None

        if isinstance(parsed, dict):
            warning = parsed.get("warning")
            return FieldResult(
                data=parsed.get("data"),
                confidence=self._number_or_none(parsed.get("confidence")),
                warning=str(warning) if warning else None,
            )

        name = re.escape(field_name)
        match = re.search(rf'"{name}"\s*:\s*"([^"]+)"', raw) or re.search(
            rf'"{name}"\s*:\s*(\w+)', raw
        )
        if match:
            return FieldResult(
                data=match.group(1),
                confidence=FALLBACK_CONFIDENCE,
                warning="Value extracted through fallback method, might be inaccurate",
            )
        raise ParseError(f"Could not extract {field_name} from response", preview=preview_text(raw))

    @staticmethod
    def _number_or_none(value: Any) -> Optional[float]:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        return None

    # ========================================================================
    # Execution
    # ========================================================================

    async def execute(self, input: Any) -> ExtractionResult:
        if self.extraction_strategy == "iterative":
            return await self.execute_iterative(input)
        return await self.node.execute(input)

    async def execute_iterative(self, input: Any) -> ExtractionResult:
        """One provider call per field; failures become warnings."""
        if self.node.preprocessor is not None:
            input = self.node.preprocessor(input)
        base_prompt = render(self.base_template, input)

        data: Dict[str, Any] = {}
        confidences: Dict[str, float] = {}
        warnings: List[str] = []

        for field in self.fields:
            prompt = f"{base_prompt}\n\n{self.field_instructions(field)}"
            try:
                response = await self.node.complete(prompt)
                result = self.parse_field_response(response.content, field.name)
            except ConfigurationError:
                raise
            except Exception as e:
                logger.warning(f"[{self.name}] Field '{field.name}' failed: {e}")
                warnings.append(f"Failed to extract {field.name}: {e}")
                if field.required:
                    warnings.append(f"WARNING: Required field '{field.name}' could not be extracted")
                continue

            if result.data is not None:
                data[field.name] = result.data
            elif field.required:
                warnings.append(f"WARNING: Required field '{field.name}' could not be extracted")
            if result.confidence is not None:
                confidences[field.name] = result.confidence
            if result.warning:
                warnings.append(str(result.warning))

        logger.info(
            f"[{self.name}] Extracted {len(data)}/{len(self.fields)} fields "
            f"({len(warnings)} warnings)"
        )
        return ExtractionResult(
            data=data,
            confidences=confidences if self.include_confidence and confidences else None,
            warnings=warnings,
        )
