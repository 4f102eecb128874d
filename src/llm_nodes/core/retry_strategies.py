"""
Retry Strategies - Core Module

Retry prompts for schema-validated output. A strategy turns the retry
context (original prompt, expected schema, validation errors, attempt number)
into a one-off prompt; it never touches a node's stored template.

Attempt 1: original prompt + expected shape + errors
Attempt 2: same, plus "return ONLY valid JSON, no explanation"
Attempt 3+: same, plus "no markdown, no code fences, nothing before/after"
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Type

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

ROOT_PATH = "(root)"


# ============================================================================
# Error and schema formatting
# ============================================================================


def format_validation_errors(error: ValidationError) -> List[Dict[str, str]]:
    """
    Flatten Pydantic validation errors into path/message pairs.

    Args:
        error: Pydantic ValidationError

    Returns:
        List of {"path": "items.0.name", "message": "missing - Field required"}
    """
    errors = []
    for err in error.errors():
        path = ".".join(str(loc) for loc in err.get("loc", ())) or ROOT_PATH
        error_type = err.get("type", "unknown")
        msg = err.get("msg", "")
        errors.append({"path": path, "message": f"{error_type} - {msg}"})
    return errors


def _type_label(prop: Dict[str, Any], defs: Dict[str, Any]) -> str:
    if "$ref" in prop:
        ref_name = prop["$ref"].rsplit("/", 1)[-1]
        target = defs.get(ref_name, {})
        if "enum" in target:
            return "one of " + ", ".join(json.dumps(v) for v in target["enum"])
        return f"object ({ref_name})"
    if "enum" in prop:
        return "one of " + ", ".join(json.dumps(v) for v in prop["enum"])
    if "anyOf" in prop:
        labels = [_type_label(option, defs) for option in prop["anyOf"]]
        return " or ".join(label for label in labels if label != "null") or "null"
    prop_type = prop.get("type", "any")
    if prop_type == "array":
        return f"array of {_type_label(prop.get('items', {}), defs)}"
    return prop_type


def describe_schema(schema: Type[BaseModel]) -> str:
    """
    Human-readable rendering of a model's expected shape.

    Example output:
        {
          "name": string (required) - Full name
          "age": integer or null (optional)
        }
    """
    json_schema = schema.model_json_schema()
    defs = json_schema.get("$defs", {})
    required = set(json_schema.get("required", []))

    lines = ["{"]
    for name, prop in json_schema.get("properties", {}).items():
        status = "required" if name in required else "optional"
        line = f'  "{name}": {_type_label(prop, defs)} ({status})'
        if prop.get("description"):
            line += f" - {prop['description']}"
        lines.append(line)
    lines.append("}")
    return "\n".join(lines)


# ============================================================================
# Strategies
# ============================================================================


class IRetryStrategy(ABC):
    """Builds the prompt for one retry attempt."""

    @abstractmethod
    def build_prompt(
        self,
        original_prompt: str,
        schema: Type[BaseModel],
        errors: List[Dict[str, str]],
        attempt_number: int,
    ) -> str:
        """
        Args:
            original_prompt: Prompt used on attempt 0
            schema: Expected output model
            errors: Validation errors of the previous attempt
            attempt_number: 1-based retry number

        Returns:
            Prompt to send for this attempt
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        pass


class SchemaFeedbackRetry(IRetryStrategy):
    """
    Retry with the expected shape and the previous validation errors,
    adding stricter output instructions on every further attempt.
    """

    def build_prompt(
        self,
        original_prompt: str,
        schema: Type[BaseModel],
        errors: List[Dict[str, str]],
        attempt_number: int,
    ) -> str:
        error_lines = "\n".join(f"- {e['path']}: {e['message']}" for e in errors)
        prompt = (
            f"{original_prompt}\n\n"
            f"Your previous response did not match the required format.\n\n"
            f"Expected JSON shape:\n{describe_schema(schema)}\n\n"
            f"Validation errors:\n{error_lines or '- (none reported)'}\n\n"
            f"Fix these errors and respond with a JSON object matching the shape above."
        )
        if attempt_number >= 2:
            prompt += "\n\nIMPORTANT: Return ONLY valid JSON, no explanation."
        if attempt_number >= 3:
            prompt += (
                "\n\nCRITICAL: Output must be ONLY a raw JSON object. "
                "No code blocks (```json), no extra text before/after."
            )

        logger.info(f"[RetryStrategy] Retry {attempt_number}: {len(errors)} validation errors")
        return prompt

    @property
    def name(self) -> str:
        return "SchemaFeedback"


def build_retry_prompt(
    original_prompt: str,
    schema: Type[BaseModel],
    errors: List[Dict[str, str]],
    attempt_number: int,
) -> str:
    """Retry prompt built by the default SchemaFeedbackRetry strategy."""
    return SchemaFeedbackRetry().build_prompt(original_prompt, schema, errors, attempt_number)
