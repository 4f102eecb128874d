"""
Structured Output Node

Parses the response as JSON and validates it against a Pydantic model,
retrying with schema feedback on validation failure.

Attempt 0:  rendered prompt
Attempt k:  retry prompt (original prompt + expected shape + last errors),
            stricter instructions each time
Exhausted:  StructuredOutputError with the last validation errors

Configuration errors are never retried.
"""

import logging
from typing import Any, Callable, Dict, Generic, List, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from ..core.config import BaseLLMConfig
from ..core.llm_client import LLMProvider
from ..core.node_base import ComposedNode, LLMNode
from ..core.retry_strategies import (
    ROOT_PATH,
    IRetryStrategy,
    SchemaFeedbackRetry,
    format_validation_errors,
)
from ..core.template import PromptTemplate
from ..core.types import ConfigurationError, ParseError, StructuredOutputError
from ..parsers import extract_json

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class SchemaError(Exception):
    """Response could not be turned into a valid model instance."""

    def __init__(self, errors: List[Dict[str, str]]):
        self.errors = errors
        super().__init__("; ".join(f"{e['path']}: {e['message']}" for e in errors))


class StructuredOutputNode(ComposedNode, Generic[M]):
    """
    Node whose output is a validated Pydantic model instance.

    Example:
        class Person(BaseModel):
            name: str
            age: int

        node = StructuredOutputNode(
            schema=Person,
            prompt_template="Extract the person from: {{text}}",
            llm_config=OpenAIConfig(model="gpt-4o-mini"),
        )
        person = await node.execute({"text": "Alice is 30"})
    """

    def __init__(
        self,
        schema: Type[M],
        prompt_template: PromptTemplate,
        llm_config: Union[BaseLLMConfig, Mapping[str, Any]],
        max_retries: int = 2,
        retry_strategy: Optional[IRetryStrategy] = None,
        preprocessor: Optional[Callable[[Any], Any]] = None,
        provider: Optional[LLMProvider] = None,
        name: Optional[str] = None,
    ):
        """
        Initialize structured output node.

        Args:
            schema: Pydantic model class the response must validate against
            prompt_template: Template for the first attempt
            llm_config: Provider configuration
            max_retries: Retries after the first attempt (default: 2)
            retry_strategy: Builds retry prompts (default: SchemaFeedbackRetry)
            preprocessor: Optional input transform
            provider: Provider override
            name: Node identifier for logging
        """
        if max_retries < 0:
            raise ConfigurationError("max_retries must be >= 0")
        self.schema = schema
        self.max_retries = max_retries
        self.retry_strategy = retry_strategy or SchemaFeedbackRetry()
        self.node = LLMNode(
            prompt_template=prompt_template,
            llm_config=llm_config,
            parser=self.parse,
            preprocessor=preprocessor,
            provider=provider,
            name=name or "structured_output",
        )

    def parse(self, raw: str) -> M:
        """Parse and validate one response; failures become SchemaError."""
        try:
            data = extract_json(raw)
        except ParseError as e:
            raise SchemaError([{"path": ROOT_PATH, "message": str(e)}]) from e
        try:
            return self.schema.model_validate(data)
        except ValidationError as e:
            raise SchemaError(format_validation_errors(e)) from e

    async def execute(self, input: Any) -> M:
        if self.node.preprocessor is not None:
            input = self.node.preprocessor(input)
        original_prompt = self.node.render_prompt(input)

        prompt = original_prompt
        errors: List[Dict[str, str]] = []
        last_error: Optional[Exception] = None
        total_attempts = self.max_retries + 1

        for attempt in range(total_attempts):
            logger.info(f"[{self.name}] Attempt {attempt + 1}/{total_attempts}")
            try:
                result = await self.node.execute_prompt(prompt)
                if attempt > 0:
                    logger.info(f"[{self.name}] Validated on retry {attempt}")
                return result
            except SchemaError as e:
                errors = e.errors
                last_error = e
                logger.warning(f"[{self.name}] Attempt {attempt + 1} failed validation: {e}")
                # Retry prompts are one-off; the stored template is never replaced
                prompt = self.retry_strategy.build_prompt(
                    original_prompt, self.schema, errors, attempt + 1
                )
            except ConfigurationError:
                raise
            except Exception as e:
                last_error = e
                logger.warning(f"[{self.name}] Attempt {attempt + 1} failed: {e}")
                prompt = original_prompt

        if errors:
            raise StructuredOutputError(self.name, attempts=total_attempts, errors=errors) from last_error
        raise StructuredOutputError(
            self.name,
            attempts=total_attempts,
            reason=f"Failed after {total_attempts} attempts: {last_error}",
        ) from last_error
