"""
Node Base Class

``LLMNode`` is the generic execution pipeline every node kind is built on:

    input -> preprocessor -> render prompt -> provider.invoke -> usage record -> parser

Specialized nodes (classification, extraction, structured output, chain) hold
an ``LLMNode`` and decorate its prompt or parser; they never subclass it.
Retries are a specialized-node concern - ``execute`` makes exactly one
provider call and propagates parser errors unchanged.
"""

import logging
import time
from datetime import datetime
from typing import Any, Callable, Generic, List, Mapping, Optional, TypeVar, Union

from .config import BaseLLMConfig, parse_llm_config
from .executable import Executable
from .llm_client import LLMProvider, create_provider
from .template import PromptTemplate, render
from .types import LLMResponse, TokenUsageSummary, UsageRecord
from .usage import summarize_usage

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LLMNode(Executable, Generic[T]):
    """
    A prompt template, a provider configuration and a response parser.

    Example:
        node = LLMNode(
            prompt_template="Summarize: {{text}}",
            llm_config={"provider": "openai", "model": "gpt-4o-mini"},
            parser=text_parser(),
        )
        summary = await node.execute({"text": article})
    """

    def __init__(
        self,
        prompt_template: PromptTemplate,
        llm_config: Union[BaseLLMConfig, Mapping[str, Any]],
        parser: Callable[[str], T],
        preprocessor: Optional[Callable[[Any], Any]] = None,
        provider: Optional[LLMProvider] = None,
        name: Optional[str] = None,
    ):
        """
        Initialize node.

        Args:
            prompt_template: String with {{expr}} placeholders, or a function
                of the input returning the prompt
            llm_config: Provider configuration (model or plain mapping)
            parser: Converts the raw response text into the node's output
            preprocessor: Optional transform applied to the input first
            provider: Provider override (default: built from llm_config)
            name: Node identifier for logging
        """
        self.prompt_template = prompt_template
        self.llm_config = parse_llm_config(llm_config)
        self.parser = parser
        self.preprocessor = preprocessor
        self.provider = provider or create_provider(self.llm_config)
        self.name = name or type(self).__name__
        self._usage_records: List[UsageRecord] = []

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def render_prompt(self, input: Any) -> str:
        """Render the stored template against an (already preprocessed) input."""
        return render(self.prompt_template, input)

    async def execute(self, input: Any) -> T:
        """
        Run preprocessor, render the template, call the provider and parse.

        Raises:
            ParseError: Parser errors propagate unchanged
        """
        start = time.time()
        logger.info(f"[{self.name}] Starting")
        try:
            if self.preprocessor is not None:
                input = self.preprocessor(input)
            result = await self.execute_prompt(self.render_prompt(input))
        except Exception as e:
            logger.error(f"[{self.name}] Error: {e}")
            raise
        elapsed = (time.time() - start) * 1000
        logger.info(f"[{self.name}] Complete ({elapsed:.1f}ms)")
        return result

    async def execute_prompt(self, prompt: str) -> T:
        """Call the provider with an explicit prompt and parse the response."""
        response = await self.complete(prompt)
        return self.parser(response.content)

    async def complete(self, prompt: str) -> LLMResponse:
        """
        Call the provider with an explicit prompt, recording usage.

        The stored template is not involved; specialized nodes use this for
        one-off prompts (retries, per-field extraction, reasoning steps).
        """
        response = await self.provider.invoke(prompt, self.llm_config)
        if response.usage is not None:
            self._usage_records.append(
                UsageRecord(
                    timestamp=datetime.now(),
                    provider=self.llm_config.provider,
                    model=self.llm_config.model,
                    token_usage=response.usage,
                )
            )
        logger.debug(f"[{self.name}] Response: {len(response.content)} chars")
        return response

    # ------------------------------------------------------------------
    # Usage
    # ------------------------------------------------------------------

    def get_usage_records(self) -> List[UsageRecord]:
        return list(self._usage_records)

    def get_total_token_usage(self) -> TokenUsageSummary:
        return summarize_usage(self._usage_records)

    def clear_usage_records(self) -> None:
        self._usage_records.clear()

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name={self.name!r}, "
            f"provider={self.llm_config.provider!r}, model={self.llm_config.model!r})"
        )


class ComposedNode(Executable):
    """
    Base for node kinds built around an inner ``LLMNode``.

    Usage accessors delegate to the inner node, so every provider call a
    specialized node makes (retries, per-field calls, reasoning steps) is
    accounted for in one place.
    """

    node: LLMNode

    @property
    def name(self) -> str:
        return self.node.name

    @property
    def llm_config(self) -> BaseLLMConfig:
        return self.node.llm_config

    def get_usage_records(self) -> List[UsageRecord]:
        return self.node.get_usage_records()

    def get_total_token_usage(self) -> TokenUsageSummary:
        return self.node.get_total_token_usage()

    def clear_usage_records(self) -> None:
        self.node.clear_usage_records()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(node={self.node!r})"
