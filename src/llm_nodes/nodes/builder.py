"""
Node Builder

Keyword-only shortcuts that build a typed provider configuration and the
node in one call.

Usage:
    node = NodeBuilder.openai_text(
        prompt_template="Translate to French: {{text}}",
        model="gpt-4o-mini",
        temperature=0.2,
    )
"""

from typing import Any, Callable, Optional

from ..core.config import (
    AnthropicConfig,
    AnthropicWebSearch,
    OpenAIConfig,
    OpenAIWebSearch,
    ReasoningOptions,
    ThinkingOptions,
)
from ..core.node_base import LLMNode
from ..core.template import PromptTemplate
from .text import TextNode


def _openai_config(**options: Any) -> OpenAIConfig:
    return OpenAIConfig(**{k: v for k, v in options.items() if v is not None})


def _anthropic_config(**options: Any) -> AnthropicConfig:
    return AnthropicConfig(**{k: v for k, v in options.items() if v is not None})


class NodeBuilder:
    """Factory methods for OpenAI and Anthropic nodes."""

    @staticmethod
    def openai(
        *,
        prompt_template: PromptTemplate,
        parser: Callable[[str], Any],
        model: str,
        api_key: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        top_p: Optional[float] = None,
        frequency_penalty: Optional[float] = None,
        presence_penalty: Optional[float] = None,
        reasoning: Optional[ReasoningOptions] = None,
        web_search: Optional[OpenAIWebSearch] = None,
        system_prompt: Optional[str] = None,
    ) -> LLMNode:
        config = _openai_config(
            model=model,
            api_key=api_key,
            temperature=temperature,
            max_tokens=max_tokens,
            top_p=top_p,
            frequency_penalty=frequency_penalty,
            presence_penalty=presence_penalty,
            reasoning=reasoning,
            web_search=web_search,
            system_prompt=system_prompt,
        )
        return LLMNode(prompt_template=prompt_template, llm_config=config, parser=parser)

    @staticmethod
    def anthropic(
        *,
        prompt_template: PromptTemplate,
        parser: Callable[[str], Any],
        model: str,
        max_tokens: int,
        api_key: Optional[str] = None,
        temperature: Optional[float] = None,
        top_k: Optional[int] = None,
        top_p: Optional[float] = None,
        thinking: Optional[ThinkingOptions] = None,
        web_search: Optional[AnthropicWebSearch] = None,
        stream: bool = False,
        system_prompt: Optional[str] = None,
    ) -> LLMNode:
        config = _anthropic_config(
            model=model,
            max_tokens=max_tokens,
            api_key=api_key,
            temperature=temperature,
            top_k=top_k,
            top_p=top_p,
            thinking=thinking,
            web_search=web_search,
            stream=stream,
            system_prompt=system_prompt,
        )
        return LLMNode(prompt_template=prompt_template, llm_config=config, parser=parser)

    @staticmethod
    def openai_text(
        *,
        prompt_template: PromptTemplate,
        model: str,
        api_key: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        top_p: Optional[float] = None,
        frequency_penalty: Optional[float] = None,
        presence_penalty: Optional[float] = None,
        reasoning: Optional[ReasoningOptions] = None,
        web_search: Optional[OpenAIWebSearch] = None,
        system_prompt: Optional[str] = None,
    ) -> TextNode:
        config = _openai_config(
            model=model,
            api_key=api_key,
            temperature=temperature,
            max_tokens=max_tokens,
            top_p=top_p,
            frequency_penalty=frequency_penalty,
            presence_penalty=presence_penalty,
            reasoning=reasoning,
            web_search=web_search,
            system_prompt=system_prompt,
        )
        return TextNode(prompt_template=prompt_template, llm_config=config)

    @staticmethod
    def anthropic_text(
        *,
        prompt_template: PromptTemplate,
        model: str,
        max_tokens: int,
        api_key: Optional[str] = None,
        temperature: Optional[float] = None,
        top_k: Optional[int] = None,
        top_p: Optional[float] = None,
        thinking: Optional[ThinkingOptions] = None,
        web_search: Optional[AnthropicWebSearch] = None,
        stream: bool = False,
        system_prompt: Optional[str] = None,
    ) -> TextNode:
        config = _anthropic_config(
            model=model,
            max_tokens=max_tokens,
            api_key=api_key,
            temperature=temperature,
            top_k=top_k,
            top_p=top_p,
            thinking=thinking,
            web_search=web_search,
            stream=stream,
            system_prompt=system_prompt,
        )
        return TextNode(prompt_template=prompt_template, llm_config=config)
