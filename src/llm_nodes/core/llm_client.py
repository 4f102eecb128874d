"""LLM provider abstraction - unified ``invoke(prompt, config)`` interface for all providers."""

import asyncio
import logging
import math
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Type

from .config import (
    AnthropicConfig,
    BaseLLMConfig,
    GoogleGenAIConfig,
    OllamaConfig,
    OpenAIConfig,
    ollama_base_url,
    resolve_api_key,
)
from .types import ConfigurationError, LLMResponse, TokenUsage
from .usage import extract_token_usage, get_field

logger = logging.getLogger(__name__)


class LLMProvider(ABC):
    """Base class for LLM providers.

    Authentication, HTTP semantics and vendor error codes stay behind
    ``invoke``; transport errors propagate unchanged.
    """

    provider: str = ""
    config_type: Type[BaseLLMConfig] = BaseLLMConfig

    @abstractmethod
    async def invoke(self, prompt: str, config: BaseLLMConfig) -> LLMResponse:
        """Send one prompt and return the materialized response."""
        pass

    def _check_config(self, config: BaseLLMConfig) -> Any:
        if not isinstance(config, self.config_type):
            raise ConfigurationError(
                f"{type(self).__name__} cannot use a "
                f"'{getattr(config, 'provider', type(config).__name__)}' configuration"
            )
        return config


class OpenAIProvider(LLMProvider):
    """OpenAI implementation (chat completions and responses APIs)."""

    provider = "openai"
    config_type = OpenAIConfig

    # Model-name prefixes served through the responses API
    RESPONSES_API_MODELS = ("gpt-5", "gpt-4o", "o1", "o3", "o4")

    def __init__(
        self,
        api_key: Optional[str] = None,
        organization: Optional[str] = None,
        client: Any = None,
    ):
        self.api_key = resolve_api_key(self.provider, api_key)
        self.organization = organization
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            try:
                from openai import OpenAI
            except ImportError:
                raise ImportError("Install with: pip install openai")

            self._client = OpenAI(api_key=self.api_key, organization=self.organization)
        return self._client

    @classmethod
    def uses_responses_api(cls, model: str) -> bool:
        name = model.lower()
        return any(name.startswith(prefix) for prefix in cls.RESPONSES_API_MODELS)

    async def invoke(self, prompt: str, config: BaseLLMConfig) -> LLMResponse:
        config = self._check_config(config)
        if self.uses_responses_api(config.model):
            try:
                return await asyncio.to_thread(self._create_response, prompt, config)
            except Exception as e:
                if getattr(e, "status_code", None) != 404:
                    raise
                logger.warning(
                    f"[openai] Responses API unavailable for {config.model}, "
                    f"falling back to chat completions"
                )
        return await asyncio.to_thread(self._create_chat_completion, prompt, config)

    def _create_response(self, prompt: str, config: OpenAIConfig) -> LLMResponse:
        params: Dict[str, Any] = {"model": config.model, "input": prompt}
        if config.system_prompt:
            params["instructions"] = config.system_prompt
        if config.max_tokens is not None:
            params["max_output_tokens"] = config.max_tokens
        if config.temperature is not None:
            params["temperature"] = config.temperature
        if config.top_p is not None:
            params["top_p"] = config.top_p
        if config.reasoning is not None:
            params["reasoning"] = config.reasoning.model_dump(exclude_none=True)
        if config.web_search is not None and config.web_search.enabled:
            params["tools"] = [{"type": "web_search"}]

        response = self.client.responses.create(**params)
        return LLMResponse(
            content=get_field(response, "output_text") or "",
            usage=extract_token_usage(response),
            raw=response,
        )

    def _create_chat_completion(self, prompt: str, config: OpenAIConfig) -> LLMResponse:
        messages: List[Dict[str, str]] = []
        if config.system_prompt:
            messages.append({"role": "system", "content": config.system_prompt})
        messages.append({"role": "user", "content": prompt})

        params: Dict[str, Any] = {"model": config.model, "messages": messages}
        optional = {
            "max_tokens": config.max_tokens,
            "temperature": config.temperature,
            "top_p": config.top_p,
            "frequency_penalty": config.frequency_penalty,
            "presence_penalty": config.presence_penalty,
        }
        params.update({k: v for k, v in optional.items() if v is not None})

        response = self.client.chat.completions.create(**params)
        choices = get_field(response, "choices") or []
        content = get_field(get_field(choices[0], "message"), "content") if choices else None
        return LLMResponse(
            content=content or "",
            usage=extract_token_usage(response),
            raw=response,
        )


class AnthropicProvider(LLMProvider):
    """Claude Messages API implementation, with optional streaming."""

    provider = "anthropic"
    config_type = AnthropicConfig

    WEB_SEARCH_TOOL = "web_search_20250305"

    def __init__(self, api_key: Optional[str] = None, client: Any = None):
        self.api_key = resolve_api_key(self.provider, api_key)
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            try:
                from anthropic import Anthropic
            except ImportError:
                raise ImportError("Install with: pip install anthropic")

            self._client = Anthropic(api_key=self.api_key)
        return self._client

    async def invoke(self, prompt: str, config: BaseLLMConfig) -> LLMResponse:
        config = self._check_config(config)
        if not config.max_tokens:
            raise ConfigurationError("max_tokens is required for Anthropic models")

        params = self._build_params(prompt, config)
        if config.stream:
            response = await asyncio.to_thread(self._create_streamed, params)
        else:
            response = await asyncio.to_thread(self._create, params)

        if config.thinking is not None and response.usage is not None:
            # Thinking tokens are billed inside output_tokens; estimate the share
            content_estimate = math.ceil(len(response.content) / 4)
            response.usage.research_tokens = max(
                0, response.usage.output_tokens - content_estimate
            )
        return response

    def _build_params(self, prompt: str, config: AnthropicConfig) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "model": config.model,
            "max_tokens": config.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if config.temperature is not None:
            params["temperature"] = config.temperature
        if config.top_k is not None:
            params["top_k"] = config.top_k
        if config.top_p is not None:
            params["top_p"] = config.top_p
        if config.system_prompt:
            params["system"] = config.system_prompt
        if config.thinking is not None:
            params["thinking"] = config.thinking.model_dump()
        if config.web_search is not None and config.web_search.enabled:
            tool: Dict[str, Any] = {"type": self.WEB_SEARCH_TOOL, "name": "web_search"}
            if config.web_search.max_uses is not None:
                tool["max_uses"] = config.web_search.max_uses
            if config.web_search.allowed_domains:
                tool["allowed_domains"] = config.web_search.allowed_domains
            if config.web_search.user_location:
                tool["user_location"] = config.web_search.user_location
            params["tools"] = [tool]
        return params

    def _create(self, params: Dict[str, Any]) -> LLMResponse:
        message = self.client.messages.create(**params)
        content = ""
        thinking = ""
        for block in get_field(message, "content") or []:
            block_type = get_field(block, "type")
            if block_type == "text":
                content += get_field(block, "text") or ""
            elif block_type == "thinking":
                thinking += get_field(block, "thinking") or ""
        return LLMResponse(
            content=content,
            thinking=thinking or None,
            usage=extract_token_usage(message),
            raw=message,
        )

    def _create_streamed(self, params: Dict[str, Any]) -> LLMResponse:
        content = ""
        thinking = ""
        usage: Optional[TokenUsage] = None
        events = []
        for event in self.client.messages.create(**params, stream=True):
            events.append(event)
            event_type = get_field(event, "type")
            if event_type == "message_start":
                usage = extract_token_usage(get_field(event, "message"))
            elif event_type == "message_delta":
                # message_delta usage counts are cumulative
                output_tokens = get_field(get_field(event, "usage"), "output_tokens")
                if output_tokens is not None:
                    usage = usage or TokenUsage()
                    usage.output_tokens = output_tokens
            elif event_type == "content_block_start":
                block = get_field(event, "content_block")
                if get_field(block, "type") == "text":
                    content += get_field(block, "text") or ""
                elif get_field(block, "type") == "thinking":
                    thinking += get_field(block, "thinking") or ""
            elif event_type == "content_block_delta":
                delta = get_field(event, "delta")
                if get_field(delta, "type") == "text_delta":
                    content += get_field(delta, "text") or ""
                elif get_field(delta, "type") == "thinking_delta":
                    thinking += get_field(delta, "thinking") or ""
        return LLMResponse(content=content, thinking=thinking or None, usage=usage, raw=events)


class OllamaProvider(LLMProvider):
    """Local Ollama implementation (for running locally)."""

    provider = "ollama"
    config_type = OllamaConfig

    def __init__(self, base_url: Optional[str] = None, client: Any = None):
        self.base_url = ollama_base_url(base_url)
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            try:
                from ollama import Client
            except ImportError:
                raise ImportError("Install with: pip install ollama")

            self._client = Client(host=self.base_url)
        return self._client

    async def invoke(self, prompt: str, config: BaseLLMConfig) -> LLMResponse:
        config = self._check_config(config)
        return await asyncio.to_thread(self._generate, prompt, config)

    def _generate(self, prompt: str, config: OllamaConfig) -> LLMResponse:
        # Ollama uses 'options' dict for sampling parameters
        options = {
            "temperature": config.temperature,
            "num_predict": config.max_tokens,
            "top_k": config.top_k,
            "top_p": config.top_p,
            "num_ctx": config.num_ctx,
        }
        params: Dict[str, Any] = {
            "model": config.model,
            "prompt": prompt,
            "options": {k: v for k, v in options.items() if v is not None} or None,
            "stream": config.stream,
        }
        if config.system_prompt:
            params["system"] = config.system_prompt
        if config.format:
            params["format"] = config.format
        if config.keep_alive:
            params["keep_alive"] = config.keep_alive
        if config.think is not None:
            params["think"] = config.think

        response = self.client.generate(**params)
        if not config.stream:
            return LLMResponse(
                content=get_field(response, "response") or "",
                thinking=get_field(response, "thinking") or None,
                usage=extract_token_usage(response),
                raw=response,
            )

        content = ""
        thinking = ""
        last_chunk = None
        for chunk in response:
            content += get_field(chunk, "response") or ""
            thinking += get_field(chunk, "thinking") or ""
            last_chunk = chunk
        # The final chunk carries the eval counts
        return LLMResponse(
            content=content,
            thinking=thinking or None,
            usage=extract_token_usage(last_chunk) if last_chunk is not None else None,
            raw=last_chunk,
        )


class GoogleGenAIProvider(LLMProvider):
    """Gemini implementation through the google-genai SDK."""

    provider = "genai"
    config_type = GoogleGenAIConfig

    def __init__(self, api_key: Optional[str] = None, client: Any = None):
        self.api_key = resolve_api_key(self.provider, api_key)
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            try:
                from google import genai
            except ImportError:
                raise ImportError("Install with: pip install google-genai")

            # With no explicit key the SDK falls back to GOOGLE_API_KEY
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def invoke(self, prompt: str, config: BaseLLMConfig) -> LLMResponse:
        config = self._check_config(config)
        return await asyncio.to_thread(self._generate, prompt, config)

    def _generate(self, prompt: str, config: GoogleGenAIConfig) -> LLMResponse:
        options = {
            "system_instruction": config.system_prompt,
            "temperature": config.temperature,
            "max_output_tokens": config.max_tokens,
            "top_k": config.top_k,
            "top_p": config.top_p,
        }
        generation: Dict[str, Any] = {k: v for k, v in options.items() if v is not None}
        thinking = {
            "thinking_budget": config.thinking_budget,
            "include_thoughts": config.include_thoughts,
        }
        thinking = {k: v for k, v in thinking.items() if v is not None}
        if thinking:
            generation["thinking_config"] = thinking

        response = self.client.models.generate_content(
            model=config.model,
            contents=prompt,
            config=generation or None,
        )

        content = ""
        thoughts = ""
        candidates = get_field(response, "candidates") or []
        parts = get_field(get_field(candidates[0], "content"), "parts") if candidates else None
        for part in parts or []:
            text = get_field(part, "text") or ""
            if get_field(part, "thought"):
                thoughts += text
            else:
                content += text
        if not parts:
            content = get_field(response, "text") or ""

        return LLMResponse(
            content=content,
            thinking=thoughts or None,
            usage=extract_token_usage(response),
            raw=response,
        )


class LangChainProvider(LLMProvider):
    """
    Adapter for LangChain ChatModel implementations.

    Sampling options are the wrapped model's own concern; only the system
    prompt is taken from the node configuration.
    """

    provider = "langchain"

    def __init__(self, llm: Any):
        """
        Initialize adapter with LangChain LLM.

        Args:
            llm: LangChain ChatModel instance
        """
        self.llm = llm

    async def invoke(self, prompt: str, config: BaseLLMConfig) -> LLMResponse:
        from langchain_core.messages import HumanMessage, SystemMessage

        messages: List[Any] = []
        if config.system_prompt:
            messages.append(SystemMessage(content=config.system_prompt))
        messages.append(HumanMessage(content=prompt))

        response = await self.llm.ainvoke(messages)
        content = response.content if hasattr(response, "content") else str(response)
        if isinstance(content, list):
            # Content blocks (e.g. Anthropic through LangChain)
            content = "".join(
                part if isinstance(part, str) else get_field(part, "text") or ""
                for part in content
            )
        return LLMResponse(content=content, usage=extract_token_usage(response), raw=response)


# ============================================================
# Factory Function
# ============================================================


def create_provider(config: BaseLLMConfig) -> LLMProvider:
    """Create the provider matching a configuration's tag.

    Usage:
        provider = create_provider(OpenAIConfig(model="gpt-4o-mini"))
        response = await provider.invoke("Hello", config)
    """
    if isinstance(config, OpenAIConfig):
        return OpenAIProvider(api_key=config.api_key, organization=config.organization)
    if isinstance(config, AnthropicConfig):
        return AnthropicProvider(api_key=config.api_key)
    if isinstance(config, OllamaConfig):
        return OllamaProvider(base_url=config.base_url)
    if isinstance(config, GoogleGenAIConfig):
        return GoogleGenAIProvider(api_key=config.api_key)
    raise ConfigurationError(
        f"Unsupported LLM provider: {getattr(config, 'provider', type(config).__name__)}"
    )
