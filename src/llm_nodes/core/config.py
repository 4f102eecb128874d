"""
Provider Configuration

Tagged-union LLM configuration keyed by the ``provider`` field. Each
variant fixes its own field set (extra fields are forbidden), so a field that
belongs to another provider is rejected when the configuration is built
instead of being silently ignored by the provider.

Environment conventions:
    <PROVIDER>_API_KEY   API key for a provider (e.g. OPENAI_API_KEY, GENAI_API_KEY)
    OLLAMA_BASE_URL      Default host for the Ollama provider
"""

import os
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from .types import ConfigurationError

DEFAULT_OLLAMA_BASE_URL = "http://localhost:11434"


# ============================================================================
# Provider-specific option groups
# ============================================================================


class ReasoningOptions(BaseModel):
    """OpenAI reasoning settings for reasoning-capable models."""

    model_config = ConfigDict(extra="forbid")

    effort: Literal["low", "medium", "high"] = "medium"
    summary: Optional[Literal["auto", "concise", "detailed"]] = None


class ThinkingOptions(BaseModel):
    """Anthropic extended thinking budget."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["enabled"] = "enabled"
    budget_tokens: int = Field(..., ge=1024)


class OpenAIWebSearch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool = False


class AnthropicWebSearch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool = False
    max_uses: Optional[int] = Field(default=None, gt=0)
    allowed_domains: Optional[List[str]] = None
    user_location: Optional[Dict[str, Any]] = None


# ============================================================================
# Configuration variants
# ============================================================================


class BaseLLMConfig(BaseModel):
    """Fields shared by every provider."""

    model_config = ConfigDict(extra="forbid")

    model: str = Field(..., min_length=1, description="Model identifier")
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, gt=0)
    system_prompt: Optional[str] = None
    api_key: Optional[str] = Field(default=None, repr=False)


class OpenAIConfig(BaseLLMConfig):
    provider: Literal["openai"] = "openai"
    organization: Optional[str] = None
    top_p: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    frequency_penalty: Optional[float] = Field(default=None, ge=-2.0, le=2.0)
    presence_penalty: Optional[float] = Field(default=None, ge=-2.0, le=2.0)
    reasoning: Optional[ReasoningOptions] = None
    web_search: Optional[OpenAIWebSearch] = None


class AnthropicConfig(BaseLLMConfig):
    provider: Literal["anthropic"] = "anthropic"
    max_tokens: int = Field(..., gt=0, description="Required by the Messages API")
    top_k: Optional[int] = Field(default=None, gt=0)
    top_p: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    thinking: Optional[ThinkingOptions] = None
    web_search: Optional[AnthropicWebSearch] = None
    stream: bool = False


class OllamaConfig(BaseLLMConfig):
    provider: Literal["ollama"] = "ollama"
    base_url: Optional[str] = None
    format: Optional[str] = None
    keep_alive: Optional[str] = None
    top_k: Optional[int] = Field(default=None, gt=0)
    top_p: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    num_ctx: Optional[int] = Field(default=None, gt=0)
    think: Optional[bool] = None
    stream: bool = False


class GoogleGenAIConfig(BaseLLMConfig):
    provider: Literal["genai"] = "genai"
    top_k: Optional[int] = Field(default=None, gt=0)
    top_p: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    thinking_budget: Optional[int] = Field(default=None, ge=-1, description="-1 lets the model decide")
    include_thoughts: Optional[bool] = None


LLMConfig = Annotated[
    Union[OpenAIConfig, AnthropicConfig, OllamaConfig, GoogleGenAIConfig],
    Field(discriminator="provider"),
]

SUPPORTED_PROVIDERS = ("openai", "anthropic", "ollama", "genai")

_config_adapter = TypeAdapter(LLMConfig)


def parse_llm_config(config: Union[BaseLLMConfig, Mapping[str, Any]]) -> BaseLLMConfig:
    """
    Build a typed configuration from a model instance or a plain mapping.

    Args:
        config: Existing config model, or a dict with a ``provider`` tag
            (defaults to "openai")

    Returns:
        The matching OpenAIConfig / AnthropicConfig / OllamaConfig / GoogleGenAIConfig

    Raises:
        ConfigurationError: If the provider tag is unknown
        ValidationError: If fields are missing, invalid, or belong to
            another provider
    """
    if isinstance(config, BaseLLMConfig):
        return config

    data = dict(config)
    provider = data.setdefault("provider", "openai")
    if provider not in SUPPORTED_PROVIDERS:
        raise ConfigurationError(
            f"Unsupported LLM provider: {provider!r}. "
            f"Supported: {', '.join(SUPPORTED_PROVIDERS)}"
        )
    return _config_adapter.validate_python(data)


def with_default_temperature(config: BaseLLMConfig, temperature: float) -> BaseLLMConfig:
    """Return a copy with ``temperature`` set, unless the caller already chose one."""
    if config.temperature is not None:
        return config
    return config.model_copy(update={"temperature": temperature})


def api_key_env_var(provider: str) -> str:
    """Standardized environment variable name holding a provider's API key."""
    return f"{provider.upper()}_API_KEY"


def resolve_api_key(provider: str, explicit: Optional[str] = None) -> Optional[str]:
    """Explicit key first, then ``<PROVIDER>_API_KEY``. Missing keys return None."""
    return explicit or os.getenv(api_key_env_var(provider))


def ollama_base_url(explicit: Optional[str] = None) -> str:
    return explicit or os.getenv("OLLAMA_BASE_URL", DEFAULT_OLLAMA_BASE_URL)
