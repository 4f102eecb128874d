"""Core infrastructure shared across all node kinds."""

from .types import (
    TokenUsage,
    UsageRecord,
    TokenUsageSummary,
    LLMResponse,
    # Exceptions
    LLMNodesError,
    ConfigurationError,
    ParseError,
    NodeExecutionError,
    StructuredOutputError,
    ClassificationError,
)
from .config import (
    BaseLLMConfig,
    OpenAIConfig,
    AnthropicConfig,
    OllamaConfig,
    GoogleGenAIConfig,
    LLMConfig,
    ReasoningOptions,
    ThinkingOptions,
    OpenAIWebSearch,
    AnthropicWebSearch,
    SUPPORTED_PROVIDERS,
    parse_llm_config,
    with_default_temperature,
    api_key_env_var,
    resolve_api_key,
)
from .template import PromptTemplate, render, evaluate_expression, format_value
from .usage import extract_token_usage, summarize_usage
from .llm_client import (
    LLMProvider,
    OpenAIProvider,
    AnthropicProvider,
    OllamaProvider,
    GoogleGenAIProvider,
    LangChainProvider,
    create_provider,
)
from .executable import Executable, Pipeline, has_usage
from .node_base import ComposedNode, LLMNode

# Retry strategies
from .retry_strategies import (
    IRetryStrategy,
    SchemaFeedbackRetry,
    build_retry_prompt,
    describe_schema,
    format_validation_errors,
)

__all__ = [
    # Types
    "TokenUsage",
    "UsageRecord",
    "TokenUsageSummary",
    "LLMResponse",
    # Exceptions
    "LLMNodesError",
    "ConfigurationError",
    "ParseError",
    "NodeExecutionError",
    "StructuredOutputError",
    "ClassificationError",
    # Configuration
    "BaseLLMConfig",
    "OpenAIConfig",
    "AnthropicConfig",
    "OllamaConfig",
    "GoogleGenAIConfig",
    "LLMConfig",
    "ReasoningOptions",
    "ThinkingOptions",
    "OpenAIWebSearch",
    "AnthropicWebSearch",
    "SUPPORTED_PROVIDERS",
    "parse_llm_config",
    "with_default_temperature",
    "api_key_env_var",
    "resolve_api_key",
    # Templates
    "PromptTemplate",
    "render",
    "evaluate_expression",
    "format_value",
    # Usage
    "extract_token_usage",
    "summarize_usage",
    # Providers
    "LLMProvider",
    "OpenAIProvider",
    "AnthropicProvider",
    "OllamaProvider",
    "GoogleGenAIProvider",
    "LangChainProvider",
    "create_provider",
    # Composition
    "Executable",
    "Pipeline",
    "has_usage",
    "LLMNode",
    "ComposedNode",
    # Retry
    "IRetryStrategy",
    "SchemaFeedbackRetry",
    "build_retry_prompt",
    "describe_schema",
    "format_validation_errors",
]
