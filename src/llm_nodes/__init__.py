"""
llm-nodes: composable LLM nodes.

A node is a prompt template, a provider configuration and a response
parser. Nodes execute asynchronously, track their own token usage and
compose into pipelines with ``pipe``.
"""

from .core import (
    # Types
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
    # Configuration
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
    parse_llm_config,
    # Templates
    PromptTemplate,
    render,
    # Providers
    LLMProvider,
    OpenAIProvider,
    AnthropicProvider,
    OllamaProvider,
    GoogleGenAIProvider,
    LangChainProvider,
    create_provider,
    # Composition
    Executable,
    Pipeline,
    LLMNode,
)
from .parsers import (
    json_field_parser,
    json_parser,
    labeled_fields_parser,
    regex_parser,
    text_parser,
)
from .nodes import (
    ChainNode,
    ChainResult,
    ClassificationNode,
    ClassificationResult,
    ContextInjectionNode,
    ExtractionField,
    ExtractionNode,
    ExtractionResult,
    MergeNode,
    NodeBuilder,
    ReasoningStep,
    StructuredOutputNode,
    TextNode,
)

__version__ = "0.1.0"

__all__ = [
    "TokenUsage",
    "UsageRecord",
    "TokenUsageSummary",
    "LLMResponse",
    "LLMNodesError",
    "ConfigurationError",
    "ParseError",
    "NodeExecutionError",
    "StructuredOutputError",
    "ClassificationError",
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
    "parse_llm_config",
    "PromptTemplate",
    "render",
    "LLMProvider",
    "OpenAIProvider",
    "AnthropicProvider",
    "OllamaProvider",
    "GoogleGenAIProvider",
    "LangChainProvider",
    "create_provider",
    "Executable",
    "Pipeline",
    "LLMNode",
    "json_field_parser",
    "json_parser",
    "labeled_fields_parser",
    "regex_parser",
    "text_parser",
    "ChainNode",
    "ChainResult",
    "ClassificationNode",
    "ClassificationResult",
    "ContextInjectionNode",
    "ExtractionField",
    "ExtractionNode",
    "ExtractionResult",
    "MergeNode",
    "NodeBuilder",
    "ReasoningStep",
    "StructuredOutputNode",
    "TextNode",
]
