"""Shared type definitions and exceptions for nodes and providers."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Token usage
# ============================================================================


class TokenUsage(BaseModel):
    """Token counts reported for a single provider call.

    research_tokens captures reasoning/thinking tokens that some providers
    report separately (they are already part of output_tokens).
    """

    input_tokens: int = 0
    output_tokens: int = 0
    research_tokens: Optional[int] = None
    search_count: Optional[int] = None


class UsageRecord(BaseModel):
    """Timestamped log entry of token consumption for one provider call."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    provider: str
    model: str
    token_usage: TokenUsage


class TokenUsageSummary(BaseModel):
    """Aggregated token usage over a list of usage records."""

    input_tokens: int = 0
    output_tokens: int = 0
    research_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: "TokenUsageSummary") -> "TokenUsageSummary":
        return TokenUsageSummary(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            research_tokens=self.research_tokens + other.research_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


class LLMResponse(BaseModel):
    """Normalized response from any LLM provider."""

    content: str
    usage: Optional[TokenUsage] = None
    thinking: Optional[str] = None
    raw: Any = Field(default=None, repr=False)


# ============================================================================
# Exceptions
# ============================================================================


class LLMNodesError(Exception):
    """Base class for all library errors."""


class ConfigurationError(LLMNodesError):
    """Invalid node or provider configuration. Never retried."""


class ParseError(LLMNodesError):
    """Raised by response parsers when raw text cannot be converted."""

    def __init__(self, message: str, preview: str = ""):
        self.preview = preview
        super().__init__(message)


class NodeExecutionError(LLMNodesError):
    """Error raised during node execution."""

    def __init__(self, node_name: str, reason: str):
        self.node_name = node_name
        self.reason = reason
        super().__init__(f"[{node_name}] {reason}")


class StructuredOutputError(NodeExecutionError):
    """Raised when schema validation keeps failing after all retries."""

    def __init__(
        self,
        node_name: str,
        attempts: int,
        errors: Optional[List[Dict[str, str]]] = None,
        reason: Optional[str] = None,
    ):
        self.attempts = attempts
        self.errors = errors or []
        details = "; ".join(f"{e['path']}: {e['message']}" for e in self.errors)
        super().__init__(
            node_name,
            reason
            or f"Output failed schema validation after {attempts} attempts: {details}",
        )


class ClassificationError(NodeExecutionError):
    """Raised when a response cannot be mapped onto a declared category."""
