"""
Token Usage Utilities

Provider response metadata has changed shape across SDK versions, so usage
extraction checks several known layouts and degrades to None when nothing is
found. Usage reporting never fails a call.
"""

import logging
from typing import Any, Iterable, Optional

from .types import TokenUsage, TokenUsageSummary, UsageRecord

logger = logging.getLogger(__name__)


def get_field(obj: Any, name: str) -> Any:
    """Attribute or key access on SDK objects and plain dicts alike."""
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _path(obj: Any, *names: str) -> Any:
    for name in names:
        obj = get_field(obj, name)
        if obj is None:
            return None
    return obj


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _from_usage_block(usage: Any) -> Optional[TokenUsage]:
    """Read a ``usage``-style block (OpenAI chat, OpenAI responses, Anthropic, LangChain)."""
    if usage is None:
        return None

    input_tokens = _as_int(get_field(usage, "input_tokens"))
    output_tokens = _as_int(get_field(usage, "output_tokens"))
    if input_tokens is None and output_tokens is None:
        input_tokens = _as_int(get_field(usage, "prompt_tokens"))
        output_tokens = _as_int(get_field(usage, "completion_tokens"))
    if input_tokens is None and output_tokens is None:
        return _from_gemini_usage(usage)

    research_tokens = (
        _as_int(_path(usage, "completion_tokens_details", "reasoning_tokens"))
        or _as_int(_path(usage, "output_tokens_details", "reasoning_tokens"))
        or _as_int(_path(usage, "output_token_details", "reasoning"))
        or _as_int(get_field(usage, "reasoning_tokens"))
    )
    search_count = _as_int(get_field(usage, "search_count")) or _as_int(
        _path(usage, "server_tool_use", "web_search_requests")
    )

    return TokenUsage(
        input_tokens=input_tokens or 0,
        output_tokens=output_tokens or 0,
        research_tokens=research_tokens,
        search_count=search_count,
    )


def _from_gemini_usage(usage: Any) -> Optional[TokenUsage]:
    """Read Gemini ``usage_metadata`` (prompt/candidates/thoughts token counts)."""
    input_tokens = _as_int(get_field(usage, "prompt_token_count"))
    candidates = _as_int(get_field(usage, "candidates_token_count"))
    if input_tokens is None and candidates is None:
        return None

    # Thought tokens are reported beside candidates, not inside them
    thoughts = _as_int(get_field(usage, "thoughts_token_count"))
    return TokenUsage(
        input_tokens=input_tokens or 0,
        output_tokens=(candidates or 0) + (thoughts or 0),
        research_tokens=thoughts,
    )


def extract_token_usage(response: Any) -> Optional[TokenUsage]:
    """
    Extract token usage from a provider response of any known shape.

    Checks, in order:
        - response.usage_metadata             (LangChain AIMessage, Gemini)
        - response.usage                      (OpenAI, Anthropic SDK objects)
        - response.response_metadata.token_usage / .usage  (older LangChain)
        - prompt_eval_count / eval_count      (Ollama)

    Args:
        response: SDK response object, LangChain message, or dict

    Returns:
        TokenUsage, or None if no usage metadata was found
    """
    candidates = (
        get_field(response, "usage_metadata"),
        get_field(response, "usage"),
        _path(response, "response_metadata", "token_usage"),
        _path(response, "response_metadata", "usage"),
    )
    for candidate in candidates:
        usage = _from_usage_block(candidate)
        if usage is not None:
            return usage

    prompt_eval = _as_int(get_field(response, "prompt_eval_count"))
    eval_count = _as_int(get_field(response, "eval_count"))
    if prompt_eval is not None or eval_count is not None:
        return TokenUsage(input_tokens=prompt_eval or 0, output_tokens=eval_count or 0)

    logger.debug(f"[usage] No usage metadata found on {type(response).__name__}")
    return None


def summarize_usage(records: Iterable[UsageRecord]) -> TokenUsageSummary:
    """Sum a list of usage records. total_tokens counts input + output."""
    summary = TokenUsageSummary()
    for record in records:
        usage = record.token_usage
        summary.input_tokens += usage.input_tokens
        summary.output_tokens += usage.output_tokens
        summary.research_tokens += usage.research_tokens or 0
    summary.total_tokens = summary.input_tokens + summary.output_tokens
    return summary
