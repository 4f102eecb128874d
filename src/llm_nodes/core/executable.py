"""
Executable Abstractions

Anything with an async ``execute(input)`` can be composed with ``pipe``.
Usage reporting is an optional capability: a stage that exposes
``get_usage_records`` / ``get_total_token_usage`` contributes to a
pipeline's totals, a stage that does not contributes nothing.
"""

from abc import ABC, abstractmethod
from typing import Any, List

from .types import TokenUsageSummary, UsageRecord


def has_usage(obj: Any) -> bool:
    """Structural check for the usage-reporting capability."""
    return callable(getattr(obj, "get_usage_records", None)) and callable(
        getattr(obj, "get_total_token_usage", None)
    )


def usage_records_of(obj: Any) -> List[UsageRecord]:
    return list(obj.get_usage_records()) if has_usage(obj) else []


def total_usage_of(obj: Any) -> TokenUsageSummary:
    return obj.get_total_token_usage() if has_usage(obj) else TokenUsageSummary()


class Executable(ABC):
    """Base interface for every composable stage."""

    @abstractmethod
    async def execute(self, input: Any) -> Any:
        """Run the stage on one input."""
        pass

    def pipe(self, next_stage: Any) -> "Pipeline":
        """
        Compose this stage with another.

        Args:
            next_stage: Any object with an async ``execute`` method

        Returns:
            Pipeline running this stage, then ``next_stage`` on its output
        """
        return Pipeline(self, next_stage)


class Pipeline(Executable):
    """Two stages run in sequence; the output of the first feeds the second."""

    def __init__(self, first: Any, second: Any):
        self.first = first
        self.second = second

    async def execute(self, input: Any) -> Any:
        intermediate = await self.first.execute(input)
        return await self.second.execute(intermediate)

    def get_usage_records(self) -> List[UsageRecord]:
        return usage_records_of(self.first) + usage_records_of(self.second)

    def get_total_token_usage(self) -> TokenUsageSummary:
        return total_usage_of(self.first) + total_usage_of(self.second)

    def __repr__(self) -> str:
        return f"Pipeline({self.first!r} -> {self.second!r})"
