"""
Merge Node - fan-in, plus the concurrent fan-out helper.

    pipeline = MergeNode.create_pipeline(
        [summary_node, keywords_node],
        MergeNode(lambda summary, keywords: {"summary": summary, "keywords": keywords}),
    )
    result = await pipeline.execute({"text": article})
"""

import asyncio
import logging
import time
from typing import Any, Callable, List, Sequence

from ..core.executable import Executable, total_usage_of, usage_records_of
from ..core.types import TokenUsageSummary, UsageRecord

logger = logging.getLogger(__name__)


class MergeNode(Executable):
    """Combine a fixed-arity sequence of upstream results with ``merger(*inputs)``."""

    def __init__(self, merger: Callable[..., Any]):
        self.merger = merger

    async def execute(self, inputs: Sequence[Any]) -> Any:
        return self.merger(*inputs)

    @staticmethod
    def create_pipeline(sources: Sequence[Any], merge_node: "MergeNode") -> "FanOutPipeline":
        """
        Run ``sources`` concurrently on the same input, then merge.

        Args:
            sources: Executables sharing one input
            merge_node: Receives the source outputs in declaration order

        Returns:
            Executable with usage accessors summing the sources' usage
        """
        return FanOutPipeline(sources, merge_node)


class FanOutPipeline(Executable):
    """Concurrent fan-out over ``sources`` followed by a merge."""

    def __init__(self, sources: Sequence[Any], merge_node: Any):
        self.sources = list(sources)
        self.merge_node = merge_node

    async def execute(self, input: Any) -> Any:
        start = time.time()
        # gather keeps declaration order regardless of completion order
        outputs = await asyncio.gather(*(source.execute(input) for source in self.sources))
        elapsed = (time.time() - start) * 1000
        logger.info(f"[merge] {len(self.sources)} sources complete ({elapsed:.1f}ms)")
        return await self.merge_node.execute(list(outputs))

    def get_usage_records(self) -> List[UsageRecord]:
        records: List[UsageRecord] = []
        for stage in [*self.sources, self.merge_node]:
            records.extend(usage_records_of(stage))
        return records

    def get_total_token_usage(self) -> TokenUsageSummary:
        total = TokenUsageSummary()
        for stage in [*self.sources, self.merge_node]:
            total = total + total_usage_of(stage)
        return total
