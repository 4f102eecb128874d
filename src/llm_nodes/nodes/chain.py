"""
Chain Node - multi-step reasoning.

Each step is one provider call whose prompt carries the problem, the
strategy framing and every earlier QUESTION/REASONING pair. A step that
answers with a CONCLUSION line ends the chain early (when allowed).
The full trail of steps is always returned with the final output.
"""

import logging
import re
import time
from typing import Any, Callable, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, Field

from ..core.config import BaseLLMConfig
from ..core.llm_client import LLMProvider
from ..core.node_base import ComposedNode, LLMNode
from ..core.template import PromptTemplate
from ..core.types import ConfigurationError
from ..parsers import text_parser

logger = logging.getLogger(__name__)

ReasoningStrategy = Literal["forward", "backward", "recursive"]

STRATEGY_FRAMING: Dict[str, str] = {
    "forward": (
        "Reason forward: start from the information given and derive one new "
        "fact per step until the problem is solved."
    ),
    "backward": (
        "Reason backward: start from what the answer requires and work back, "
        "one step at a time, to the information given."
    ),
    "recursive": (
        "Reason recursively: break the problem into smaller sub-problems and "
        "solve one sub-problem per step, combining their results."
    ),
}

_SECTION_PATTERN = re.compile(
    r"^[ \t]*\**(QUESTION|REASONING|CONCLUSION)\**[ \t]*:\**[ \t]*",
    re.IGNORECASE | re.MULTILINE,
)


class ReasoningStep(BaseModel):
    question: str = ""
    reasoning: str = ""
    conclusion: Optional[str] = None


class ChainResult(BaseModel):
    output: Any = None
    steps: List[ReasoningStep] = Field(default_factory=list)
    stopped_early: bool = False


def parse_step(raw: str) -> ReasoningStep:
    """
    Split a step response into its QUESTION / REASONING / CONCLUSION sections.

    Unlabeled responses are taken as reasoning.
    """
    matches = list(_SECTION_PATTERN.finditer(raw))
    if not matches:
        return ReasoningStep(reasoning=raw.strip())

    sections: Dict[str, str] = {}
    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(raw)
        sections.setdefault(match.group(1).lower(), raw[match.end() : end].strip())

    return ReasoningStep(
        question=sections.get("question", ""),
        reasoning=sections.get("reasoning", ""),
        conclusion=sections.get("conclusion") or None,
    )


class ChainNode(ComposedNode):
    """
    Multi-step reasoning over a problem statement.

    Example:
        node = ChainNode(
            prompt_template="Solve: {{problem}}",
            llm_config=AnthropicConfig(model="claude-sonnet-4-5", max_tokens=1024),
            max_steps=4,
            reasoning_strategy="backward",
        )
        result = await node.execute({"problem": "..."})
        result.output, result.steps
    """

    def __init__(
        self,
        prompt_template: PromptTemplate,
        llm_config: Union[BaseLLMConfig, Mapping[str, Any]],
        max_steps: int = 5,
        allow_early_stopping: bool = True,
        reasoning_strategy: ReasoningStrategy = "forward",
        output_parser: Optional[Callable[[str], Any]] = None,
        preprocessor: Optional[Callable[[Any], Any]] = None,
        provider: Optional[LLMProvider] = None,
        name: Optional[str] = None,
    ):
        """
        Initialize chain node.

        Args:
            prompt_template: Problem statement template
            llm_config: Provider configuration
            max_steps: Upper bound on reasoning steps (>= 1)
            allow_early_stopping: Stop at the first step with a conclusion
            reasoning_strategy: "forward", "backward" or "recursive"
            output_parser: Applied to the last step's reasoning to build the output
            preprocessor: Optional input transform
            provider: Provider override
            name: Node identifier for logging

        Raises:
            ConfigurationError: On an unknown strategy or max_steps < 1
        """
        if reasoning_strategy not in STRATEGY_FRAMING:
            raise ConfigurationError(
                f"Unknown reasoning strategy: {reasoning_strategy!r}. "
                f"Use one of: {', '.join(STRATEGY_FRAMING)}"
            )
        if max_steps < 1:
            raise ConfigurationError(f"max_steps must be at least 1, got {max_steps}")

        self.max_steps = max_steps
        self.allow_early_stopping = allow_early_stopping
        self.reasoning_strategy = reasoning_strategy
        self.output_parser = output_parser
        self.node = LLMNode(
            prompt_template=prompt_template,
            llm_config=llm_config,
            parser=text_parser(),
            preprocessor=preprocessor,
            provider=provider,
            name=name or "chain",
        )

    def build_step_prompt(self, problem: str, steps: List[ReasoningStep]) -> str:
        parts = [problem, STRATEGY_FRAMING[self.reasoning_strategy]]

        if steps:
            history = []
            for number, step in enumerate(steps, start=1):
                history.append(
                    f"Step {number}:\nQUESTION: {step.question}\nREASONING: {step.reasoning}"
                )
            parts.append("Previous steps:\n" + "\n\n".join(history))

        step_number = len(steps) + 1
        response_format = [
            f"Now perform step {step_number} of at most {self.max_steps}. "
            f"Respond in exactly this format:",
            "QUESTION: <the question this step answers>",
            "REASONING: <your reasoning for this step>",
        ]
        if self.allow_early_stopping:
            response_format.append(
                "CONCLUSION: <the final answer> (include this line only once you "
                "have reached the final answer)"
            )
        parts.append("\n".join(response_format))
        return "\n\n".join(parts)

    def derive_output(self, steps: List[ReasoningStep]) -> Any:
        last = steps[-1]
        if self.output_parser is not None:
            return self.output_parser(last.reasoning)
        return last.conclusion if last.conclusion is not None else last.reasoning

    async def execute(self, input: Any) -> ChainResult:
        start = time.time()
        if self.node.preprocessor is not None:
            input = self.node.preprocessor(input)
        problem = self.node.render_prompt(input)

        steps: List[ReasoningStep] = []
        stopped_early = False
        while len(steps) < self.max_steps:
            response = await self.node.complete(self.build_step_prompt(problem, steps))
            step = parse_step(response.content)
            steps.append(step)
            logger.info(f"[{self.name}] Step {len(steps)}/{self.max_steps}: {step.question[:80]}")

            if self.allow_early_stopping and step.conclusion is not None:
                stopped_early = len(steps) < self.max_steps
                break

        elapsed = (time.time() - start) * 1000
        logger.info(f"[{self.name}] Complete after {len(steps)} steps ({elapsed:.1f}ms)")
        return ChainResult(
            output=self.derive_output(steps),
            steps=steps,
            stopped_early=stopped_early,
        )
