"""Plain-text node: the response is returned trimmed."""

from typing import Any, Callable, Mapping, Optional, Union

from ..core.config import BaseLLMConfig
from ..core.llm_client import LLMProvider
from ..core.node_base import LLMNode
from ..core.template import PromptTemplate, render
from ..parsers import text_parser


class TextNode(LLMNode[str]):
    """LLMNode preconfigured with ``text_parser``."""

    def __init__(
        self,
        prompt_template: PromptTemplate,
        llm_config: Union[BaseLLMConfig, Mapping[str, Any]],
        preprocessor: Optional[Callable[[Any], Any]] = None,
        provider: Optional[LLMProvider] = None,
        name: Optional[str] = None,
    ):
        super().__init__(
            prompt_template=prompt_template,
            llm_config=llm_config,
            parser=text_parser(),
            preprocessor=preprocessor,
            provider=provider,
            name=name or "text",
        )

    def with_additional_prompt(self, additional_prompt: str) -> "TextNode":
        """
        Return a new TextNode whose prompt is this one's plus extra text.

        The original node is left unchanged; the new node shares the
        provider but keeps its own usage records.
        """
        base = self.prompt_template
        if isinstance(base, str):
            template: PromptTemplate = f"{base}\n\n{additional_prompt}"
        else:
            template = lambda input: f"{render(base, input)}\n\n{additional_prompt}"
        return TextNode(
            prompt_template=template,
            llm_config=self.llm_config,
            preprocessor=self.preprocessor,
            provider=self.provider,
            name=self.name,
        )
