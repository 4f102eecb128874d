"""Node kinds built on the core LLMNode."""

from .text import TextNode
from .structured_output import StructuredOutputNode
from .classification import ClassificationNode, ClassificationResult
from .extraction import ExtractionField, ExtractionNode, ExtractionResult
from .chain import ChainNode, ChainResult, ReasoningStep
from .context import ContextInjectionNode
from .merge import FanOutPipeline, MergeNode
from .builder import NodeBuilder

__all__ = [
    "TextNode",
    "StructuredOutputNode",
    "ClassificationNode",
    "ClassificationResult",
    "ExtractionField",
    "ExtractionNode",
    "ExtractionResult",
    "ChainNode",
    "ChainResult",
    "ReasoningStep",
    "ContextInjectionNode",
    "FanOutPipeline",
    "MergeNode",
    "NodeBuilder",
]
