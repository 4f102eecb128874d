"""Context injection: merge an input with static or computed context (no provider calls)."""

import inspect
from typing import Any, Callable

from ..core.executable import Executable


class ContextInjectionNode(Executable):
    """
    Combine each input with a context value via ``combiner(input, context)``.

    ``context`` is either a static value or a callable of the input; the
    callable may be sync or async.

    Example:
        node = ContextInjectionNode(
            combiner=lambda text, ctx: {"text": text, "glossary": ctx},
            context=load_glossary,
        )
    """

    def __init__(self, combiner: Callable[[Any, Any], Any], context: Any):
        self.combiner = combiner
        self.context = context

    async def resolve_context(self, input: Any) -> Any:
        if not callable(self.context):
            return self.context
        context = self.context(input)
        if inspect.isawaitable(context):
            context = await context
        return context

    async def execute(self, input: Any) -> Any:
        context = await self.resolve_context(input)
        return self.combiner(input, context)
