"""
Prompt Template Engine

Turns a prompt template plus an input value into the final prompt string.

String templates use ``{{expr}}`` placeholders. ``expr`` is a small,
read-only expression language evaluated against the input:

    {{name}}                 key or attribute of the input
    {{user.address.city}}    member access
    {{items[0]}}             indexing (integer or quoted string)
    {{tags.join(', ')}}      whitelisted helper calls
    {{input.name}}           ``input`` is bound to the input itself

Rendering never raises for missing data: a placeholder that cannot be
evaluated falls back to a direct ``input[expr]`` lookup and then to "".
"""

import json
import logging
import re
from typing import Any, Callable, Dict, List, Mapping, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

PromptTemplate = Union[str, Callable[[Any], str]]

PLACEHOLDER_PATTERN = re.compile(r"\{\{([^}]+)\}\}")

_TOKEN_PATTERN = re.compile(
    r"""\s*(?:
        (?P<number>-?\d+(?:\.\d+)?)
      | (?P<string>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")
      | (?P<name>[A-Za-z_$][A-Za-z0-9_$]*)
      | (?P<op>[.\[\](),])
    )""",
    re.VERBOSE,
)

_ESCAPE_PATTERN = re.compile(r"\\(.)")
_ESCAPES = {"n": "\n", "t": "\t"}


class TemplateExpressionError(Exception):
    """Placeholder expression could not be evaluated."""


# =============================================================================
# HELPERS - the only callables reachable from a template
# =============================================================================


def _join(value: Any, separator: str = ",") -> str:
    return separator.join(format_value(item) for item in value)


def _length(value: Any) -> int:
    return len(value)


def _strip(value: Any) -> str:
    return str(value).strip()


_HELPERS: Dict[str, Callable[..., Any]] = {
    "join": _join,
    "upper": lambda value: str(value).upper(),
    "toUpperCase": lambda value: str(value).upper(),
    "lower": lambda value: str(value).lower(),
    "toLowerCase": lambda value: str(value).lower(),
    "strip": _strip,
    "trim": _strip,
    "title": lambda value: str(value).title(),
    "length": _length,
    "keys": lambda value: list(value.keys()),
    "values": lambda value: list(value.values()),
}


# =============================================================================
# EVALUATION
# =============================================================================


def format_value(value: Any) -> str:
    """Format an evaluated value for inclusion in a prompt."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple, dict)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def _tokenize(expr: str) -> List[Tuple[str, str]]:
    tokens = []
    pos = 0
    expr = expr.rstrip()
    while pos < len(expr):
        match = _TOKEN_PATTERN.match(expr, pos)
        if not match or match.end() == pos:
            raise TemplateExpressionError(f"Unexpected character at {pos} in {expr!r}")
        kind = match.lastgroup
        tokens.append((kind, match.group(kind)))
        pos = match.end()
    return tokens


def _literal(kind: str, text: str) -> Any:
    if kind == "number":
        return float(text) if "." in text else int(text)
    if kind == "string":
        return _ESCAPE_PATTERN.sub(lambda m: _ESCAPES.get(m.group(1), m.group(1)), text[1:-1])
    raise TemplateExpressionError(f"Expected a literal, got {text!r}")


def _lookup(obj: Any, key: Any) -> Any:
    """Key, index or attribute access. Private attributes are never reachable."""
    if isinstance(obj, Mapping):
        return obj[key]
    if isinstance(key, int):
        if isinstance(obj, Sequence):
            return obj[key]
        raise TemplateExpressionError(f"Cannot index {type(obj).__name__}")
    if not isinstance(key, str) or key.startswith("_"):
        raise TemplateExpressionError(f"Invalid member {key!r}")
    if key == "length" and not hasattr(obj, "length"):
        return len(obj)
    value = getattr(obj, key)
    if callable(value):
        raise TemplateExpressionError(f"Member {key!r} is not a value")
    return value


class _Evaluator:
    """Recursive-descent evaluator over the token list of one expression."""

    def __init__(self, tokens: List[Tuple[str, str]], root: Any):
        self.tokens = tokens
        self.pos = 0
        self.root = root

    def _peek(self, text: str) -> bool:
        return self.pos < len(self.tokens) and self.tokens[self.pos] == ("op", text)

    def _next(self) -> Tuple[str, str]:
        if self.pos >= len(self.tokens):
            raise TemplateExpressionError("Unexpected end of expression")
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def _expect(self, text: str) -> None:
        if self._next() != ("op", text):
            raise TemplateExpressionError(f"Expected {text!r}")

    def evaluate(self) -> Any:
        value = self._primary()
        while self.pos < len(self.tokens):
            if self._peek("."):
                self.pos += 1
                kind, name = self._next()
                if kind != "name":
                    raise TemplateExpressionError(f"Expected member name, got {name!r}")
                if self._peek("("):
                    value = self._call(value, name)
                else:
                    value = _lookup(value, name)
            elif self._peek("["):
                self.pos += 1
                key = _literal(*self._next())
                self._expect("]")
                value = _lookup(value, key)
            else:
                raise TemplateExpressionError(f"Unexpected token {self.tokens[self.pos][1]!r}")
        return value

    def _primary(self) -> Any:
        kind, text = self._next()
        if kind == "name":
            if text == "input" and not (isinstance(self.root, Mapping) and "input" in self.root):
                return self.root
            return _lookup(self.root, text)
        return _literal(kind, text)

    def _call(self, target: Any, name: str) -> Any:
        helper = _HELPERS.get(name)
        if helper is None:
            raise TemplateExpressionError(f"Unknown helper {name!r}")
        self._expect("(")
        args = []
        while not self._peek(")"):
            args.append(_literal(*self._next()))
            if not self._peek(")"):
                self._expect(",")
        self._expect(")")
        return helper(target, *args)


def evaluate_expression(expr: str, input: Any) -> Any:
    """Evaluate a placeholder expression against the input.

    Raises:
        TemplateExpressionError, LookupError, AttributeError, TypeError,
        ValueError: If the expression cannot be evaluated
    """
    tokens = _tokenize(expr)
    if not tokens:
        raise TemplateExpressionError("Empty expression")
    return _Evaluator(tokens, input).evaluate()


def _direct_lookup(input: Any, key: str) -> Any:
    if isinstance(input, Mapping):
        return input.get(key)
    return None


def render(template: PromptTemplate, input: Any) -> str:
    """
    Render a prompt template for one input.

    Args:
        template: String with ``{{expr}}`` placeholders, or a callable
            that receives the input and returns the full prompt
        input: Value placeholders are evaluated against

    Returns:
        The rendered prompt
    """
    if callable(template):
        return template(input)

    def substitute(match: "re.Match[str]") -> str:
        expr = match.group(1).strip()
        try:
            return format_value(evaluate_expression(expr, input))
        except (TemplateExpressionError, LookupError, AttributeError, TypeError, ValueError) as e:
            logger.debug(f"[template] {{{{{expr}}}}} fell back to direct lookup: {e}")
            return format_value(_direct_lookup(input, expr))

    return PLACEHOLDER_PATTERN.sub(substitute, template)
