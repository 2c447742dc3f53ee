"""
Expression evaluation by quote-aware splitting.

There is no tokenizer. An expression is tried against each level below in
order and the first level that splits it wins; operands are evaluated
recursively:

1. membership        ``a in b``
2. comparison        first of ``==, !=, >=, <=, >, <`` (no chaining)
3. addition          ``a + b + ...`` (string concatenation if either side is a string)
4. literals          strings, lists, numbers, ``True/False/None`` (and lowercase forms)
5. variable path     ``name.attr.attr``; missing links yield ``None``
"""

import operator
import re
from typing import Any, Callable, Dict, List, Mapping, Optional

from tapestry.compiler.lexical import split_top_level
from .exceptions import ScriptRuntimeError

_NUMBER = re.compile(r"^-?\d+(\.\d+)?$")
_ESCAPE = re.compile(r"\\([nt\"'\\])")
_ESCAPES = {"n": "\n", "t": "\t", '"': '"', "'": "'", "\\": "\\"}

_KEYWORDS: Dict[str, Any] = {
    "True": True,
    "true": True,
    "False": False,
    "false": False,
    "None": None,
    "null": None,
}

COMPARISONS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    ">=": operator.ge,
    "<=": operator.le,
    ">": operator.gt,
    "<": operator.lt,
}


def format_value(value: Any) -> str:
    """Renders a runtime value the way ``print`` shows it."""
    if value is None:
        return "None"
    return str(value)


def _concat_text(value: Any) -> str:
    return "" if value is None else format_value(value)


def _contains(haystack: Any, needle: Any) -> bool:
    if isinstance(haystack, str):
        # A missing value is never part of a string.
        if needle is None:
            return False
        return format_value(needle) in haystack
    if isinstance(haystack, (list, tuple, dict, set)):
        try:
            return needle in haystack
        except TypeError:
            return False
    return False


def _compare(op: str, left: Any, right: Any) -> bool:
    try:
        return bool(COMPARISONS[op](left, right))
    except TypeError:
        # Ordering between unrelated kinds (e.g. None > 1) is simply false.
        return False


def _add(left: Any, right: Any) -> Any:
    if isinstance(left, str) or isinstance(right, str):
        return _concat_text(left) + _concat_text(right)
    if isinstance(left, list) and isinstance(right, list):
        return left + right
    try:
        return (left or 0) + (right or 0)
    except TypeError:
        raise ScriptRuntimeError(
            f"Cannot add {type(left).__name__} and {type(right).__name__}"
        )


def _unescape(body: str) -> str:
    return _ESCAPE.sub(lambda m: _ESCAPES[m.group(1)], body)


def _member(value: Any, name: str) -> Any:
    if isinstance(value, Mapping):
        return value.get(name)
    if isinstance(value, (list, tuple, str)):
        if name == "length":
            return len(value)
        if name.isdigit():
            index = int(name)
            return value[index] if index < len(value) else None
        return None
    if name.startswith("_"):
        return None
    return getattr(value, name, None)


def resolve_path(path: str, variables: Mapping[str, Any]) -> Any:
    head, *rest = [part.strip() for part in path.split(".")]
    if head not in variables:
        return None

    value = variables[head]
    for name in rest:
        if value is None:
            return None
        value = _member(value, name)
    return value


class Evaluator:
    def evaluate(self, expr: Optional[str], variables: Mapping[str, Any]) -> Any:
        if expr is None:
            return None
        expr = expr.strip()
        if not expr:
            return None

        # 1. Membership
        parts = split_top_level(expr, " in ", maxsplit=1)
        if len(parts) == 2:
            needle = self.evaluate(parts[0], variables)
            haystack = self.evaluate(parts[1], variables)
            return _contains(haystack, needle)

        # 2. Comparison
        for op in COMPARISONS:
            parts = split_top_level(expr, op, maxsplit=1)
            if len(parts) == 2:
                left = self.evaluate(parts[0], variables)
                right = self.evaluate(parts[1], variables)
                return _compare(op, left, right)

        # 3. Addition / concatenation
        parts = split_top_level(expr, "+")
        if len(parts) > 1:
            result = self.evaluate(parts[0], variables)
            for part in parts[1:]:
                result = _add(result, self.evaluate(part, variables))
            return result

        return self._atom(expr, variables)

    def _atom(self, expr: str, variables: Mapping[str, Any]) -> Any:
        if len(expr) >= 2 and expr[0] in "\"'" and expr[-1] == expr[0]:
            return _unescape(expr[1:-1])

        if expr.startswith("[") and expr.endswith("]"):
            return self._list(expr[1:-1], variables)

        number = _NUMBER.match(expr)
        if number:
            return float(expr) if number.group(1) else int(expr)

        if expr in _KEYWORDS:
            return _KEYWORDS[expr]

        return resolve_path(expr, variables)

    def _list(self, content: str, variables: Mapping[str, Any]) -> List[Any]:
        if not content.strip():
            return []
        items = split_top_level(content, ",")
        # A trailing comma does not add an element.
        if not items[-1].strip():
            items.pop()
        return [self.evaluate(item, variables) for item in items]

    def resolve_args(
        self, raw_args: Mapping[str, str], variables: Mapping[str, Any]
    ) -> Dict[str, Any]:
        return {key: self.evaluate(val, variables) for key, val in raw_args.items()}
