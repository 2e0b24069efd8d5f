"""
backend/matchdesk/services/expression_evaluator.py

Purpose:
    Small, auditable boolean expression language used by prediction events,
    e.g. "home goals > away goals", "total >= {line}",
    "ht_home > ht_away and home_win". No eval(); a tokenizer plus a
    recursive-descent parser building a tiny AST.

    Grammar (lowest precedence first):
        or_expr   := and_expr (("or" | "||") and_expr)*
        and_expr  := not_expr (("and" | "&&") not_expr)*
        not_expr  := ("not" | "!") not_expr | compare
        compare   := sum (("<" | "<=" | ">" | ">=" | "==" | "=" | "!=") sum)?
        sum       := product (("+" | "-") product)*
        product   := unary (("*" | "/") unary)*
        unary     := "-" unary | primary
        primary   := number | string | true | false | {param} | field | "(" or_expr ")"
        field     := name+          # "home goals" -> home_goals; dotted paths allowed

Dependencies:
    - (none)
"""

from __future__ import annotations

import operator
import re
from dataclasses import dataclass
from typing import Any, Callable, Mapping


class ExpressionError(ValueError):
    """Expression could not be parsed or evaluated against the available fields."""


_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<number>\d+(?:\.\d+)?)
  | (?P<string>'[^']*'|"[^"]*")
  | (?P<param>\{\s*[A-Za-z_][A-Za-z0-9_]*\s*\})
  | (?P<op>&&|\|\||>=|<=|==|!=|[<>=!+\-*/()])
  | (?P<name>[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z0-9_]+)*)
    """,
    re.VERBOSE,
)

_KEYWORDS = {"and": "&&", "or": "||", "not": "!"}
_LITERALS = {"true": True, "false": False}

_COMPARE: dict[str, Callable[[Any, Any], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
    "=": operator.eq,
    "!=": operator.ne,
}
_ARITH: dict[str, Callable[[Any, Any], Any]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": operator.truediv,
}


@dataclass(frozen=True)
class Token:
    kind: str  # number | string | param | op | name | literal
    value: Any
    pos: int


def tokenize(text: str) -> list[Token]:
    tokens: list[Token] = []
    pos = 0
    while pos < len(text):
        found = _TOKEN_RE.match(text, pos)
        if found is None:
            raise ExpressionError(f"Unexpected character {text[pos]!r} at {pos}")
        kind = found.lastgroup
        raw = found.group()
        if kind == "number":
            tokens.append(Token("number", float(raw) if "." in raw else int(raw), pos))
        elif kind == "string":
            tokens.append(Token("string", raw[1:-1], pos))
        elif kind == "param":
            tokens.append(Token("param", raw[1:-1].strip(), pos))
        elif kind == "op":
            tokens.append(Token("op", raw, pos))
        elif kind == "name":
            lowered = raw.lower()
            if lowered in _KEYWORDS:
                tokens.append(Token("op", _KEYWORDS[lowered], pos))
            elif lowered in _LITERALS:
                tokens.append(Token("literal", _LITERALS[lowered], pos))
            else:
                tokens.append(Token("name", raw, pos))
        pos = found.end()
    return tokens


# AST nodes are plain tuples: ("const", v) | ("param", name) | ("field", name)
# | ("not", node) | ("and"/"or", left, right) | ("cmp", op, left, right)
# | ("arith", op, left, right) | ("neg", node)


class _Parser:
    def __init__(self, tokens: list[Token], source: str) -> None:
        self.tokens = tokens
        self.source = source
        self.i = 0

    def peek(self) -> Token | None:
        return self.tokens[self.i] if self.i < len(self.tokens) else None

    def accept(self, *ops: str) -> str | None:
        token = self.peek()
        if token is not None and token.kind == "op" and token.value in ops:
            self.i += 1
            return token.value
        return None

    def parse(self) -> tuple:
        if not self.tokens:
            raise ExpressionError("Empty expression")
        node = self.or_expr()
        token = self.peek()
        if token is not None:
            raise ExpressionError(f"Unexpected {token.value!r} at {token.pos} in {self.source!r}")
        return node

    def or_expr(self) -> tuple:
        node = self.and_expr()
        while self.accept("||"):
            node = ("or", node, self.and_expr())
        return node

    def and_expr(self) -> tuple:
        node = self.not_expr()
        while self.accept("&&"):
            node = ("and", node, self.not_expr())
        return node

    def not_expr(self) -> tuple:
        if self.accept("!"):
            return ("not", self.not_expr())
        return self.compare()

    def compare(self) -> tuple:
        node = self.sum()
        op = self.accept(*_COMPARE)
        if op is not None:
            node = ("cmp", op, node, self.sum())
        return node

    def sum(self) -> tuple:
        node = self.product()
        while (op := self.accept("+", "-")) is not None:
            node = ("arith", op, node, self.product())
        return node

    def product(self) -> tuple:
        node = self.unary()
        while (op := self.accept("*", "/")) is not None:
            node = ("arith", op, node, self.unary())
        return node

    def unary(self) -> tuple:
        if self.accept("-"):
            return ("neg", self.unary())
        return self.primary()

    def primary(self) -> tuple:
        token = self.peek()
        if token is None:
            raise ExpressionError(f"Unexpected end of expression {self.source!r}")
        if self.accept("("):
            node = self.or_expr()
            if not self.accept(")"):
                raise ExpressionError(f"Missing ')' in {self.source!r}")
            return node
        if token.kind in ("number", "string", "literal"):
            self.i += 1
            return ("const", token.value)
        if token.kind == "param":
            self.i += 1
            return ("param", token.value)
        if token.kind == "name":
            words = []
            while (nxt := self.peek()) is not None and nxt.kind == "name":
                words.append(nxt.value)
                self.i += 1
            return ("field", "_".join(words))
        raise ExpressionError(f"Unexpected {token.value!r} at {token.pos} in {self.source!r}")


def parse(expression: str) -> tuple:
    return _Parser(tokenize(expression), expression).parse()


def _numeric_pair(left: Any, right: Any) -> tuple[Any, Any]:
    """Coerce a numeric string against a number so '2' > 1 compares as 2 > 1."""
    if isinstance(left, str) and isinstance(right, (int, float)):
        return _to_number(left), right
    if isinstance(right, str) and isinstance(left, (int, float)):
        return left, _to_number(right)
    return left, right


def _to_number(value: str) -> Any:
    try:
        return float(value)
    except ValueError:
        raise ExpressionError(f"Cannot compare non-numeric value {value!r} with a number") from None


class Evaluation:
    """Evaluates a parsed expression with field and param resolvers."""

    def __init__(
        self,
        resolve_field: Callable[[str], Any],
        params: Mapping[str, Any] | None = None,
    ) -> None:
        self._resolve_field = resolve_field
        self._params = params or {}

    def run(self, node: tuple) -> Any:
        kind = node[0]
        if kind == "const":
            return node[1]
        if kind == "param":
            name = node[1]
            if name not in self._params:
                raise ExpressionError(f"Missing parameter {{{name}}}")
            return self._params[name]
        if kind == "field":
            value = self._resolve_field(node[1])
            if value is None:
                raise ExpressionError(f"No value available for field '{node[1]}'")
            return value
        if kind == "not":
            return not self._bool(self.run(node[1]))
        if kind == "and":
            return self._bool(self.run(node[1])) and self._bool(self.run(node[2]))
        if kind == "or":
            return self._bool(self.run(node[1])) or self._bool(self.run(node[2]))
        if kind == "neg":
            return -self._number(self.run(node[1]))
        if kind == "arith":
            left = self._number(self.run(node[2]))
            right = self._number(self.run(node[3]))
            if node[1] == "/" and right == 0:
                raise ExpressionError("Division by zero")
            return _ARITH[node[1]](left, right)
        if kind == "cmp":
            left, right = _numeric_pair(self.run(node[2]), self.run(node[3]))
            try:
                return _COMPARE[node[1]](left, right)
            except TypeError as exc:
                raise ExpressionError(f"Cannot compare {left!r} {node[1]} {right!r}") from exc
        raise ExpressionError(f"Unknown node {kind!r}")

    @staticmethod
    def _bool(value: Any) -> bool:
        if not isinstance(value, bool):
            raise ExpressionError(f"Expected a boolean, got {value!r}")
        return value

    @staticmethod
    def _number(value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            if isinstance(value, str):
                return _to_number(value)
            raise ExpressionError(f"Expected a number, got {value!r}")
        return value


def evaluate(
    expression: str,
    resolve_field: Callable[[str], Any],
    params: Mapping[str, Any] | None = None,
) -> bool:
    """Parse and evaluate `expression`; the result must be a boolean."""
    result = Evaluation(resolve_field, params).run(parse(expression))
    if not isinstance(result, bool):
        raise ExpressionError(f"Expression {expression!r} did not produce true/false (got {result!r})")
    return result
