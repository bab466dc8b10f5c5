"""Tokenizer, recursive-descent parser and evaluator for calculator expressions.

Grammar (implicit multiplication binds like ``*``)::

    expr    := term (("+" | "-") term)*
    term    := unary (("*" | "/") unary | power)*
    unary   := ("+" | "-") unary | power
    power   := primary ("^" unary)?
    primary := NUMBER | FUNC "(" expr ")" | NAME | "(" expr ")"

Identifiers are read greedily, so ``y10`` is never mistaken for ``y1``.
``x`` followed by digits (``x2``) is read as ``x * 2``.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Dict, List, Mapping, Optional, Tuple, Union

from ..core.errors import ExpressionSyntaxError


def _sigmoid(v: float) -> float:
    if v >= 0:
        return 1.0 / (1.0 + math.exp(-v))
    z = math.exp(v)
    return z / (1.0 + z)


def _gelu(v: float) -> float:
    return 0.5 * v * (1.0 + math.tanh(math.sqrt(2.0 / math.pi) * (v + 0.044715 * v * v * v)))


def _round_half_up(v: float) -> float:
    return float(math.floor(v + 0.5))


FUNCTIONS: Dict[str, Callable[[float], float]] = {
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "asin": math.asin,
    "acos": math.acos,
    "atan": math.atan,
    "log": math.log10,
    "ln": math.log,
    "sqrt": math.sqrt,
    "abs": abs,
    "exp": math.exp,
    "floor": lambda v: float(math.floor(v)),
    "ceil": lambda v: float(math.ceil(v)),
    "round": _round_half_up,
    "relu": lambda v: max(0.0, v),
    "leakyrelu": lambda v: v if v > 0 else 0.01 * v,
    "sigmoid": _sigmoid,
    # Single-value logistic form
    "softmax": _sigmoid,
    "swish": lambda v: v * _sigmoid(v),
    "gelu": _gelu,
    "tanh": math.tanh,
}

CONSTANTS: Dict[str, float] = {"pi": math.pi, "e": math.e}

RESERVED_WORDS = frozenset(FUNCTIONS) | frozenset(CONSTANTS) | {"x"}

_TOKEN_RE = re.compile(
    r"\s*(?:(?P<number>\d+\.?\d*|\.\d+)|(?P<name>[a-z_][a-z0-9_]*)|(?P<op>[-+*/^()]))"
)
_X_DIGITS = re.compile(r"x(\d+)$")


class UndefinedValue(ArithmeticError):
    """Raised during evaluation when a name has no finite value."""


Token = Tuple[str, str, int]


def tokenize(text: str) -> List[Token]:
    tokens: List[Token] = []
    pos = 0
    text = text.rstrip()
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None or match.end() == pos:
            raise ExpressionSyntaxError(f"unexpected character {text[pos]!r}", pos)
        kind = match.lastgroup
        tokens.append((kind, match.group(kind), match.start(kind)))
        pos = match.end()
    return tokens


# ----------------------------------------------------------------------
# Expression tree


@dataclass(frozen=True)
class Number:
    value: float

    def evaluate(self, env: Mapping[str, Optional[float]]) -> float:
        return self.value


@dataclass(frozen=True)
class Name:
    name: str

    def evaluate(self, env: Mapping[str, Optional[float]]) -> float:
        value = env.get(self.name)
        if value is None or not math.isfinite(value):
            raise UndefinedValue(self.name)
        return float(value)


@dataclass(frozen=True)
class Unary:
    op: str
    operand: "Node"

    def evaluate(self, env: Mapping[str, Optional[float]]) -> float:
        value = self.operand.evaluate(env)
        return -value if self.op == "-" else value


@dataclass(frozen=True)
class Binary:
    op: str
    left: "Node"
    right: "Node"

    def evaluate(self, env: Mapping[str, Optional[float]]) -> float:
        a = self.left.evaluate(env)
        b = self.right.evaluate(env)
        if self.op == "+":
            return a + b
        if self.op == "-":
            return a - b
        if self.op == "*":
            return a * b
        if self.op == "/":
            return a / b
        return math.pow(a, b)


@dataclass(frozen=True)
class Call:
    function: str
    argument: "Node"

    def evaluate(self, env: Mapping[str, Optional[float]]) -> float:
        return FUNCTIONS[self.function](self.argument.evaluate(env))


Node = Union[Number, Name, Unary, Binary, Call]


class _Parser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.tokens = tokenize(text)
        self.pos = 0

    def peek(self) -> Optional[Token]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def take(self) -> Token:
        token = self.peek()
        if token is None:
            raise ExpressionSyntaxError("unexpected end of expression", len(self.text))
        self.pos += 1
        return token

    def expect(self, value: str) -> None:
        token = self.take()
        if token[1] != value:
            raise ExpressionSyntaxError(f"expected {value!r}, found {token[1]!r}", token[2])

    def parse(self) -> Node:
        if not self.tokens:
            raise ExpressionSyntaxError("empty expression", 0)
        node = self.expr()
        token = self.peek()
        if token is not None:
            raise ExpressionSyntaxError(f"unexpected {token[1]!r}", token[2])
        return node

    def expr(self) -> Node:
        node = self.term()
        while self._at_op("+", "-"):
            op = self.take()[1]
            node = Binary(op, node, self.term())
        return node

    def term(self) -> Node:
        node = self.unary()
        while True:
            if self._at_op("*", "/"):
                op = self.take()[1]
                node = Binary(op, node, self.unary())
            elif self._starts_operand():
                node = Binary("*", node, self.power())
            else:
                return node

    def unary(self) -> Node:
        if self._at_op("+", "-"):
            op = self.take()[1]
            return Unary(op, self.unary())
        return self.power()

    def power(self) -> Node:
        node = self.primary()
        if self._at_op("^"):
            self.take()
            return Binary("^", node, self.unary())
        return node

    def primary(self) -> Node:
        kind, value, position = self.take()
        if kind == "number":
            return Number(float(value))
        if kind == "name":
            if value in FUNCTIONS:
                self.expect("(")
                argument = self.expr()
                self.expect(")")
                return Call(value, argument)
            match = _X_DIGITS.match(value)
            if match:
                return Binary("*", Name("x"), Number(float(match.group(1))))
            return Name(value)
        if value == "(":
            node = self.expr()
            self.expect(")")
            return node
        raise ExpressionSyntaxError(f"unexpected {value!r}", position)

    def _at_op(self, *ops: str) -> bool:
        token = self.peek()
        return token is not None and token[0] == "op" and token[1] in ops

    def _starts_operand(self) -> bool:
        token = self.peek()
        if token is None:
            return False
        return token[0] in ("number", "name") or token[1] == "("


@lru_cache(maxsize=512)
def parse_expression(text: str) -> Node:
    """Parse ``text`` (lower-cased and trimmed) into an expression tree."""

    return _Parser(text.strip().lower()).parse()


def build_environment(
    x: float,
    params: Optional[Mapping[str, float]] = None,
    dependency_values: Optional[Mapping[str, Optional[float]]] = None,
) -> Dict[str, Optional[float]]:
    env: Dict[str, Optional[float]] = dict(CONSTANTS)
    if params:
        env.update({k.lower(): v for k, v in params.items()})
    if dependency_values:
        env.update({k.lower(): v for k, v in dependency_values.items()})
    env["x"] = x
    return env


def evaluate_tree(node: Node, env: Mapping[str, Optional[float]]) -> Optional[float]:
    """Evaluate a parsed tree; domain errors and non-finite results give ``None``."""

    try:
        result = node.evaluate(env)
    except (UndefinedValue, ValueError, ZeroDivisionError, OverflowError):
        return None
    if not math.isfinite(result):
        return None
    return float(result)


def compile_expression(text: str) -> Callable[..., Optional[float]]:
    """Parse once and return ``f(x, params=None, dependency_values=None)``.

    Raises :class:`ExpressionSyntaxError` for malformed text.
    """

    node = parse_expression(text)

    def evaluate(
        x: float,
        params: Optional[Mapping[str, float]] = None,
        dependency_values: Optional[Mapping[str, Optional[float]]] = None,
    ) -> Optional[float]:
        return evaluate_tree(node, build_environment(x, params, dependency_values))

    return evaluate


def evaluate_expression(
    text: str,
    x: float,
    params: Optional[Mapping[str, float]] = None,
    dependency_values: Optional[Mapping[str, Optional[float]]] = None,
) -> Optional[float]:
    """Value of ``text`` at ``x``, or ``None`` when it is undefined there."""

    if not text or not text.strip():
        return None
    try:
        node = parse_expression(text)
    except ExpressionSyntaxError:
        return None
    return evaluate_tree(node, build_environment(x, params, dependency_values))


__all__ = [
    "CONSTANTS",
    "FUNCTIONS",
    "RESERVED_WORDS",
    "UndefinedValue",
    "build_environment",
    "compile_expression",
    "evaluate_expression",
    "evaluate_tree",
    "parse_expression",
    "tokenize",
]
