"""Named expressions, free parameters and dependency-ordered evaluation."""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .expression import FUNCTIONS, RESERVED_WORDS, evaluate_expression

_REF_RE = re.compile(r"y\d+")
_FUNCTION_RE = re.compile("|".join(sorted(FUNCTIONS, key=len, reverse=True)) + "|pi")
_SINGLE_RE = re.compile(r"\b[a-df-wz]\b")
_INDEXED_RE = re.compile(r"\b[a-wz]\d+\b")


@dataclass
class Expression:
    label: str
    text: str
    color: str = "#3b82f6"
    visible: bool = True

    @property
    def key(self) -> str:
        return self.label.lower()


@dataclass
class Parameter:
    name: str
    value: float = 1.0
    min: float = -10.0
    max: float = 10.0


def extract_expression_refs(text: str) -> List[str]:
    """Distinct ``y<digits>`` labels referenced by ``text``, in first-seen order."""

    return list(dict.fromkeys(_REF_RE.findall(text.lower())))


def extract_parameters(text: str) -> List[str]:
    """Free parameter names: single letters first, then indexed names.

    ``x``, ``e`` and ``y`` are never parameters, and neither are ``x1``-style
    or ``y1``-style names.
    """

    cleaned = _FUNCTION_RE.sub(" ", text.lower())
    cleaned = _REF_RE.sub(" ", cleaned)
    found = _SINGLE_RE.findall(cleaned) + _INDEXED_RE.findall(cleaned)
    params = [p for p in dict.fromkeys(found) if p not in RESERVED_WORDS]
    return sorted(params, key=lambda p: (any(c.isdigit() for c in p), p))


def topological_sort(expressions: Sequence[Expression]) -> List[Expression]:
    """Order expressions so every referenced label comes first.

    References to unknown labels are ignored and cycles are broken at the
    first back edge, without raising.
    """

    by_label = {expr.key: expr for expr in expressions}
    visited: set = set()
    ordered: List[Expression] = []

    def visit(label: str, visiting: set) -> None:
        if label in visited or label in visiting:
            return
        expr = by_label.get(label)
        if expr is None:
            return
        visiting.add(label)
        for ref in extract_expression_refs(expr.text):
            visit(ref, visiting)
        visiting.discard(label)
        visited.add(label)
        ordered.append(expr)

    for expr in expressions:
        visit(expr.key, set())
    return ordered


def evaluate_all_expressions(
    expressions: Sequence[Expression], x: float, params: Optional[Mapping[str, float]] = None
) -> Dict[str, Optional[float]]:
    """Evaluate every expression at ``x``; labels map to ``None`` where undefined."""

    values: Dict[str, Optional[float]] = {}
    for expr in topological_sort(expressions):
        if expr.text.strip():
            values[expr.key] = evaluate_expression(expr.text, x, params, values)
        else:
            values[expr.key] = None
    return values


def parameter_values(parameters: Iterable[Parameter]) -> Dict[str, float]:
    return {p.name: p.value for p in parameters}


def sync_parameters(
    expressions: Sequence[Expression], parameters: Sequence[Parameter]
) -> List[Parameter]:
    """Add newly referenced parameters and drop the ones nothing references."""

    used: List[str] = []
    for expr in expressions:
        used.extend(extract_parameters(expr.text))
    used_set = set(used)
    kept = [p for p in parameters if p.name in used_set]
    existing = {p.name for p in kept}
    added = [Parameter(name) for name in dict.fromkeys(used) if name not in existing]
    return kept + added


def sample_expressions(
    expressions: Sequence[Expression],
    x_min: float,
    x_max: float,
    params: Optional[Mapping[str, float]] = None,
    samples: int = 500,
) -> Tuple[List[float], Dict[str, List[Optional[float]]]]:
    """Evaluate all visible expressions on an evenly spaced grid.

    Returns the grid and, per label, a list of values with ``None`` gaps
    where the expression is undefined.
    """

    if samples < 2:
        raise ValueError("samples must be at least 2")
    xs = [float(v) for v in np.linspace(x_min, x_max, samples)]
    curves: Dict[str, List[Optional[float]]] = {
        expr.key: [] for expr in expressions if expr.visible
    }
    for x in xs:
        values = evaluate_all_expressions(expressions, x, params)
        for label, curve in curves.items():
            curve.append(values.get(label))
    return xs, curves


def animate_parameter(param: Parameter, direction: int, speed: float) -> Tuple[Parameter, int]:
    """Advance ``param`` by one animation tick, bouncing at its bounds.

    Returns the updated parameter (value rounded to two decimals) and the
    direction for the next tick.
    """

    value = param.value + speed * direction
    if value >= param.max:
        value, direction = param.max, -1
    elif value <= param.min:
        value, direction = param.min, 1
    return replace(param, value=round(value, 2)), direction


__all__ = [
    "Expression",
    "Parameter",
    "animate_parameter",
    "evaluate_all_expressions",
    "extract_expression_refs",
    "extract_parameters",
    "parameter_values",
    "sample_expressions",
    "sync_parameters",
    "topological_sort",
]
