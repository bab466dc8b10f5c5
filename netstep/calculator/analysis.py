"""Numerical calculus over calculator expressions.

Every function accepts ``dependency_values`` either as a fixed mapping of
label values or as a callable ``x -> mapping`` so that expressions referring
to other expressions can be resolved at each sample point.
"""

from __future__ import annotations

from typing import Callable, Iterator, List, Mapping, NamedTuple, Optional, Union

from .expression import evaluate_expression

DependencyValues = Union[
    Mapping[str, Optional[float]], Callable[[float], Mapping[str, Optional[float]]], None
]

DEFAULT_STEP = 0.1
ROOT_TOLERANCE = 1e-6
ROOT_MAX_ITERATIONS = 100
INTERSECTION_TOLERANCE = 1e-5
INTERSECTION_ITERATIONS = 50
EXTREMUM_ITERATIONS = 30
CRITICAL_DEDUP = 1e-4
SECOND_DIFF_H = 1e-4
INFLECTION_THRESHOLD = 1e-3


class Point(NamedTuple):
    x: float
    y: float


class CriticalPoint(NamedTuple):
    x: float
    y: float
    kind: str  # "min", "max" or "inflection"


def _evaluate(
    text: str, x: float, params: Optional[Mapping[str, float]], deps: DependencyValues
) -> Optional[float]:
    values = deps(x) if callable(deps) else deps
    return evaluate_expression(text, x, params, values)


def _scan(start: float, stop: float, step: float) -> Iterator[float]:
    if step <= 0:
        raise ValueError("step must be positive")
    i = 0
    while True:
        x = start + i * step
        if x >= stop:
            return
        yield x
        i += 1


def calculate_derivative(
    text: str,
    x: float,
    params: Optional[Mapping[str, float]] = None,
    dependency_values: DependencyValues = None,
    h: float = 1e-5,
) -> Optional[float]:
    """Central difference ``(f(x+h) - f(x-h)) / 2h``."""

    f1 = _evaluate(text, x + h, params, dependency_values)
    f2 = _evaluate(text, x - h, params, dependency_values)
    if f1 is None or f2 is None:
        return None
    return (f1 - f2) / (2.0 * h)


def calculate_second_derivative(
    text: str,
    x: float,
    params: Optional[Mapping[str, float]] = None,
    dependency_values: DependencyValues = None,
    h: float = SECOND_DIFF_H,
) -> Optional[float]:
    f_plus = _evaluate(text, x + h, params, dependency_values)
    f_mid = _evaluate(text, x, params, dependency_values)
    f_minus = _evaluate(text, x - h, params, dependency_values)
    if f_plus is None or f_mid is None or f_minus is None:
        return None
    return (f_plus - 2.0 * f_mid + f_minus) / (h * h)


def calculate_integral(
    text: str,
    x_min: float,
    x_max: float,
    params: Optional[Mapping[str, float]] = None,
    dependency_values: DependencyValues = None,
    n: int = 1000,
) -> Optional[float]:
    """Composite Simpson's rule; ``None`` if the range is empty or any sample is undefined."""

    if x_min >= x_max:
        return None
    if n < 2 or n % 2:
        raise ValueError("n must be a positive even number")
    h = (x_max - x_min) / n
    total = 0.0
    for i in range(n + 1):
        y = _evaluate(text, x_min + i * h, params, dependency_values)
        if y is None:
            return None
        if i == 0 or i == n:
            total += y
        elif i % 2 == 0:
            total += 2.0 * y
        else:
            total += 4.0 * y
    return h / 3.0 * total


def find_root_bisection(
    text: str,
    a: float,
    b: float,
    params: Optional[Mapping[str, float]] = None,
    dependency_values: DependencyValues = None,
    tolerance: float = ROOT_TOLERANCE,
    max_iterations: int = ROOT_MAX_ITERATIONS,
) -> Optional[float]:
    fa = _evaluate(text, a, params, dependency_values)
    fb = _evaluate(text, b, params, dependency_values)
    if fa is None or fb is None:
        return None
    if abs(fa) < tolerance:
        return a
    if abs(fb) < tolerance:
        return b
    if fa * fb > 0:
        return None
    for _ in range(max_iterations):
        c = (a + b) / 2.0
        fc = _evaluate(text, c, params, dependency_values)
        if fc is None:
            return None
        if abs(fc) < tolerance or (b - a) / 2.0 < tolerance:
            return c
        if fa * fc < 0:
            b = c
        else:
            a, fa = c, fc
    return None


def find_roots(
    text: str,
    x_min: float,
    x_max: float,
    params: Optional[Mapping[str, float]] = None,
    dependency_values: DependencyValues = None,
    step: float = DEFAULT_STEP,
) -> List[float]:
    """Roots found by scanning for sign changes and refining each by bisection."""

    roots: List[float] = []
    for x in _scan(x_min, x_max, step):
        y1 = _evaluate(text, x, params, dependency_values)
        y2 = _evaluate(text, x + step, params, dependency_values)
        if y1 is None or y2 is None or y1 * y2 > 0:
            continue
        root = find_root_bisection(text, x, x + step, params, dependency_values)
        if root is not None and not any(abs(r - root) < ROOT_TOLERANCE for r in roots):
            roots.append(root)
    return roots


def find_intersections(
    text1: str,
    text2: str,
    x_min: float,
    x_max: float,
    params: Optional[Mapping[str, float]] = None,
    dependency_values1: DependencyValues = None,
    dependency_values2: DependencyValues = None,
    step: float = DEFAULT_STEP,
) -> List[Point]:
    def diff(x: float) -> Optional[Point]:
        a = _evaluate(text1, x, params, dependency_values1)
        b = _evaluate(text2, x, params, dependency_values2)
        if a is None or b is None:
            return None
        return Point(a - b, a)

    points: List[Point] = []
    for x in _scan(x_min, x_max, step):
        start, end = diff(x), diff(x + step)
        if start is None or end is None:
            continue
        if start.x == 0.0:
            points.append(Point(x, start.y))
            continue
        if end.x == 0.0:
            # The last interval has no successor to pick up its right edge
            if x + step >= x_max:
                points.append(Point(x + step, end.y))
            continue
        if start.x * end.x > 0:
            continue
        a, b = x, x + step
        for _ in range(INTERSECTION_ITERATIONS):
            mid = (a + b) / 2.0
            here = diff(mid)
            if here is None:
                break
            if abs(here.x) < INTERSECTION_TOLERANCE or b - a < INTERSECTION_TOLERANCE:
                points.append(Point(mid, here.y))
                break
            if start.x * here.x < 0:
                b = mid
            else:
                a = mid

    unique: List[Point] = []
    for point in points:
        if not any(abs(q.x - point.x) < INTERSECTION_TOLERANCE for q in unique):
            unique.append(point)
    return unique


def _refine_stationary(
    text: str,
    a: float,
    b: float,
    d_start: float,
    params: Optional[Mapping[str, float]],
    deps: DependencyValues,
) -> Optional[float]:
    for _ in range(EXTREMUM_ITERATIONS):
        mid = (a + b) / 2.0
        d_mid = calculate_derivative(text, mid, params, deps)
        if d_mid is None:
            return None
        if abs(d_mid) < 1e-5 or b - a < 1e-6:
            return mid
        if d_start * d_mid < 0:
            b = mid
        else:
            a = mid
    return None


def _stationary_points(
    text: str,
    x_min: float,
    x_max: float,
    params: Optional[Mapping[str, float]],
    deps: DependencyValues,
    step: float,
) -> List[float]:
    found: List[float] = []
    for x in _scan(x_min + step, x_max - step, step):
        d1 = calculate_derivative(text, x, params, deps)
        d2 = calculate_derivative(text, x + step, params, deps)
        if d1 is None or d2 is None:
            continue
        if d1 == 0.0:
            found.append(x)
            continue
        if d2 == 0.0:
            # A zero at the right edge is picked up by the next interval, if any
            if x + step >= x_max - step:
                found.append(x + step)
            continue
        if d1 * d2 > 0:
            continue
        point = _refine_stationary(text, x, x + step, d1, params, deps)
        if point is not None:
            found.append(point)
    return found


def find_min_max(
    text: str,
    x_min: float,
    x_max: float,
    params: Optional[Mapping[str, float]] = None,
    dependency_values: DependencyValues = None,
    step: float = DEFAULT_STEP,
) -> List[CriticalPoint]:
    """Local extrema classified by the derivative sign one ``step`` either side."""

    extrema: List[CriticalPoint] = []
    for x in _stationary_points(text, x_min, x_max, params, dependency_values, step):
        y = _evaluate(text, x, params, dependency_values)
        before = calculate_derivative(text, x - step, params, dependency_values)
        after = calculate_derivative(text, x + step, params, dependency_values)
        if y is None or before is None or after is None:
            continue
        if any(abs(p.x - x) < CRITICAL_DEDUP for p in extrema):
            continue
        if before < 0 < after:
            extrema.append(CriticalPoint(x, y, "min"))
        elif before > 0 > after:
            extrema.append(CriticalPoint(x, y, "max"))
    return extrema


def find_critical_points(
    text: str,
    x_min: float,
    x_max: float,
    params: Optional[Mapping[str, float]] = None,
    dependency_values: DependencyValues = None,
    step: float = DEFAULT_STEP,
) -> List[CriticalPoint]:
    """Stationary points classified by the second difference.

    ``|f''| < 1e-3`` marks an inflection; otherwise the sign picks min or max.
    """

    critical: List[CriticalPoint] = []
    for x in _stationary_points(text, x_min, x_max, params, dependency_values, step):
        y = _evaluate(text, x, params, dependency_values)
        curvature = calculate_second_derivative(text, x, params, dependency_values)
        if y is None or curvature is None:
            continue
        if abs(curvature) < INFLECTION_THRESHOLD:
            kind = "inflection"
        elif curvature > 0:
            kind = "min"
        else:
            kind = "max"
        if not any(abs(p.x - x) < CRITICAL_DEDUP for p in critical):
            critical.append(CriticalPoint(x, y, kind))
    return critical


__all__ = [
    "CriticalPoint",
    "Point",
    "calculate_derivative",
    "calculate_integral",
    "calculate_second_derivative",
    "find_critical_points",
    "find_intersections",
    "find_min_max",
    "find_root_bisection",
    "find_roots",
]
