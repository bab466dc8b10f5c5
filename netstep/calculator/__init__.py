"""Graphing-calculator expressions and numerical calculus."""

from .analysis import (
    CriticalPoint,
    Point,
    calculate_derivative,
    calculate_integral,
    find_critical_points,
    find_intersections,
    find_min_max,
    find_roots,
)
from .expression import compile_expression, evaluate_expression, parse_expression
from .workspace import (
    Expression,
    Parameter,
    animate_parameter,
    evaluate_all_expressions,
    extract_expression_refs,
    extract_parameters,
    sample_expressions,
    sync_parameters,
    topological_sort,
)

__all__ = [
    "CriticalPoint",
    "Expression",
    "Parameter",
    "Point",
    "animate_parameter",
    "calculate_derivative",
    "calculate_integral",
    "compile_expression",
    "evaluate_all_expressions",
    "evaluate_expression",
    "extract_expression_refs",
    "extract_parameters",
    "find_critical_points",
    "find_intersections",
    "find_min_max",
    "find_roots",
    "parse_expression",
    "sample_expressions",
    "sync_parameters",
    "topological_sort",
]
