"""Shape-checked 2-D tensor algebra.

Every function returns a new array; inputs are never modified.  Operands that
are not 2-D (or 1-D where a vector is expected) or whose shapes disagree raise
:class:`~netstep.core.errors.ShapeMismatchError` instead of broadcasting.
"""

from __future__ import annotations

from typing import Iterable

import numpy as np

from .errors import ShapeMismatchError
from .types import Array


def as_tensor(data: Array | Iterable[Iterable[float]]) -> Array:
    """Return ``data`` as a float64 matrix, rejecting ragged or non-2-D input."""

    try:
        out = np.array(data, dtype=np.float64)
    except ValueError as exc:
        raise ShapeMismatchError(f"Tensor rows must have equal length: {exc}") from exc
    if out.ndim != 2:
        raise ShapeMismatchError(f"Expected a 2-D tensor, got {out.ndim} dimension(s)")
    return out


def as_vector(data: Array | Iterable[float]) -> Array:
    out = np.array(data, dtype=np.float64)
    if out.ndim != 1:
        raise ShapeMismatchError(f"Expected a 1-D vector, got {out.ndim} dimension(s)")
    return out


def _check_2d(*tensors: Array) -> None:
    for t in tensors:
        if np.ndim(t) != 2:
            raise ShapeMismatchError(f"Expected a 2-D tensor, got shape {np.shape(t)}")


def _check_same(a: Array, b: Array, op: str) -> None:
    _check_2d(a, b)
    if a.shape != b.shape:
        raise ShapeMismatchError(f"{op}: shapes {a.shape} and {b.shape} differ")


def zeros(rows: int, cols: int) -> Array:
    return np.zeros((rows, cols), dtype=np.float64)


def identity(n: int) -> Array:
    return np.eye(n, dtype=np.float64)


def matmul(a: Array, b: Array) -> Array:
    """Matrix product; requires ``a.cols == b.rows``."""

    _check_2d(a, b)
    if a.shape[1] != b.shape[0]:
        raise ShapeMismatchError(
            f"matmul: {a.shape[0]}x{a.shape[1]} @ {b.shape[0]}x{b.shape[1]} "
            "has mismatched inner dimensions"
        )
    return a @ b


def transpose(t: Array) -> Array:
    _check_2d(t)
    return t.T.copy()


def add(a: Array, b: Array) -> Array:
    _check_same(a, b, "add")
    return a + b


def subtract(a: Array, b: Array) -> Array:
    _check_same(a, b, "subtract")
    return a - b


def hadamard(a: Array, b: Array) -> Array:
    """Element-wise product."""

    _check_same(a, b, "hadamard")
    return a * b


def multiply_scalar(t: Array, scalar: float) -> Array:
    _check_2d(t)
    return t * float(scalar)


def broadcast_add(t: Array, vector: Array) -> Array:
    """Add ``vector`` to every row of ``t``."""

    _check_2d(t)
    if np.ndim(vector) != 1 or len(vector) != t.shape[1]:
        raise ShapeMismatchError(
            f"broadcast_add: vector of shape {np.shape(vector)} does not match "
            f"{t.shape[1]} columns"
        )
    return t + np.asarray(vector, dtype=np.float64)[np.newaxis, :]


def col_sum(t: Array) -> Array:
    """Sum over rows; returns a vector of length ``cols``."""

    _check_2d(t)
    return t.sum(axis=0)


def clip(t: Array, bound: float) -> Array:
    """Clamp every entry of ``t`` into ``[-bound, bound]``."""

    if np.ndim(t) not in (1, 2):
        raise ShapeMismatchError(f"clip: unsupported shape {np.shape(t)}")
    if bound < 0:
        raise ValueError("clip bound must be non-negative")
    return np.clip(t, -bound, bound)


__all__ = [
    "as_tensor",
    "as_vector",
    "zeros",
    "identity",
    "matmul",
    "transpose",
    "add",
    "subtract",
    "hadamard",
    "multiply_scalar",
    "broadcast_add",
    "col_sum",
    "clip",
]
