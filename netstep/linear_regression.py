"""Closed-form and gradient-descent fitting of ``y = m * x + b``."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

from .core.types import Array

LOSS_TYPES = ("mse", "mae", "huber")


@dataclass(frozen=True)
class DataPoint:
    x: float
    y: float
    label: Optional[int] = None
    is_train: bool = True


@dataclass(frozen=True)
class GradientStep:
    m: float
    b: float
    dm: float
    db: float


def _arrays(points: Sequence[DataPoint]) -> Tuple[Array, Array]:
    xs = np.array([p.x for p in points], dtype=np.float64)
    ys = np.array([p.y for p in points], dtype=np.float64)
    return xs, ys


def _errors(points: Sequence[DataPoint], m: float, b: float) -> Array:
    xs, ys = _arrays(points)
    return m * xs + b - ys


def normal_equation(points: Sequence[DataPoint]) -> Tuple[float, float]:
    """Least-squares slope and intercept.

    Fewer than two points give ``(0, 0)``; when every x is the same the slope
    is 0 and the intercept is the mean of y.
    """

    if len(points) < 2:
        return 0.0, 0.0
    xs, ys = _arrays(points)
    n = len(points)
    sum_x, sum_y = xs.sum(), ys.sum()
    denominator = n * np.dot(xs, xs) - sum_x * sum_x
    if abs(denominator) < 1e-10:
        return 0.0, float(sum_y / n)
    m = (n * np.dot(xs, ys) - sum_x * sum_y) / denominator
    b = (sum_y - m * sum_x) / n
    return float(m), float(b)


def compute_mse(points: Sequence[DataPoint], m: float, b: float) -> float:
    if not points:
        return 0.0
    err = _errors(points, m, b)
    return float(np.mean(err * err))


def compute_mae(points: Sequence[DataPoint], m: float, b: float) -> float:
    if not points:
        return 0.0
    return float(np.mean(np.abs(_errors(points, m, b))))


def compute_huber(points: Sequence[DataPoint], m: float, b: float, delta: float = 1.0) -> float:
    if not points:
        return 0.0
    err = np.abs(_errors(points, m, b))
    quadratic = 0.5 * err * err
    linear = delta * err - 0.5 * delta * delta
    return float(np.mean(np.where(err <= delta, quadratic, linear)))


def compute_r2(points: Sequence[DataPoint], m: float, b: float) -> float:
    """Coefficient of determination; constant targets count as a perfect fit."""

    if len(points) < 2:
        return 0.0
    xs, ys = _arrays(points)
    total = np.sum((ys - ys.mean()) ** 2)
    if total < 1e-10:
        return 1.0
    residual = np.sum((ys - (m * xs + b)) ** 2)
    return float(1.0 - residual / total)


def compute_loss(
    points: Sequence[DataPoint], m: float, b: float, loss_type: str = "mse", delta: float = 1.0
) -> float:
    if loss_type == "mse":
        return compute_mse(points, m, b)
    if loss_type == "mae":
        return compute_mae(points, m, b)
    if loss_type == "huber":
        return compute_huber(points, m, b, delta)
    raise KeyError(f"Unknown loss {loss_type!r}. Available losses: {', '.join(LOSS_TYPES)}")


def gradient_descent_step(
    points: Sequence[DataPoint],
    m: float,
    b: float,
    learning_rate: float,
    loss_type: str = "mse",
    delta: float = 1.0,
) -> GradientStep:
    """One full-batch update of ``m`` and ``b`` using averaged gradients."""

    if loss_type not in LOSS_TYPES:
        raise KeyError(f"Unknown loss {loss_type!r}. Available losses: {', '.join(LOSS_TYPES)}")
    if not points:
        return GradientStep(m, b, 0.0, 0.0)
    xs, _ = _arrays(points)
    err = _errors(points, m, b)
    sign = np.where(err >= 0, 1.0, -1.0)
    if loss_type == "mse":
        per_point = 2.0 * err
    elif loss_type == "mae":
        per_point = sign
    else:
        per_point = np.where(np.abs(err) <= delta, err, sign * delta)
    dm = float(np.mean(per_point * xs))
    db = float(np.mean(per_point))
    return GradientStep(m - learning_rate * dm, b - learning_rate * db, dm, db)


def compute_loss_landscape(
    points: Sequence[DataPoint],
    m_range: Tuple[float, float],
    b_range: Tuple[float, float],
    resolution: int = 50,
    loss_type: str = "mse",
    delta: float = 1.0,
) -> Dict[str, Array]:
    """Loss on a ``resolution x resolution`` grid; ``m`` varies along rows."""

    if resolution < 2:
        raise ValueError("resolution must be at least 2")
    ms = np.linspace(m_range[0], m_range[1], resolution)
    bs = np.linspace(b_range[0], b_range[1], resolution)
    m_grid, b_grid = np.meshgrid(ms, bs, indexing="ij")
    loss = np.empty_like(m_grid)
    for i in range(resolution):
        for j in range(resolution):
            loss[i, j] = compute_loss(points, m_grid[i, j], b_grid[i, j], loss_type, delta)
    return {"m": m_grid, "b": b_grid, "loss": loss}


__all__ = [
    "DataPoint",
    "GradientStep",
    "LOSS_TYPES",
    "compute_huber",
    "compute_loss",
    "compute_loss_landscape",
    "compute_mae",
    "compute_mse",
    "compute_r2",
    "gradient_descent_step",
    "normal_equation",
]
