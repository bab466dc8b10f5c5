"""Helpers turning point sets into network tensors."""

from __future__ import annotations

from typing import List, Sequence, Tuple

import numpy as np

from ..core.types import Array
from ..linear_regression import DataPoint


def points_to_tensors(points: Sequence[DataPoint], mode: str) -> Tuple[Array, Array]:
    """Regression: ``x -> y`` as two n x 1 matrices.

    Classification: ``(x, y) -> label`` as an n x 2 input and an n x 1 target
    (missing labels count as class 0).
    """

    if not points:
        raise ValueError("points must not be empty")
    if mode == "regression":
        inputs = np.array([[p.x] for p in points], dtype=np.float64)
        targets = np.array([[p.y] for p in points], dtype=np.float64)
    elif mode == "classification":
        inputs = np.array([[p.x, p.y] for p in points], dtype=np.float64)
        targets = np.array([[p.label or 0] for p in points], dtype=np.float64)
    else:
        raise ValueError(f"Unknown task type: {mode}")
    return inputs, targets


def train_test_split(
    points: Sequence[DataPoint], train_fraction: float = 0.8, *, seed: int = 0
) -> Tuple[List[DataPoint], List[DataPoint]]:
    """Deterministic shuffled split; ``floor(n * train_fraction)`` points go to train."""

    if not 0.0 < train_fraction <= 1.0:
        raise ValueError("train_fraction must be in (0, 1]")
    rng = np.random.default_rng(seed)
    order = rng.permutation(len(points))
    cut = int(np.floor(len(points) * train_fraction))
    train = [points[i] for i in order[:cut]]
    test = [points[i] for i in order[cut:]]
    return train, test


__all__ = ["points_to_tensors", "train_test_split"]
