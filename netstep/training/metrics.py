"""Evaluation metrics reported alongside the loss each epoch."""

from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Mapping

import numpy as np

from ..core.types import Array

THRESHOLD = 0.5
_EPS = 1e-9


def default_metrics(task_type: str) -> List[str]:
    if task_type == "regression":
        return ["mae", "rmse", "r2"]
    if task_type == "classification":
        return ["accuracy", "precision", "recall", "f1"]
    raise ValueError(f"Unknown task type: {task_type}")


def mae(predictions: Array, targets: Array) -> float:
    return float(np.mean(np.abs(predictions - targets)))


def rmse(predictions: Array, targets: Array) -> float:
    return float(np.sqrt(np.mean((predictions - targets) ** 2)))


def r2(predictions: Array, targets: Array) -> float:
    ss_res = float(np.sum((targets - predictions) ** 2))
    ss_tot = float(np.sum((targets - targets.mean(axis=0, keepdims=True)) ** 2))
    return 1.0 if ss_tot == 0 else 1.0 - ss_res / ss_tot


def _confusion(predictions: Array, targets: Array) -> tuple[float, float, float, float]:
    """Counts of (tp, fp, fn, tn) for outputs already in probability space."""

    pred = predictions >= THRESHOLD
    true = targets >= THRESHOLD
    return (
        float(np.sum(pred & true)),
        float(np.sum(pred & ~true)),
        float(np.sum(~pred & true)),
        float(np.sum(~pred & ~true)),
    )


def accuracy(predictions: Array, targets: Array) -> float:
    tp, fp, fn, tn = _confusion(predictions, targets)
    return (tp + tn) / max(tp + fp + fn + tn, 1.0)


def precision(predictions: Array, targets: Array) -> float:
    tp, fp, _, _ = _confusion(predictions, targets)
    return tp / (tp + fp + _EPS)


def recall(predictions: Array, targets: Array) -> float:
    tp, _, fn, _ = _confusion(predictions, targets)
    return tp / (tp + fn + _EPS)


def f1(predictions: Array, targets: Array) -> float:
    p = precision(predictions, targets)
    r = recall(predictions, targets)
    return 2 * p * r / (p + r + _EPS)


METRICS: Dict[str, Callable[[Array, Array], float]] = {
    "mae": mae,
    "rmse": rmse,
    "r2": r2,
    "accuracy": accuracy,
    "precision": precision,
    "recall": recall,
    "f1": f1,
}


def compute_metrics(names: Iterable[str], predictions: Array, targets: Array) -> Mapping[str, float]:
    results: Dict[str, float] = {}
    for name in names:
        key = name.lower()
        if key not in METRICS:
            raise KeyError(f"Unknown metric {name!r}. Available metrics: {', '.join(sorted(METRICS))}")
        results[key] = METRICS[key](predictions, targets)
    return results


__all__ = [
    "METRICS",
    "accuracy",
    "compute_metrics",
    "default_metrics",
    "f1",
    "mae",
    "precision",
    "r2",
    "recall",
    "rmse",
]
