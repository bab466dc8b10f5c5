"""Loss registry and the loss functions used by networks and the debugger."""

from __future__ import annotations

from typing import Callable, Dict, Iterable

import numpy as np

from ..core.errors import ShapeMismatchError
from ..core.types import Array

CE_EPSILON = 1e-15
CE_GRAD_CLIP = 10.0


def _check(pred: Array, target: Array) -> None:
    if pred.shape != target.shape:
        raise ShapeMismatchError(f"loss: predictions {pred.shape} vs targets {target.shape}")


class Loss:
    """Loss exposing the scalar value and dL/dy separately."""

    name = "loss"
    display_name = "Loss"

    def compute(self, predictions: Array, targets: Array) -> float:
        raise NotImplementedError

    def gradient(self, predictions: Array, targets: Array) -> Array:
        raise NotImplementedError

    def __call__(self, predictions: Array, targets: Array) -> tuple[float, Array]:
        return self.compute(predictions, targets), self.gradient(predictions, targets)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class MSE(Loss):
    """Mean squared error; non-finite pairs are left out of the mean."""

    name = "mse"
    display_name = "MSE"

    def compute(self, predictions: Array, targets: Array) -> float:
        _check(predictions, targets)
        finite = np.isfinite(predictions) & np.isfinite(targets)
        count = int(finite.sum())
        if count == 0:
            return 0.0
        diff = predictions[finite] - targets[finite]
        return float(np.sum(diff * diff) / count)

    def gradient(self, predictions: Array, targets: Array) -> Array:
        _check(predictions, targets)
        count = predictions.size
        with np.errstate(invalid="ignore", over="ignore"):
            grad = 2.0 * (predictions - targets) / count
        return np.where(np.isfinite(grad), grad, 0.0)


class CrossEntropy(Loss):
    """Binary cross-entropy over probabilities in ``(0, 1)``."""

    name = "crossentropy"
    display_name = "CrossEntropy"

    def compute(self, predictions: Array, targets: Array) -> float:
        _check(predictions, targets)
        usable = np.isfinite(predictions)
        pred = np.clip(np.where(usable, predictions, 0.5), CE_EPSILON, 1.0 - CE_EPSILON)
        with np.errstate(invalid="ignore", over="ignore"):
            terms = targets * np.log(pred) + (1.0 - targets) * np.log(1.0 - pred)
        keep = usable & np.isfinite(terms)
        count = int(keep.sum())
        if count == 0:
            return 0.0
        return float(-np.sum(terms[keep]) / count)

    def gradient(self, predictions: Array, targets: Array) -> Array:
        _check(predictions, targets)
        count = predictions.size
        pred = np.clip(predictions, CE_EPSILON, 1.0 - CE_EPSILON)
        with np.errstate(invalid="ignore", over="ignore", divide="ignore"):
            grad = -(targets / pred - (1.0 - targets) / (1.0 - pred)) / count
        return np.where(np.isfinite(grad), np.clip(grad, -CE_GRAD_CLIP, CE_GRAD_CLIP), 0.0)


class LossRegistry:
    """Central registry for loss functions."""

    def __init__(self) -> None:
        self._registry: Dict[str, Callable[[], Loss]] = {}

    def register(self, name: str, factory: Callable[[], Loss]) -> None:
        self._registry[name] = factory

    def get(self, name: str) -> Loss:
        key = str(name).lower()
        if key not in self._registry:
            available = ", ".join(sorted(self._registry))
            raise KeyError(f"Unknown loss {name!r}. Available losses: {available}")
        return self._registry[key]()

    def names(self) -> Iterable[str]:
        return sorted(self._registry)

    def resolve(self, name: str, *, task_type: str) -> Loss:
        if name == "auto":
            if task_type == "regression":
                name = "mse"
            elif task_type == "classification":
                name = "crossentropy"
            else:
                raise ValueError(f"Unknown task type: {task_type}")
        return self.get(name)


REGISTRY = LossRegistry()
REGISTRY.register("mse", MSE)
REGISTRY.register("crossentropy", CrossEntropy)
# Short alias used in configs
REGISTRY.register("bce", CrossEntropy)


def get_loss(name: str) -> Loss:
    return REGISTRY.get(name)


__all__ = ["Loss", "MSE", "CrossEntropy", "LossRegistry", "REGISTRY", "get_loss"]
