"""Activation functions with forward and backward passes."""

from __future__ import annotations

from typing import Dict, Iterable, Type

import numpy as np

from .errors import ShapeMismatchError
from .types import Array

SIGMOID_CLAMP = 500.0


def _check_grad(output_grad: Array, z: Array) -> None:
    if output_grad.shape != z.shape:
        raise ShapeMismatchError(
            f"activation backward: gradient {output_grad.shape} vs input {z.shape}"
        )


def sigmoid(x: Array) -> Array:
    clamped = np.clip(x, -SIGMOID_CLAMP, SIGMOID_CLAMP)
    return 1.0 / (1.0 + np.exp(-clamped))


def softmax(z: Array) -> Array:
    shifted = z - z.max(axis=1, keepdims=True)
    e = np.exp(shifted)
    return e / e.sum(axis=1, keepdims=True)


class Activation:
    """Base class; ``backward`` receives the pre-activation ``z``."""

    name = "activation"
    symbol = "f"

    def forward(self, z: Array) -> Array:
        raise NotImplementedError

    def backward(self, output_grad: Array, z: Array) -> Array:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class ReLU(Activation):
    name = "relu"
    symbol = "ReLU"

    def forward(self, z: Array) -> Array:
        return np.maximum(z, 0.0)

    def backward(self, output_grad: Array, z: Array) -> Array:
        _check_grad(output_grad, z)
        return np.where(z > 0, output_grad, 0.0)


class Sigmoid(Activation):
    name = "sigmoid"
    symbol = "σ"

    def forward(self, z: Array) -> Array:
        return sigmoid(z)

    def backward(self, output_grad: Array, z: Array) -> Array:
        _check_grad(output_grad, z)
        s = sigmoid(z)
        return output_grad * s * (1.0 - s)


class Tanh(Activation):
    name = "tanh"
    symbol = "tanh"

    def forward(self, z: Array) -> Array:
        return np.tanh(z)

    def backward(self, output_grad: Array, z: Array) -> Array:
        _check_grad(output_grad, z)
        t = np.tanh(z)
        return output_grad * (1.0 - t * t)


class Linear(Activation):
    name = "linear"
    symbol = "linear"

    def forward(self, z: Array) -> Array:
        return z

    def backward(self, output_grad: Array, z: Array) -> Array:
        _check_grad(output_grad, z)
        return output_grad


class Softmax(Activation):
    """Row-wise softmax.

    The backward pass uses the diagonal of the Jacobian only,
    ``g * s * (1 - s)``, rather than the full ``diag(s) - s s^T`` product.
    """

    name = "softmax"
    symbol = "softmax"

    def forward(self, z: Array) -> Array:
        return softmax(z)

    def backward(self, output_grad: Array, z: Array) -> Array:
        _check_grad(output_grad, z)
        s = softmax(z)
        return output_grad * s * (1.0 - s)


_REGISTRY: Dict[str, Type[Activation]] = {
    cls.name: cls for cls in (ReLU, Sigmoid, Tanh, Linear, Softmax)
}


def get_activation(name: str) -> Activation:
    """Return a fresh activation instance for ``name``."""

    key = str(name).lower()
    try:
        return _REGISTRY[key]()
    except KeyError as exc:
        available = ", ".join(sorted(_REGISTRY))
        raise KeyError(f"Unknown activation {name!r}. Available activations: {available}") from exc


def names() -> Iterable[str]:
    return sorted(_REGISTRY)


__all__ = [
    "Activation",
    "ReLU",
    "Sigmoid",
    "Tanh",
    "Linear",
    "Softmax",
    "sigmoid",
    "softmax",
    "get_activation",
    "names",
]
