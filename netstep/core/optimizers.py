"""Optimizers converting raw gradients into parameter updates.

Running statistics are kept per *slot*, where a slot is the position of the
layer that owns the parameters.  Two layers with identical shapes therefore
never share moment estimates.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Type

import numpy as np

from .errors import ShapeMismatchError
from .types import Array


@dataclass
class MomentState:
    """Running moments for one layer's weights and bias."""

    m: Optional[Array] = None
    v: Optional[Array] = None
    bias_m: Optional[Array] = None
    bias_v: Optional[Array] = None


def _check_pair(params: Array, grads: Array) -> None:
    if params.shape != grads.shape:
        raise ShapeMismatchError(
            f"optimizer: parameters {params.shape} and gradients {grads.shape} differ"
        )


def _fresh(current: Optional[Array], like: Array) -> Array:
    if current is None or current.shape != like.shape:
        return np.zeros_like(like, dtype=np.float64)
    return current


class Optimizer:
    """Common contract: ``update``, ``update_bias``, ``reset`` and metadata."""

    key = "optimizer"
    name = "Optimizer"
    formula = ""

    def __init__(self) -> None:
        self._states: Dict[int, MomentState] = {}

    def state(self, slot: int) -> MomentState:
        if slot not in self._states:
            self._states[slot] = MomentState()
        return self._states[slot]

    def update(self, weights: Array, gradients: Array, learning_rate: float, slot: int = 0) -> Array:
        raise NotImplementedError

    def update_bias(
        self, bias: Array, gradients: Array, learning_rate: float, slot: int = 0
    ) -> Array:
        raise NotImplementedError

    def reset(self) -> None:
        self._states.clear()

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class SGD(Optimizer):
    key = "sgd"
    name = "SGD (Stochastic Gradient Descent)"
    formula = "w = w - lr × ∇w\nb = b - lr × ∇b"

    def update(self, weights, gradients, learning_rate, slot=0):
        _check_pair(weights, gradients)
        return weights - learning_rate * gradients

    def update_bias(self, bias, gradients, learning_rate, slot=0):
        _check_pair(bias, gradients)
        return bias - learning_rate * gradients


class Adam(Optimizer):
    """Adam with bias-corrected moments.

    The step counter ``t`` is shared and advances on every ``update`` *and*
    every ``update_bias`` call, so one training iteration over ``L`` layers
    advances it by ``2 * L``.
    """

    key = "adam"
    name = "Adam (Adaptive Moment Estimation)"
    formula = (
        "m = β₁×m + (1-β₁)×∇w\n"
        "v = β₂×v + (1-β₂)×∇w²\n"
        "m̂ = m / (1-β₁ᵗ)\n"
        "v̂ = v / (1-β₂ᵗ)\n"
        "w = w - lr × m̂ / (√v̂ + ε)"
    )

    def __init__(self, beta1: float = 0.9, beta2: float = 0.999, epsilon: float = 1e-8) -> None:
        super().__init__()
        self.beta1 = beta1
        self.beta2 = beta2
        self.epsilon = epsilon
        self.t = 0

    def _step(self, params: Array, grads: Array, m: Array, v: Array, lr: float):
        self.t += 1
        m = self.beta1 * m + (1.0 - self.beta1) * grads
        v = self.beta2 * v + (1.0 - self.beta2) * grads * grads
        m_hat = m / (1.0 - self.beta1**self.t)
        v_hat = v / (1.0 - self.beta2**self.t)
        return params - lr * m_hat / (np.sqrt(v_hat) + self.epsilon), m, v

    def update(self, weights, gradients, learning_rate, slot=0):
        _check_pair(weights, gradients)
        st = self.state(slot)
        new, st.m, st.v = self._step(
            weights, gradients, _fresh(st.m, gradients), _fresh(st.v, gradients), learning_rate
        )
        return new

    def update_bias(self, bias, gradients, learning_rate, slot=0):
        _check_pair(bias, gradients)
        st = self.state(slot)
        new, st.bias_m, st.bias_v = self._step(
            bias,
            gradients,
            _fresh(st.bias_m, gradients),
            _fresh(st.bias_v, gradients),
            learning_rate,
        )
        return new

    def reset(self) -> None:
        super().reset()
        self.t = 0


class RMSprop(Optimizer):
    key = "rmsprop"
    name = "RMSprop (Root Mean Square Propagation)"
    formula = "v = β×v + (1-β)×∇w²\nw = w - lr × ∇w / (√v + ε)"

    def __init__(self, beta: float = 0.9, epsilon: float = 1e-8) -> None:
        super().__init__()
        self.beta = beta
        self.epsilon = epsilon

    def _step(self, params: Array, grads: Array, v: Array, lr: float):
        v = self.beta * v + (1.0 - self.beta) * grads * grads
        return params - lr * grads / (np.sqrt(v) + self.epsilon), v

    def update(self, weights, gradients, learning_rate, slot=0):
        _check_pair(weights, gradients)
        st = self.state(slot)
        new, st.v = self._step(weights, gradients, _fresh(st.v, gradients), learning_rate)
        return new

    def update_bias(self, bias, gradients, learning_rate, slot=0):
        _check_pair(bias, gradients)
        st = self.state(slot)
        new, st.bias_v = self._step(bias, gradients, _fresh(st.bias_v, gradients), learning_rate)
        return new


_REGISTRY: Dict[str, Type[Optimizer]] = {cls.key: cls for cls in (SGD, Adam, RMSprop)}


def get_optimizer(name: str) -> Optimizer:
    key = str(name).lower()
    try:
        return _REGISTRY[key]()
    except KeyError as exc:
        available = ", ".join(sorted(_REGISTRY))
        raise KeyError(f"Unknown optimizer {name!r}. Available optimizers: {available}") from exc


def names() -> Iterable[str]:
    return sorted(_REGISTRY)


__all__ = [
    "MomentState",
    "Optimizer",
    "SGD",
    "Adam",
    "RMSprop",
    "get_optimizer",
    "names",
]
