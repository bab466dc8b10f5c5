"""Dense feed-forward network built from :class:`Layer` objects."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from ..core import tensor as T
from ..core.activations import Activation, get_activation
from ..core.errors import PreconditionError, ShapeMismatchError
from ..core.types import Array, Gradients, LayerConfig, NetworkState, as_layer_configs
from .losses import Loss, get_loss

GRAD_CLIP = 5.0


@dataclass
class LayerCache:
    """Values produced by ``forward``/``backward`` and consumed by the next call."""

    last_input: Optional[Array] = None
    pre_activation: Optional[Array] = None
    weight_grad: Optional[Array] = None
    bias_grad: Optional[Array] = None

    def copy(self) -> "LayerCache":
        def _copy(value: Optional[Array]) -> Optional[Array]:
            return None if value is None else value.copy()

        return LayerCache(
            last_input=_copy(self.last_input),
            pre_activation=_copy(self.pre_activation),
            weight_grad=_copy(self.weight_grad),
            bias_grad=_copy(self.bias_grad),
        )


class Layer:
    """Fully connected layer computing ``activation(x @ W^T + b)``."""

    def __init__(
        self,
        input_size: int,
        output_size: int,
        activation: str = "relu",
        rng: np.random.Generator | None = None,
    ) -> None:
        if input_size < 1 or output_size < 1:
            raise ValueError("Layer sizes must be positive")
        rng = rng if rng is not None else np.random.default_rng()
        self.input_size = int(input_size)
        self.output_size = int(output_size)
        self.activation_type = str(activation).lower()
        self.activation: Activation = get_activation(self.activation_type)
        # He for ReLU, Xavier/Glorot otherwise
        if self.activation_type == "relu":
            limit = np.sqrt(2.0 / input_size)
        else:
            limit = np.sqrt(6.0 / (input_size + output_size))
        self.weights: Array = rng.uniform(-limit, limit, size=(output_size, input_size))
        self.bias: Array = np.zeros(output_size, dtype=np.float64)
        self.cache = LayerCache()

    @property
    def last_input(self) -> Optional[Array]:
        return self.cache.last_input

    @property
    def pre_activation(self) -> Optional[Array]:
        return self.cache.pre_activation

    @property
    def weight_grad(self) -> Optional[Array]:
        return self.cache.weight_grad

    @property
    def bias_grad(self) -> Optional[Array]:
        return self.cache.bias_grad

    def forward(self, inputs: Array) -> Array:
        z = T.broadcast_add(T.matmul(inputs, T.transpose(self.weights)), self.bias)
        self.cache.last_input = inputs
        self.cache.pre_activation = z
        return self.activation.forward(z)

    def backward(self, output_grad: Array) -> Array:
        """Cache dL/dW and dL/db and return dL/dx for the layer below."""

        if self.cache.last_input is None or self.cache.pre_activation is None:
            raise PreconditionError("forward must precede backward")
        if output_grad.shape != self.cache.pre_activation.shape:
            raise ShapeMismatchError(
                f"backward: gradient {output_grad.shape} does not match layer output "
                f"{self.cache.pre_activation.shape}"
            )
        delta = self.activation.backward(output_grad, self.cache.pre_activation)
        self.cache.weight_grad = T.matmul(T.transpose(delta), self.cache.last_input)
        self.cache.bias_grad = T.col_sum(delta)
        return T.matmul(delta, self.weights)

    def update_weights(self, learning_rate: float) -> None:
        """Plain gradient descent on clipped gradients; no-op without gradients."""

        if self.cache.weight_grad is None or self.cache.bias_grad is None:
            return
        weight_grad = T.clip(self.cache.weight_grad, GRAD_CLIP)
        bias_grad = T.clip(self.cache.bias_grad, GRAD_CLIP)
        with np.errstate(invalid="ignore", over="ignore"):
            weights = self.weights - learning_rate * weight_grad
            bias = self.bias - learning_rate * bias_grad
        self.weights = np.where(np.isfinite(weights), weights, 0.0)
        self.bias = np.where(np.isfinite(bias), bias, self.bias)

    def parameter_count(self) -> int:
        return int(self.weights.size + self.bias.size)

    def __repr__(self) -> str:
        return f"Layer({self.input_size} -> {self.output_size}, {self.activation_type})"


class Network:
    """Ordered stack of layers plus a loss function."""

    def __init__(
        self,
        layer_configs: Sequence[LayerConfig | dict],
        loss: str | Loss = "mse",
        input_size: int = 1,
        *,
        seed: int | None = None,
    ) -> None:
        configs = as_layer_configs(layer_configs)
        if not configs:
            raise ValueError("A network needs at least one layer")
        self.input_size = int(input_size)
        self.loss_function: Loss = get_loss(loss) if isinstance(loss, str) else loss
        self.configs: List[LayerConfig] = configs
        rng = np.random.default_rng(seed)
        self.layers: List[Layer] = []
        width = self.input_size
        for config in configs:
            self.layers.append(Layer(width, config.neurons, config.activation, rng))
            width = config.neurons

    @property
    def output_size(self) -> int:
        return self.layers[-1].output_size

    def describe(self) -> List[int]:
        return [self.input_size] + [layer.output_size for layer in self.layers]

    def parameter_count(self) -> int:
        return sum(layer.parameter_count() for layer in self.layers)

    def forward(self, inputs: Array) -> Array:
        output = inputs
        for layer in self.layers:
            output = layer.forward(output)
        return output

    predict = forward

    def forward_layer(self, index: int, inputs: Array) -> Array:
        return self.layers[index].forward(inputs)

    def backward(self, grad: Array) -> Array:
        current = grad
        for layer in reversed(self.layers):
            current = layer.backward(current)
        return current

    def train(self, x: Array, y: Array, epochs: int, learning_rate: float) -> List[float]:
        """Vanilla gradient descent for ``epochs`` full-batch iterations."""

        history: List[float] = []
        for _ in range(int(epochs)):
            predictions = self.forward(x)
            history.append(self.loss_function.compute(predictions, y))
            self.backward(self.loss_function.gradient(predictions, y))
            for layer in self.layers:
                layer.update_weights(learning_rate)
        return history

    def predict_1d(self, x: float) -> float:
        output = self.forward(np.array([[float(x)]], dtype=np.float64))
        return float(output[0, 0])

    def predict_2d(
        self,
        x_min: float,
        x_max: float,
        y_min: float,
        y_max: float,
        resolution: int = 50,
    ) -> Array:
        """Evaluate the first output column on a ``resolution x resolution`` grid.

        Row ``i`` holds ``y = y_min + i * (y_max - y_min) / resolution`` and
        column ``j`` holds the matching ``x``; the upper bounds are excluded.
        """

        if resolution < 1:
            raise ValueError("resolution must be positive")
        steps = np.arange(resolution, dtype=np.float64)
        xs = x_min + steps * (x_max - x_min) / resolution
        ys = y_min + steps * (y_max - y_min) / resolution
        grid_x, grid_y = np.meshgrid(xs, ys)
        inputs = np.column_stack([grid_x.ravel(), grid_y.ravel()])
        output = self.forward(inputs)
        return output[:, 0].reshape(resolution, resolution)

    def get_state(self) -> NetworkState:
        return NetworkState(
            weights=[layer.weights.copy() for layer in self.layers],
            biases=[layer.bias.copy() for layer in self.layers],
        )

    def get_gradients(self) -> Optional[Gradients]:
        if any(layer.weight_grad is None or layer.bias_grad is None for layer in self.layers):
            return None
        return Gradients(
            weight_grads=[layer.weight_grad.copy() for layer in self.layers],
            bias_grads=[layer.bias_grad.copy() for layer in self.layers],
        )

    def load_state(self, state: NetworkState) -> None:
        if len(state.weights) != len(self.layers) or len(state.biases) != len(self.layers):
            raise ShapeMismatchError("state does not match the number of layers")
        for layer, weights, bias in zip(self.layers, state.weights, state.biases):
            if weights.shape != layer.weights.shape or bias.shape != layer.bias.shape:
                raise ShapeMismatchError(f"state shapes do not match {layer!r}")
            layer.weights = weights.copy()
            layer.bias = bias.copy()

    def __repr__(self) -> str:
        return f"Network(dims={self.describe()}, loss={self.loss_function.name})"


__all__ = ["GRAD_CLIP", "Layer", "LayerCache", "Network"]
