"""Step-by-step execution engine for inspecting one training iteration.

One iteration of a network with ``L`` layers records ``2 * L + 3``
snapshots::

    forward 0 .. L-1  ->  loss  ->  loss gradient  ->  backward L-1 .. 0  ->  update

Every step appends an immutable :class:`~netstep.core.types.StepSnapshot` to a
linear history.  ``undo``/``redo`` move a cursor through that history and put
the recorded parameters (and the engine's own bookkeeping) back onto the live
network; taking a new step after an undo discards the redo tail.
"""

from __future__ import annotations

import copy
import time
import warnings
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional

import numpy as np

from ..core import tensor as T
from ..core.errors import PreconditionError, ShapeMismatchError
from ..core.optimizers import Optimizer, get_optimizer
from ..core.types import (
    Array,
    ComputationDetail,
    LayerConfig,
    NetworkConfig,
    NetworkState,
    StepSnapshot,
    as_layer_configs,
)
from ..training.network import Network

PHASES = ("idle", "forward", "loss", "backward-gradient", "backward", "update")


@dataclass
class _Checkpoint:
    """Everything needed to resume stepping from a given history position."""

    weights: List[Array]
    biases: List[Array]
    weight_grads: List[Optional[Array]]
    bias_grads: List[Optional[Array]]
    activations: List[Optional[Array]]
    pre_activations: List[Optional[Array]]
    loss: Optional[float]
    loss_gradient: Optional[Array]
    upstream: Dict[int, Array]
    iteration_done: bool
    optimizer: Optimizer = field(repr=False)


class DebugEngine:
    """Wraps a :class:`Network` and an optimizer for single-step execution."""

    def __init__(self, config: NetworkConfig, *, seed: int | None = None) -> None:
        layers = as_layer_configs(config.layers)
        if not layers:
            raise ValueError("NetworkConfig.layers must not be empty")
        if layers[-1].neurons != config.output_size:
            warnings.warn(
                f"last layer width {layers[-1].neurons} replaced by output_size "
                f"{config.output_size}",
                RuntimeWarning,
                stacklevel=2,
            )
            layers[-1] = LayerConfig(config.output_size, layers[-1].activation)
        self.config = replace(config, layers=tuple(layers))
        self._network = Network(layers, config.loss_function, config.input_size, seed=seed)
        self._optimizer_type = str(config.optimizer).lower()
        self._optimizer = get_optimizer(self._optimizer_type)
        self._optimizer.reset()

        self._input: Optional[Array] = None
        self._target: Optional[Array] = None
        self._history: List[StepSnapshot] = []
        self._checkpoints: List[_Checkpoint] = []
        self._index = -1
        self._baseline: Optional[_Checkpoint] = None
        self._reset_iteration()

    # ------------------------------------------------------------------
    # Configuration and accessors

    @property
    def network(self) -> Network:
        return self._network

    @property
    def optimizer(self) -> Optimizer:
        return self._optimizer

    @property
    def step_index(self) -> int:
        return self._index

    @property
    def total_steps(self) -> int:
        """Snapshots recorded by one full iteration."""

        return 2 * len(self._network.layers) + 3

    @property
    def can_undo(self) -> bool:
        return self._index >= 0

    @property
    def can_redo(self) -> bool:
        return self._index < len(self._history) - 1

    @property
    def current_loss(self) -> Optional[float]:
        return self._loss

    @property
    def phase(self) -> str:
        """Conceptual phase derived from the snapshot under the cursor."""

        if self._index < 0:
            return "idle"
        snapshot = self._history[self._index]
        if snapshot.step_type == "backward" and snapshot.layer_index is None:
            return "backward-gradient"
        return snapshot.step_type

    def update_config(self, config: NetworkConfig) -> None:
        """Swap in a fresh optimizer when the configured type changes."""

        if str(config.optimizer).lower() != self._optimizer_type:
            self._optimizer_type = str(config.optimizer).lower()
            self._optimizer = get_optimizer(self._optimizer_type)
            self._optimizer.reset()
        self.config = replace(self.config, optimizer=config.optimizer,
                              learning_rate=config.learning_rate, epochs=config.epochs)

    def set_data(self, inputs: Array, targets: Array) -> None:
        """Load a batch and clear the step history."""

        inputs = T.as_tensor(inputs)
        targets = T.as_tensor(targets)
        if inputs.shape[1] != self._network.input_size:
            raise ShapeMismatchError(
                f"input has {inputs.shape[1]} columns, network expects "
                f"{self._network.input_size}"
            )
        if targets.shape != (inputs.shape[0], self._network.output_size):
            raise ShapeMismatchError(
                f"target shape {targets.shape} does not match "
                f"({inputs.shape[0]}, {self._network.output_size})"
            )
        self._input = inputs
        self._target = targets
        self._reset_iteration()
        self._history = []
        self._checkpoints = []
        self._index = -1
        self._baseline = self._checkpoint()

    def get_current_state(self) -> NetworkState:
        state = self._network.get_state()
        activations = [None if a is None else a.copy() for a in self._activations]
        return NetworkState(
            weights=state.weights,
            biases=state.biases,
            activations=activations if any(a is not None for a in activations) else None,
            gradients=self._network.get_gradients(),
        )

    def get_step_history(self) -> List[StepSnapshot]:
        return self._history[: self._index + 1]

    # ------------------------------------------------------------------
    # Forward steps

    def step_forward_pre_activation(self, layer_index: int) -> ComputationDetail:
        """Describe ``z = X @ W^T + b`` for one layer without recording a step."""

        self._require_data()
        self._check_index(layer_index)
        layer = self._network.layers[layer_index]
        inputs = self._layer_input(layer_index)
        z = T.broadcast_add(T.matmul(inputs, T.transpose(layer.weights)), layer.bias)
        i = layer_index
        return ComputationDetail(
            formula=f"z{i} = X{i} × W{i}^T + b{i}",
            description=f"Forward pass - Layer {i}: Pre-activation computation",
            inputs=[(f"X{i}", inputs), (f"W{i}", layer.weights.copy()), (f"b{i}", layer.bias.copy())],
            output=z,
            operation="linear",
            layer_index=i,
        )

    def step_forward_activation(self, layer_index: int) -> ComputationDetail:
        """Run one layer forward and describe its activation, without recording a step."""

        self._require_data()
        self._check_index(layer_index)
        output = self._run_forward(layer_index)
        layer = self._network.layers[layer_index]
        i = layer_index
        symbol = layer.activation.symbol
        return ComputationDetail(
            formula=f"a{i} = {symbol}(z{i})",
            description=f"Forward pass - Layer {i}: Apply {symbol} activation",
            inputs=[(f"z{i}", self._pre_activations[i])],
            output=output,
            operation=f"activation_{layer.activation_type}",
            layer_index=i,
        )

    def step_forward_layer(self, layer_index: int) -> StepSnapshot:
        self._require_data()
        self._check_index(layer_index)
        inputs = self._layer_input(layer_index)
        output = self._run_forward(layer_index)
        layer = self._network.layers[layer_index]
        i = layer_index
        computation = ComputationDetail(
            formula=f"z{i} = X{i} × W{i}^T + b{i}\na{i} = {layer.activation.symbol}(z{i})",
            description=f"Forward pass through Layer {i}",
            inputs=[
                ("Input", inputs),
                ("Weights", layer.weights.copy()),
                ("Bias", layer.bias.copy()),
            ],
            output=output,
            operation="forward",
            layer_index=i,
        )
        return self._record("forward", computation, layer_index)

    # ------------------------------------------------------------------
    # Loss steps

    def step_compute_loss(self) -> StepSnapshot:
        self._require_data()
        self._require_open_iteration()
        for index, activation in enumerate(self._activations):
            if activation is None:
                self._run_forward(index)
        predictions = self._activations[-1]
        loss_fn = self._network.loss_function
        self._loss = loss_fn.compute(predictions, self._target)
        self._loss_gradient = None
        self._upstream = {}
        computation = ComputationDetail(
            formula=f"L = {loss_fn.display_name}(y_pred, y_true)",
            description="Compute loss",
            inputs=[("Predictions", predictions.copy()), ("Targets", self._target.copy())],
            output=self._loss,
            operation="loss",
        )
        return self._record("loss", computation)

    def step_backward_loss_gradient(self) -> StepSnapshot:
        self._require_open_iteration()
        if self._loss is None:
            raise PreconditionError("precondition not met: loss must be computed first")
        predictions = self._activations[-1]
        loss_fn = self._network.loss_function
        self._loss_gradient = loss_fn.gradient(predictions, self._target)
        self._upstream = {}
        computation = ComputationDetail(
            formula=f"∂L/∂a = ∇{loss_fn.display_name}(y_pred, y_true)",
            description="Compute loss gradient",
            inputs=[("Predictions", predictions.copy()), ("Targets", self._target.copy())],
            output=self._loss_gradient.copy(),
            operation="loss_gradient",
        )
        return self._record("backward", computation)

    # ------------------------------------------------------------------
    # Backward steps

    def step_backward_layer(self, layer_index: int) -> StepSnapshot:
        self._require_open_iteration()
        if self._loss_gradient is None:
            raise PreconditionError("precondition not met: loss gradient must be computed first")
        self._check_index(layer_index)
        expected = self._next_backward_layer()
        if expected < 0:
            raise PreconditionError("precondition not met: backward pass already complete")
        if layer_index != expected:
            raise PreconditionError(
                "precondition not met: backward pass must run in reverse order "
                f"(expected layer {expected}, got {layer_index})"
            )
        last = len(self._network.layers) - 1
        incoming = self._loss_gradient if layer_index == last else self._upstream[layer_index + 1]
        layer = self._network.layers[layer_index]
        layer_input = self._layer_input(layer_index)
        # Reinstate this iteration's cache in case the network was used for prediction
        layer.cache.last_input = layer_input
        layer.cache.pre_activation = self._pre_activations[layer_index]
        input_grad = layer.backward(incoming)
        self._upstream[layer_index] = input_grad

        i = layer_index
        computation = ComputationDetail(
            formula=(
                f"∂L/∂W{i} = (∂L/∂a{i})^T × X{i}\n"
                f"∂L/∂b{i} = sum(∂L/∂a{i})\n"
                f"∂L/∂X{i} = ∂L/∂a{i} × W{i}"
            ),
            description=f"Backward pass through Layer {i}",
            inputs=[
                (f"∂L/∂a{i}", incoming.copy()),
                (f"X{i}", layer_input.copy()),
                (f"W{i}", layer.weights.copy()),
            ],
            output=input_grad.copy(),
            operation="backward",
            layer_index=i,
        )
        return self._record("backward", computation, layer_index)

    def step_backward_complete(self) -> List[StepSnapshot]:
        """Run the remaining reverse pass, one snapshot per layer."""

        if self._loss_gradient is None:
            self.step_backward_loss_gradient()
        snapshots = []
        for index in range(self._next_backward_layer(), -1, -1):
            snapshots.append(self.step_backward_layer(index))
        return snapshots

    # ------------------------------------------------------------------
    # Update step

    def step_update_weights(self, learning_rate: float | None = None) -> StepSnapshot:
        """Apply the engine's optimizer to every layer."""

        self._require_open_iteration()
        layers = self._network.layers
        if self._next_backward_layer() >= 0 or any(
            layer.weight_grad is None or layer.bias_grad is None for layer in layers
        ):
            raise PreconditionError(
                "precondition not met: gradients must be computed before weight update"
            )
        lr = self.config.learning_rate if learning_rate is None else float(learning_rate)
        inputs = []
        for i, layer in enumerate(layers):
            old_weights = layer.weights.copy()
            old_bias = layer.bias.copy()
            layer.weights = self._optimizer.update(layer.weights, layer.weight_grad, lr, slot=i)
            layer.bias = self._optimizer.update_bias(layer.bias, layer.bias_grad, lr, slot=i)
            inputs.extend(
                [
                    (f"Old Weights {i}", old_weights),
                    (f"Weight Gradients {i}", layer.weight_grad.copy()),
                    (f"Old Bias {i}", old_bias),
                    (f"Bias Gradients {i}", layer.bias_grad.copy()),
                ]
            )
        inputs.append(("Learning Rate", lr))
        self._iteration_done = True
        computation = ComputationDetail(
            formula=self._optimizer.formula,
            description=f"Update all weights using {self._optimizer.name}",
            inputs=inputs,
            output=layers[0].weights.copy(),
            operation="update",
        )
        return self._record("update", computation)

    def step_next(self, learning_rate: float | None = None) -> StepSnapshot:
        """Take whichever step comes next in the canonical order.

        After the update step the following call starts a new iteration at
        layer 0.
        """

        self._require_data()
        if self._iteration_done:
            return self.step_forward_layer(0)
        for index, activation in enumerate(self._activations):
            if activation is None:
                return self.step_forward_layer(index)
        if self._loss is None:
            return self.step_compute_loss()
        if self._loss_gradient is None:
            return self.step_backward_loss_gradient()
        pending = self._next_backward_layer()
        if pending >= 0:
            return self.step_backward_layer(pending)
        return self.step_update_weights(learning_rate)

    # ------------------------------------------------------------------
    # History navigation

    def undo(self) -> bool:
        if self._index < 0:
            return False
        self._index -= 1
        if self._index < 0:
            self._restore(self._baseline)
        else:
            self._restore(self._checkpoints[self._index])
        return True

    def redo(self) -> bool:
        if self._index >= len(self._history) - 1:
            return False
        self._index += 1
        self._restore(self._checkpoints[self._index])
        return True

    # ------------------------------------------------------------------
    # Continuous training

    def train_one_epoch(
        self, inputs: Array, targets: Array, learning_rate: float | None = None
    ) -> float:
        """Forward, loss, backward and optimizer update in one call, without snapshots.

        The in-progress stepping iteration (if any) is discarded because the
        weights it was computed with are replaced.
        """

        lr = self.config.learning_rate if learning_rate is None else float(learning_rate)
        inputs = T.as_tensor(inputs)
        targets = T.as_tensor(targets)
        network = self._network
        predictions = network.forward(inputs)
        loss = network.loss_function.compute(predictions, targets)
        network.backward(network.loss_function.gradient(predictions, targets))
        for i, layer in enumerate(network.layers):
            if layer.weight_grad is not None and layer.bias_grad is not None:
                layer.weights = self._optimizer.update(layer.weights, layer.weight_grad, lr, slot=i)
                layer.bias = self._optimizer.update_bias(layer.bias, layer.bias_grad, lr, slot=i)
        self._reset_iteration()
        self._loss = loss
        self._iteration_done = True
        return loss

    # ------------------------------------------------------------------
    # Internal helpers

    def _reset_iteration(self) -> None:
        count = len(self._network.layers)
        self._activations: List[Optional[Array]] = [None] * count
        self._pre_activations: List[Optional[Array]] = [None] * count
        self._loss: Optional[float] = None
        self._loss_gradient: Optional[Array] = None
        self._upstream: Dict[int, Array] = {}
        self._iteration_done = False

    def _require_data(self) -> None:
        if self._input is None or self._target is None:
            raise PreconditionError("precondition not met: call set_data before stepping")

    def _require_open_iteration(self) -> None:
        self._require_data()
        if self._iteration_done:
            raise PreconditionError(
                "precondition not met: iteration complete, start a new forward pass at layer 0"
            )

    def _check_index(self, layer_index: int) -> None:
        if not 0 <= layer_index < len(self._network.layers):
            raise PreconditionError(
                f"precondition not met: layer index {layer_index} out of range"
            )

    def _layer_input(self, layer_index: int) -> Array:
        if layer_index == 0:
            return self._input
        previous = self._activations[layer_index - 1]
        if previous is None:
            raise PreconditionError(
                f"precondition not met: layer {layer_index - 1} must run forward "
                f"before layer {layer_index}"
            )
        return previous

    def _run_forward(self, layer_index: int) -> Array:
        if layer_index == 0 or self._iteration_done:
            if layer_index != 0:
                raise PreconditionError(
                    "precondition not met: iteration complete, start a new forward pass at layer 0"
                )
            self._reset_iteration()
        inputs = self._layer_input(layer_index)
        output = self._network.forward_layer(layer_index, inputs)
        count = len(self._activations)
        # Anything downstream of a re-run layer is stale
        for index in range(layer_index, count):
            self._activations[index] = None
            self._pre_activations[index] = None
        self._activations[layer_index] = output
        self._pre_activations[layer_index] = self._network.layers[layer_index].pre_activation
        self._loss = None
        self._loss_gradient = None
        self._upstream = {}
        return output

    def _next_backward_layer(self) -> int:
        if not self._upstream:
            return len(self._network.layers) - 1
        return min(self._upstream) - 1

    def _record(
        self, step_type: str, computation: ComputationDetail, layer_index: int | None = None
    ) -> StepSnapshot:
        snapshot = StepSnapshot(
            step_type=step_type,
            network_state=self.get_current_state(),
            computation=computation,
            timestamp=time.time(),
            step_number=self._index + 1,
            layer_index=layer_index,
        )
        self._index += 1
        del self._history[self._index :]
        del self._checkpoints[self._index :]
        self._history.append(snapshot)
        self._checkpoints.append(self._checkpoint())
        return snapshot

    def _checkpoint(self) -> _Checkpoint:
        layers = self._network.layers

        def _copy(value: Optional[Array]) -> Optional[Array]:
            return None if value is None else value.copy()

        return _Checkpoint(
            weights=[layer.weights.copy() for layer in layers],
            biases=[layer.bias.copy() for layer in layers],
            weight_grads=[_copy(layer.weight_grad) for layer in layers],
            bias_grads=[_copy(layer.bias_grad) for layer in layers],
            activations=[_copy(a) for a in self._activations],
            pre_activations=[_copy(z) for z in self._pre_activations],
            loss=self._loss,
            loss_gradient=_copy(self._loss_gradient),
            upstream={k: v.copy() for k, v in self._upstream.items()},
            iteration_done=self._iteration_done,
            optimizer=copy.deepcopy(self._optimizer),
        )

    def _restore(self, checkpoint: _Checkpoint) -> None:
        for i, layer in enumerate(self._network.layers):
            layer.weights = checkpoint.weights[i].copy()
            layer.bias = checkpoint.biases[i].copy()
            layer.cache.weight_grad = _maybe_copy(checkpoint.weight_grads[i])
            layer.cache.bias_grad = _maybe_copy(checkpoint.bias_grads[i])
            layer.cache.last_input = self._input if i == 0 else _maybe_copy(
                checkpoint.activations[i - 1]
            )
            layer.cache.pre_activation = _maybe_copy(checkpoint.pre_activations[i])
        self._activations = [_maybe_copy(a) for a in checkpoint.activations]
        self._pre_activations = [_maybe_copy(z) for z in checkpoint.pre_activations]
        self._loss = checkpoint.loss
        self._loss_gradient = _maybe_copy(checkpoint.loss_gradient)
        self._upstream = {k: v.copy() for k, v in checkpoint.upstream.items()}
        self._iteration_done = checkpoint.iteration_done
        self._optimizer = copy.deepcopy(checkpoint.optimizer)


def _maybe_copy(value: Optional[Array]) -> Optional[Array]:
    return None if value is None else np.array(value, copy=True)


__all__ = ["DebugEngine", "PHASES"]
