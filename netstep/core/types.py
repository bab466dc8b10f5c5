"""Core typing contracts for netstep."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple, Union

import numpy as np

Array = np.ndarray
Value = Union[Array, float]


@dataclass(frozen=True)
class LayerConfig:
    """Width and activation of one dense layer."""

    neurons: int
    activation: str = "relu"


@dataclass(frozen=True)
class NetworkConfig:
    """Full description of a network plus its training hyper-parameters."""

    input_size: int
    output_size: int
    layers: Sequence[LayerConfig]
    loss_function: str = "mse"
    optimizer: str = "sgd"
    learning_rate: float = 0.01
    epochs: int = 100


@dataclass(frozen=True)
class ComputationDetail:
    """Human-readable account of one computation, used for display."""

    formula: str
    description: str
    inputs: List[Tuple[str, Value]]
    output: Value
    operation: str
    layer_index: Optional[int] = None

    def input(self, name: str) -> Value:
        for key, value in self.inputs:
            if key == name:
                return value
        raise KeyError(f"Unknown computation input: {name}")


@dataclass(frozen=True)
class Gradients:
    weight_grads: List[Array]
    bias_grads: List[Array]


@dataclass(frozen=True)
class NetworkState:
    """Deep copy of every layer's parameters at one point in time."""

    weights: List[Array]
    biases: List[Array]
    # Indexed by layer; None for layers not yet computed this iteration.
    activations: Optional[List[Optional[Array]]] = None
    gradients: Optional[Gradients] = None


@dataclass(frozen=True)
class StepSnapshot:
    """Immutable record of one debug step."""

    step_type: str
    network_state: NetworkState
    computation: ComputationDetail
    timestamp: float
    step_number: int
    layer_index: Optional[int] = None


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :func:`netstep.training.pipelines.run_pipeline`."""

    epochs: int
    final_loss: float
    metrics_path: str
    manifest_path: str
    summary_path: str = ""
    extra: dict = field(default_factory=dict)


def as_layer_configs(layers: Sequence[Any]) -> List[LayerConfig]:
    """Normalise mappings, tuples or :class:`LayerConfig` items."""

    configs: List[LayerConfig] = []
    for item in layers:
        if isinstance(item, LayerConfig):
            configs.append(item)
        elif isinstance(item, dict):
            configs.append(
                LayerConfig(
                    neurons=int(item["neurons"]),
                    activation=str(item.get("activation", "relu")),
                )
            )
        else:
            neurons, activation = item
            configs.append(LayerConfig(neurons=int(neurons), activation=str(activation)))
    return configs


__all__ = [
    "Array",
    "Value",
    "LayerConfig",
    "NetworkConfig",
    "ComputationDetail",
    "Gradients",
    "NetworkState",
    "StepSnapshot",
    "RunResult",
    "as_layer_configs",
]
