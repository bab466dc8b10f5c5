"""netstep public API."""

from .core import activations, optimizers, tensor, types  # noqa: F401
from .core.errors import ExpressionSyntaxError, NetstepError, PreconditionError, ShapeMismatchError
from .core.types import LayerConfig, NetworkConfig
from .debug import DebugEngine
from .calculator import evaluate_expression
from .training.network import Layer, Network
from .training.pipelines import load_preset, presets, run_pipeline
from .training.trainer import Trainer, TrainingControl

__version__ = "0.1.0"

__all__ = [
    "DebugEngine",
    "ExpressionSyntaxError",
    "Layer",
    "LayerConfig",
    "NetstepError",
    "Network",
    "NetworkConfig",
    "PreconditionError",
    "ShapeMismatchError",
    "Trainer",
    "TrainingControl",
    "activations",
    "evaluate_expression",
    "load_preset",
    "optimizers",
    "presets",
    "run_pipeline",
    "tensor",
    "types",
]
