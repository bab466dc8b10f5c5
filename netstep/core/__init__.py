"""Core numerical primitives for netstep."""

from . import activations, errors, optimizers, tensor, types

__all__ = ["activations", "errors", "optimizers", "tensor", "types"]
