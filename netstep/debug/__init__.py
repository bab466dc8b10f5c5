"""Single-step debugger for one training iteration."""

from .engine import PHASES, DebugEngine

__all__ = ["DebugEngine", "PHASES"]
