"""Exception hierarchy for netstep."""

from __future__ import annotations


class NetstepError(Exception):
    """Base class for errors raised by netstep."""


class ShapeMismatchError(NetstepError, ValueError):
    """Raised when tensor operands have incompatible or malformed shapes."""


class PreconditionError(NetstepError, RuntimeError):
    """Raised when an operation is called out of its required order."""


class ExpressionSyntaxError(NetstepError, ValueError):
    """Raised by the expression parser on malformed input."""

    def __init__(self, message: str, position: int | None = None) -> None:
        if position is not None:
            message = f"{message} (at position {position})"
        super().__init__(message)
        self.position = position


__all__ = [
    "NetstepError",
    "ShapeMismatchError",
    "PreconditionError",
    "ExpressionSyntaxError",
]
