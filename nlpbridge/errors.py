"""Exception hierarchy for nlpbridge.

Every error derives from :class:`NlpBridgeError` and from the builtin it
refines, so callers may catch either ``ShapeError`` or plain ``ValueError``.
"""

from __future__ import annotations

import traceback
from typing import NamedTuple, Optional


class NlpBridgeError(Exception):
    """Base class for all nlpbridge errors."""


class UsageError(NlpBridgeError):
    """Wrong argument, unbound capability or illegal call sequence."""


class ShapeError(UsageError, ValueError):
    """A buffer or array has the wrong length, rank or shape."""


class BufferTypeError(UsageError, TypeError):
    """An object cannot be viewed as a float64 buffer."""


class CapabilityError(UsageError, TypeError):
    """A function lacks a capability required by the operation."""


class CallbackNotBoundError(UsageError, TypeError):
    """No callable is bound for the requested capability."""


class HandleTypeError(UsageError, TypeError):
    """An opaque handle carries an unexpected tag or was already released."""


class NotCallableError(UsageError, TypeError):
    """An object bound into a callback slot is not callable."""


class UnsupportedValueError(UsageError, TypeError):
    """A parameter value has a type outside the supported variant."""


class HessianNotImplementedError(NlpBridgeError, NotImplementedError):
    """The Hessian of a twice-differentiable function was never provided."""


class ConfigurationError(NlpBridgeError, ValueError):
    """Inconsistent construction data (empty pool, size mismatch...)."""


class NonFiniteValueError(NlpBridgeError, FloatingPointError):
    """Debug-mode check: an evaluation produced NaN or infinite values."""


class CallSite(NamedTuple):
    """Location in foreign code where an error was raised."""

    filename: str
    lineno: int
    function: str

    def __str__(self) -> str:
        return f"{self.filename}({self.lineno}): {self.function}"


class CallbackError(NlpBridgeError, RuntimeError):
    """A bound foreign callable raised during evaluation.

    The original exception is chained as ``__cause__``; ``origin`` points to
    the innermost frame of the foreign traceback when one is available.
    """

    def __init__(self, message: str, origin: Optional[CallSite] = None) -> None:
        super().__init__(message)
        self.origin = origin

    @classmethod
    def from_exception(cls, what: str, exc: BaseException) -> "CallbackError":
        origin = None
        frames = traceback.extract_tb(exc.__traceback__)
        if frames:
            last = frames[-1]
            origin = CallSite(last.filename, last.lineno or 0, last.name)
        message = f"Error occurred in {what}: {type(exc).__name__}: {exc}"
        if origin is not None:
            message += f"\n    at {origin}"
        return cls(message, origin)


__all__ = [
    "BufferTypeError",
    "CallSite",
    "CallbackError",
    "CallbackNotBoundError",
    "CapabilityError",
    "ConfigurationError",
    "HandleTypeError",
    "HessianNotImplementedError",
    "NlpBridgeError",
    "NonFiniteValueError",
    "NotCallableError",
    "ShapeError",
    "UnsupportedValueError",
    "UsageError",
]
