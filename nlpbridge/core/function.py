"""Function hierarchy whose evaluation slots may be bound to foreign callables.

Each level adds one derivative order::

    Function                     compute
    DifferentiableFunction       + gradient, jacobian
    TwiceDifferentiableFunction  + hessian

Every capability is an independent slot. A slot is satisfied either by a
bound callable (``bind_compute`` and friends) or by a subclass overriding the
matching ``impl_*`` method. The Jacobian has a native default that fills it
row by row from ``impl_gradient``, so binding (or overriding) the gradient
alone is enough.

Bound callables write their result in place and follow these signatures,
with all matrices in row-major order::

    compute(result, x)
    gradient(result, x, function_id)
    jacobian(result, x)
    hessian(result, x, function_id)

Example
-------
>>> import numpy as np
>>> f = DifferentiableFunction(2, 1, "sum")
>>> f.bind_compute(lambda r, x: r.__setitem__(0, x[0] + x[1]))
>>> f.bind_gradient(lambda g, x, i: g.fill(1.0))
>>> f(np.array([1.0, 2.0]))
array([3.])
>>> f.jacobian_at(np.array([1.0, 2.0]))
array([[1., 1.]])
"""

from __future__ import annotations

import operator
from typing import Any, Callable, ClassVar, Dict, FrozenSet, Optional

import numpy as np

from ..diagnostics import check_result
from ..errors import (
    CallbackError,
    CallbackNotBoundError,
    CapabilityError,
    ConfigurationError,
    HessianNotImplementedError,
    NlpBridgeError,
    NotCallableError,
    ShapeError,
)
from ..logging import get_logger
from .buffers import (
    Array,
    as_input_vector,
    as_output_matrix,
    as_output_vector,
    new_matrix,
    new_vector,
)
from .handles import TAG_FUNCTION, ForeignHandle, register_tag

logger = get_logger(__name__)

Callback = Callable[..., Any]

CAPABILITIES = ("compute", "gradient", "jacobian", "hessian")


def _check_size(value: Any, what: str, minimum: int) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{what} must be an integer, got bool")
    try:
        size = operator.index(value)
    except TypeError as exc:
        raise ConfigurationError(f"{what} must be an integer, got {value!r}") from exc
    if size < minimum:
        raise ConfigurationError(f"{what} must be >= {minimum}, got {size}")
    return size


class Function:
    """A vector-valued function ``R^input_size -> R^output_size``."""

    capabilities: ClassVar[FrozenSet[str]] = frozenset({"compute"})
    kind: ClassVar[str] = "function"

    def __init__(self, input_size: int, output_size: int, name: str = "") -> None:
        self._input_size = _check_size(input_size, "input_size", 0)
        self._output_size = _check_size(output_size, "output_size", 1)
        self._name = str(name)
        self._slots: Dict[str, ForeignHandle] = {}

    @property
    def input_size(self) -> int:
        return self._input_size

    @property
    def output_size(self) -> int:
        return self._output_size

    @property
    def name(self) -> str:
        return self._name

    @property
    def label(self) -> str:
        return self._name or f"<unnamed {self.kind}>"

    # --- capability slots ---

    @classmethod
    def has_capability(cls, capability: str) -> bool:
        return capability in cls.capabilities

    def is_bound(self, capability: str) -> bool:
        slot = self._slots.get(capability)
        return slot is not None and slot.alive

    def bound_callback(self, capability: str) -> Optional[Callback]:
        """Return the callable bound to ``capability``, or None."""
        if not self.is_bound(capability):
            return None
        return self._slots[capability].get()

    def _bind(self, capability: str, callback: Callback) -> None:
        if capability not in self.capabilities:
            raise CapabilityError(
                f"{self.label} ({self.kind}) does not support {capability}"
            )
        if not callable(callback):
            raise NotCallableError(
                f"{capability} callback must be callable, got {type(callback).__name__}"
            )
        current = self._slots.get(capability)
        if current is not None and current.holds(callback):
            return
        if current is not None:
            current.release()
        self._slots[capability] = ForeignHandle(callback)
        logger.debug("bound %s callback of %s", capability, self.label)

    def unbind(self, capability: str) -> None:
        """Release the callable bound to ``capability``, if any."""
        slot = self._slots.pop(capability, None)
        if slot is not None:
            slot.release()

    def bind_compute(self, callback: Callback) -> None:
        self._bind("compute", callback)

    def _call_slot(self, capability: str, *args: Any) -> None:
        slot = self._slots.get(capability)
        if slot is None or not slot.alive:
            raise CallbackNotBoundError(f"{capability} callback not set for {self.label}")
        try:
            slot(*args)
        except NlpBridgeError:
            raise
        except Exception as exc:
            raise CallbackError.from_exception(
                f"{capability} callback of {self.label}", exc
            ) from exc

    # --- evaluation ---

    def impl_compute(self, result: Array, x: Array) -> None:
        self._call_slot("compute", result, x)

    def compute(self, result: Array, x: Any) -> Array:
        """Evaluate into the pre-allocated ``result`` vector.

        ``result`` is left untouched if the evaluation fails.
        """
        x = as_input_vector(x, self._input_size, "argument")
        result = as_output_vector(result, self._output_size, "result")
        work = new_vector(self._output_size)
        self.impl_compute(work, x)
        check_result(work, f"compute of {self.label}")
        result[...] = work
        return result

    def __call__(self, x: Any) -> Array:
        return self.compute(new_vector(self._output_size), x)

    # --- printing ---

    def _bound_names(self) -> list[str]:
        return [c for c in CAPABILITIES if self.is_bound(c)]

    def __str__(self) -> str:
        bound = ", ".join(self._bound_names()) or "none"
        return (
            f"{self.label} ({self.kind})\n"
            f"  input size: {self._input_size}\n"
            f"  output size: {self._output_size}\n"
            f"  bound callbacks: {bound}"
        )

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(input_size={self._input_size}, "
            f"output_size={self._output_size}, name={self._name!r})"
        )


class DifferentiableFunction(Function):
    """Function with first derivatives.

    If no Jacobian callable is bound, :meth:`impl_jacobian` fills the
    Jacobian one row at a time through :meth:`impl_gradient`.
    """

    capabilities: ClassVar[FrozenSet[str]] = Function.capabilities | {
        "gradient",
        "jacobian",
    }
    kind: ClassVar[str] = "differentiable function"

    def bind_gradient(self, callback: Callback) -> None:
        self._bind("gradient", callback)

    def bind_jacobian(self, callback: Callback) -> None:
        self._bind("jacobian", callback)

    def _check_function_id(self, function_id: Any) -> int:
        try:
            index = operator.index(function_id)
        except TypeError as exc:
            raise ShapeError(f"function_id must be an integer, got {function_id!r}") from exc
        if not 0 <= index < self._output_size:
            raise ShapeError(
                f"function_id {index} out of range for output size {self._output_size}"
            )
        return index

    def impl_gradient(self, result: Array, x: Array, function_id: int) -> None:
        self._call_slot("gradient", result, x, function_id)

    def impl_jacobian(self, result: Array, x: Array) -> None:
        if self.is_bound("jacobian"):
            self._call_slot("jacobian", result, x)
            return
        for i in range(self._output_size):
            self.impl_gradient(result[i], x, i)

    def gradient(self, result: Array, x: Any, function_id: int = 0) -> Array:
        """Evaluate the gradient of output ``function_id`` into ``result``."""
        index = self._check_function_id(function_id)
        x = as_input_vector(x, self._input_size, "argument")
        result = as_output_vector(result, self._input_size, "gradient")
        work = new_vector(self._input_size)
        self.impl_gradient(work, x, index)
        check_result(work, f"gradient {index} of {self.label}")
        result[...] = work
        return result

    def jacobian(self, result: Array, x: Any) -> Array:
        """Evaluate the ``(output_size, input_size)`` Jacobian into ``result``."""
        x = as_input_vector(x, self._input_size, "argument")
        result = as_output_matrix(result, self._output_size, self._input_size, "jacobian")
        work = new_matrix(self._output_size, self._input_size)
        self.impl_jacobian(work, x)
        check_result(work, f"jacobian of {self.label}")
        result[...] = work
        return result

    def gradient_at(self, x: Any, function_id: int = 0) -> Array:
        return self.gradient(new_vector(self._input_size), x, function_id)

    def jacobian_at(self, x: Any) -> Array:
        return self.jacobian(new_matrix(self._output_size, self._input_size), x)


class TwiceDifferentiableFunction(DifferentiableFunction):
    """Differentiable function with a Hessian slot.

    No native Hessian exists: evaluating it without a bound callable (or an
    ``impl_hessian`` override) raises :class:`HessianNotImplementedError`.
    """

    capabilities: ClassVar[FrozenSet[str]] = DifferentiableFunction.capabilities | {
        "hessian"
    }
    kind: ClassVar[str] = "twice differentiable function"

    def bind_hessian(self, callback: Callback) -> None:
        self._bind("hessian", callback)

    def impl_hessian(self, result: Array, x: Array, function_id: int) -> None:
        if not self.is_bound("hessian"):
            raise HessianNotImplementedError(
                f"hessian of {self.label} is not implemented"
            )
        self._call_slot("hessian", result, x, function_id)

    def hessian(self, result: Array, x: Any, function_id: int = 0) -> Array:
        """Evaluate the ``(input_size, input_size)`` Hessian of one output."""
        index = self._check_function_id(function_id)
        x = as_input_vector(x, self._input_size, "argument")
        n = self._input_size
        result = as_output_matrix(result, n, n, "hessian")
        work = new_matrix(n, n)
        self.impl_hessian(work, x, index)
        check_result(work, f"hessian {index} of {self.label}")
        result[...] = work
        return result

    def hessian_at(self, x: Any, function_id: int = 0) -> Array:
        n = self._input_size
        return self.hessian(new_matrix(n, n), x, function_id)


def require_capability(function: Any, capability: str, what: str = "function") -> Function:
    """Check that ``function`` is a Function supporting ``capability``."""
    if not isinstance(function, Function):
        raise CapabilityError(f"{what} must be a Function, got {type(function).__name__}")
    if not function.has_capability(capability):
        raise CapabilityError(
            f"{what} {function.label} is a {function.kind} and cannot provide {capability}"
        )
    return function


register_tag(TAG_FUNCTION, Function)


__all__ = [
    "CAPABILITIES",
    "DifferentiableFunction",
    "Function",
    "TwiceDifferentiableFunction",
    "require_capability",
]
