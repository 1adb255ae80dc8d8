"""Finite-difference derivatives for functions that only provide values.

Two rules are available:

* ``"simple"``: forward differences, ``(f(x + h e_j) - f(x)) / h``.
* ``"five-points"``: ``(-f(x+2h) + 8 f(x+h) - 8 f(x-h) + f(x-2h)) / (12 h)``.

Both build the whole Jacobian column by column, so one pass serves every
output row.
"""

from __future__ import annotations

from typing import Callable, Dict

import numpy as np

from ..errors import CapabilityError, ConfigurationError
from .buffers import Array, new_vector
from .function import DifferentiableFunction, Function

VectorFunction = Callable[[Array], Array]

DEFAULT_EPSILON = 1e-8


def forward_difference_jacobian(fun: VectorFunction, x: Array, epsilon: float) -> Array:
    """Forward-difference Jacobian of ``fun`` at ``x``.

    Parameters
    ----------
    fun:
        Vector function returning a 1-D array.
    x:
        Point of evaluation.
    epsilon:
        Absolute step size.
    """
    if epsilon <= 0:
        raise ValueError("epsilon must be positive")
    x = np.asarray(x, dtype=float)
    fx = np.asarray(fun(x), dtype=float)
    jac = np.zeros((fx.size, x.size), dtype=float)
    point = x.copy()
    for j in range(x.size):
        point[j] = x[j] + epsilon
        jac[:, j] = (np.asarray(fun(point), dtype=float) - fx) / epsilon
        point[j] = x[j]
    return jac


def five_point_jacobian(fun: VectorFunction, x: Array, epsilon: float) -> Array:
    """Five-point stencil Jacobian of ``fun`` at ``x``."""
    if epsilon <= 0:
        raise ValueError("epsilon must be positive")
    x = np.asarray(x, dtype=float)
    point = x.copy()
    columns = []
    for j in range(x.size):
        values = []
        for step in (2.0, 1.0, -1.0, -2.0):
            point[j] = x[j] + step * epsilon
            values.append(np.asarray(fun(point), dtype=float))
        point[j] = x[j]
        f_p2, f_p1, f_m1, f_m2 = values
        columns.append((-f_p2 + 8.0 * f_p1 - 8.0 * f_m1 + f_m2) / (12.0 * epsilon))
    if not columns:
        return np.zeros((np.asarray(fun(x)).size, 0), dtype=float)
    return np.stack(columns, axis=1)


RULES: Dict[str, Callable[[VectorFunction, Array, float], Array]] = {
    "simple": forward_difference_jacobian,
    "five-points": five_point_jacobian,
}


class FiniteDifferenceGradient(DifferentiableFunction):
    """Differentiable view of ``function`` with finite-difference derivatives.

    The wrapped function is shared, not owned: it can still be evaluated
    elsewhere while this wrapper exists.
    """

    kind = "finite-difference function"

    def __init__(
        self,
        function: Function,
        epsilon: float = DEFAULT_EPSILON,
        rule: str = "simple",
        name: str = "",
    ) -> None:
        if not isinstance(function, Function):
            raise CapabilityError(
                f"finite differences need a Function, got {type(function).__name__}"
            )
        if rule not in RULES:
            raise ConfigurationError(
                f"unknown finite-difference rule {rule!r}; expected one of {sorted(RULES)}"
            )
        if not epsilon > 0:
            raise ConfigurationError(f"epsilon must be positive, got {epsilon}")
        super().__init__(
            function.input_size,
            function.output_size,
            name or f"{function.label} ({rule} finite differences)",
        )
        self._function = function
        self._epsilon = float(epsilon)
        self._rule = rule

    @property
    def function(self) -> Function:
        return self._function

    @property
    def epsilon(self) -> float:
        return self._epsilon

    @property
    def rule(self) -> str:
        return self._rule

    def _evaluate(self, x: Array) -> Array:
        return self._function.compute(new_vector(self.output_size), x)

    def impl_compute(self, result: Array, x: Array) -> None:
        self._function.compute(result, x)

    def impl_gradient(self, result: Array, x: Array, function_id: int) -> None:
        result[...] = RULES[self._rule](self._evaluate, x, self._epsilon)[function_id]

    def impl_jacobian(self, result: Array, x: Array) -> None:
        result[...] = RULES[self._rule](self._evaluate, x, self._epsilon)


__all__ = [
    "DEFAULT_EPSILON",
    "FiniteDifferenceGradient",
    "RULES",
    "five_point_jacobian",
    "forward_difference_jacobian",
]
