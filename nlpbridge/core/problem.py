"""Constrained optimization problem built around a differentiable cost.

A :class:`Problem` holds the cost function, an optional starting point,
per-variable bounds and scales, and a list of constraints. Each constraint
keeps one ``(lower, upper)`` interval and one scale per output. Functions
are stored as shared references, so the caller may keep evaluating them.

Example
-------
>>> import numpy as np
>>> from nlpbridge.core.function import DifferentiableFunction
>>> cost = DifferentiableFunction(2, 1, "cost")
>>> problem = Problem(cost)
>>> problem.argument_bounds = [(0.0, 10.0), (0.0, 10.0)]
>>> problem.starting_point = np.zeros(2)
>>> problem.argument_bounds[1]
array([ 0., 10.])
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

import numpy as np

from ..errors import ConfigurationError, ShapeError
from .buffers import Array, as_input_matrix, as_input_vector, new_vector
from .function import DifferentiableFunction, require_capability
from .handles import TAG_PROBLEM, register_tag


def _frozen(arr: Array) -> Array:
    out = np.array(arr, dtype=np.float64, copy=True)
    out.flags.writeable = False
    return out


def _check_intervals(bounds: Array, what: str) -> None:
    if np.isnan(bounds).any():
        raise ShapeError(f"{what} contain NaN")
    bad = np.nonzero(bounds[:, 0] > bounds[:, 1])[0]
    if bad.size:
        raise ShapeError(f"{what} have lower > upper at rows {bad.tolist()}")


@dataclass(frozen=True)
class Constraint:
    """A differentiable constraint ``lower <= function(x) <= upper``."""

    function: DifferentiableFunction
    bounds: Array
    scales: Array

    @property
    def output_size(self) -> int:
        return self.function.output_size

    @property
    def is_equality(self) -> Array:
        return self.bounds[:, 0] == self.bounds[:, 1]

    def violation(self, values: Array) -> Array:
        """Per-output distance from ``values`` to the admissible intervals."""
        below = self.bounds[:, 0] - values
        above = values - self.bounds[:, 1]
        return np.maximum(np.maximum(below, above), 0.0)


@dataclass(frozen=True)
class Scaling:
    """
    Scale factors of a problem as seen by a backend.

    A backend iterates on ``y = x * arguments`` and on constraint values
    multiplied by ``constraints``. Every factor is positive and finite.
    """

    arguments: Array
    constraints: Array

    def scale(self, x: Array) -> Array:
        return x * self.arguments

    def unscale(self, y: Array) -> Array:
        return y / self.arguments

    def argument_intervals(self, bounds: Array) -> Array:
        """Argument ``(lower, upper)`` rows in scaled space; infinite ends stay infinite."""
        return bounds * self.arguments[:, None]

    def constraint_intervals(self, bounds: Array) -> Array:
        return bounds * self.constraints[:, None]


class Problem:
    """
    Nonlinear program: minimize ``cost(x)`` subject to bounds and constraints.

    Parameters
    ----------
    cost:
        Differentiable cost function. Vector-valued costs are accepted here;
        backends that minimize a scalar reject them when the solver is created.

    Raises
    ------
    CapabilityError
        If ``cost`` cannot provide gradients.
    """

    def __init__(self, cost: DifferentiableFunction) -> None:
        require_capability(cost, "gradient", "cost function")
        n = cost.input_size
        self._cost = cost
        self._starting_point: Optional[Array] = None
        self._bounds = np.tile(np.array([-np.inf, np.inf]), (n, 1))
        self._scales = np.ones(n, dtype=np.float64)
        self._constraints: List[Constraint] = []

    @property
    def cost(self) -> DifferentiableFunction:
        return self._cost

    @property
    def input_size(self) -> int:
        return self._cost.input_size

    @property
    def starting_point(self) -> Optional[Array]:
        if self._starting_point is None:
            return None
        return self._starting_point.copy()

    @starting_point.setter
    def starting_point(self, value: Any) -> None:
        if value is None:
            self._starting_point = None
            return
        self._starting_point = np.array(
            as_input_vector(value, self.input_size, "starting point"), copy=True
        )

    @property
    def argument_bounds(self) -> Array:
        """``(input_size, 2)`` array of ``(lower, upper)`` rows."""
        return self._bounds.copy()

    @argument_bounds.setter
    def argument_bounds(self, value: Any) -> None:
        bounds = np.array(
            as_input_matrix(value, self.input_size, 2, "argument bounds"), copy=True
        )
        _check_intervals(bounds, "argument bounds")
        self._bounds = bounds

    @property
    def argument_scales(self) -> Array:
        return self._scales.copy()

    @argument_scales.setter
    def argument_scales(self, value: Any) -> None:
        self._scales = np.array(
            as_input_vector(value, self.input_size, "argument scales"), copy=True
        )

    @property
    def constraints(self) -> Tuple[Constraint, ...]:
        return tuple(self._constraints)

    @property
    def constraints_output_size(self) -> int:
        return sum(c.output_size for c in self._constraints)

    @property
    def scaled(self) -> Scaling:
        """
        Argument and concatenated constraint scales, checked for use by a backend.

        Raises
        ------
        ConfigurationError
            If a scale is zero, negative or not finite.
        """
        if self._constraints:
            constraint_scales = np.concatenate([c.scales for c in self._constraints])
        else:
            constraint_scales = new_vector(0)
        for what, values in (
            ("argument scales", self._scales),
            ("constraint scales", constraint_scales),
        ):
            bad = np.nonzero(~(np.isfinite(values) & (values > 0)))[0]
            if bad.size:
                raise ConfigurationError(
                    f"{what} must be positive and finite, invalid at {bad.tolist()}"
                )
        return Scaling(_frozen(self._scales), _frozen(constraint_scales))

    def has_finite_bounds(self) -> bool:
        return bool(np.isfinite(self._bounds).any())

    def add_constraint(
        self,
        function: DifferentiableFunction,
        bounds: Any,
        scales: Any = None,
    ) -> Constraint:
        """
        Append a constraint; the problem is unchanged if validation fails.

        Parameters
        ----------
        function:
            Differentiable constraint function sharing the cost's input size.
        bounds:
            Either one ``(min, max)`` pair, accepted only when the constraint
            has output size 1, or an ``(output_size, 2)`` array of intervals.
        scales:
            Optional per-output scales, defaulting to 1.

        Raises
        ------
        CapabilityError
            If ``function`` is not differentiable.
        ShapeError
            If sizes do not match.
        """
        require_capability(function, "gradient", "constraint")
        if function.input_size != self.input_size:
            raise ShapeError(
                f"constraint {function.label} has input size {function.input_size}, "
                f"expected {self.input_size}"
            )
        m = function.output_size
        try:
            rank = np.ndim(bounds)
        except ValueError as exc:
            raise ShapeError(
                f"constraint bounds of {function.label} must be a (min, max) pair "
                f"or an ({m}, 2) array: {exc}"
            ) from exc
        if rank == 1:
            if m != 1:
                raise ShapeError(
                    "a single (min, max) pair is only valid for constraints of "
                    f"output size 1, {function.label} has output size {m}"
                )
            pair = as_input_vector(bounds, 2, "constraint bounds")
            intervals = pair.reshape(1, 2).copy()
        else:
            intervals = np.array(
                as_input_matrix(bounds, m, 2, "constraint bounds"), copy=True
            )
        _check_intervals(intervals, "constraint bounds")
        if scales is None:
            scale_values = np.ones(m, dtype=np.float64)
        else:
            scale_values = as_input_vector(scales, m, "constraint scales")
        constraint = Constraint(function, _frozen(intervals), _frozen(scale_values))
        self._constraints.append(constraint)
        return constraint

    def evaluate_constraints(self, x: Any) -> Array:
        """Concatenated values of every constraint at ``x``."""
        if not self._constraints:
            return new_vector(0)
        return np.concatenate([c.function(x) for c in self._constraints])

    def constraint_violation(self, x: Any, values: Optional[Array] = None) -> float:
        """Infinity norm of the bound and constraint violations at ``x``."""
        x = as_input_vector(x, self.input_size, "argument")
        worst = 0.0
        if self.input_size:
            below = self._bounds[:, 0] - x
            above = x - self._bounds[:, 1]
            worst = float(max(np.max(below), np.max(above), 0.0))
        if values is None:
            values = self.evaluate_constraints(x)
        start = 0
        for c in self._constraints:
            chunk = values[start:start + c.output_size]
            start += c.output_size
            worst = max(worst, float(np.max(c.violation(chunk))))
        return worst

    def __str__(self) -> str:
        lines = [
            "Problem:",
            f"  cost: {self._cost.label} (input size {self.input_size})",
            f"  starting point: {'unset' if self._starting_point is None else self._starting_point.tolist()}",
            f"  argument bounds: {self._bounds.tolist()}",
            f"  argument scales: {self._scales.tolist()}",
            f"  constraints: {len(self._constraints)}",
        ]
        for c in self._constraints:
            lines.append(f"    {c.function.label}: bounds {c.bounds.tolist()}, scales {c.scales.tolist()}")
        return "\n".join(lines)


register_tag(TAG_PROBLEM, Problem)


__all__ = ["Constraint", "Problem", "Scaling"]
