"""
Step-length selection along a search direction.

Both searches start from a point the backend has already evaluated, so they
take its value and gradient instead of recomputing them, and hand back the
accepted point together with its value. A failed search returns the start
point unchanged with ``accepted`` set to False.
"""

from __future__ import annotations

from typing import Callable, NamedTuple, Optional

import numpy as np

from ..core.buffers import Array

Objective = Callable[[Array], float]
Gradient = Callable[[Array], Array]
Projection = Callable[[Array], Array]


class Step(NamedTuple):
    """Outcome of a line search."""

    accepted: bool
    length: float
    x: Array
    value: float


def armijo_step(
    objective: Objective,
    x: Array,
    value: float,
    gradient: Array,
    direction: Array,
    *,
    length: float = 1.0,
    shrink: float = 0.5,
    sufficient_decrease: float = 1e-4,
    max_trials: int = 50,
    project: Optional[Projection] = None,
) -> Step:
    """
    Backtrack until the Armijo condition holds.

    With ``project`` the trial points are ``project(x + t * direction)`` and
    the expected decrease is measured along the actual displacement, which
    gives the projected search used by bound-constrained backends.

    Non-finite trial values count as insufficient decrease.
    """
    if not 0.0 < sufficient_decrease < 1.0:
        raise ValueError("sufficient_decrease must lie in (0, 1)")
    if not 0.0 < shrink < 1.0:
        raise ValueError("shrink must lie in (0, 1)")
    t = float(length)
    for _ in range(max_trials):
        trial = x + t * direction
        if project is not None:
            trial = project(trial)
        trial_value = objective(trial)
        expected = sufficient_decrease * float(gradient.dot(trial - x))
        if np.isfinite(trial_value) and trial_value <= value + expected:
            return Step(True, t, trial, float(trial_value))
        t *= shrink
    return Step(False, 0.0, x, value)


class _Ray:
    """The objective restricted to ``x + t * direction``."""

    def __init__(self, objective: Objective, gradient_of: Gradient, x: Array, direction: Array):
        self._objective = objective
        self._gradient_of = gradient_of
        self._x = x
        self._direction = direction

    def point(self, t: float) -> Array:
        return self._x + t * self._direction

    def value(self, t: float) -> float:
        v = self._objective(self.point(t))
        return float(v) if np.isfinite(v) else np.inf

    def slope(self, t: float) -> float:
        return float(self._gradient_of(self.point(t)).dot(self._direction))


def wolfe_step(
    objective: Objective,
    gradient_of: Gradient,
    x: Array,
    value: float,
    gradient: Array,
    direction: Array,
    *,
    length: float = 1.0,
    sufficient_decrease: float = 1e-4,
    curvature: float = 0.9,
    max_trials: int = 40,
) -> Step:
    """
    Find a step satisfying the strong Wolfe conditions.

    The step doubles until a bracket ``(low, high)`` containing a Wolfe point
    is known, then the bracket is bisected. ``low`` always satisfies
    sufficient decrease with a negative slope, so when the trials run out the
    search falls back to it if it moved at all.

    Parameters
    ----------
    objective, gradient_of:
        Value and gradient of the function being minimized.
    x, value, gradient:
        Start point, its value and its gradient.
    direction:
        Descent direction.

    Raises
    ------
    ValueError
        If the constants are out of order or ``direction`` is not a descent
        direction.
    """
    if not 0.0 < sufficient_decrease < curvature < 1.0:
        raise ValueError("require 0 < sufficient_decrease < curvature < 1")
    slope0 = float(gradient.dot(direction))
    if slope0 >= 0.0:
        raise ValueError("search direction is not a descent direction")
    ray = _Ray(objective, gradient_of, x, direction)

    low, low_value = 0.0, float(value)
    high = np.inf
    t = float(length)
    for _ in range(max_trials):
        trial_value = ray.value(t)
        if trial_value > value + sufficient_decrease * t * slope0 or trial_value >= low_value:
            high = t
        else:
            slope = ray.slope(t)
            if abs(slope) <= -curvature * slope0:
                return Step(True, t, ray.point(t), trial_value)
            if slope > 0.0:
                high = t
            else:
                low, low_value = t, trial_value
        if np.isinf(high):
            t *= 2.0
        else:
            if high - low <= 1e-12 * max(1.0, high):
                break
            t = 0.5 * (low + high)
    if low > 0.0:
        return Step(True, low, ray.point(low), low_value)
    return Step(False, 0.0, x, float(value))


__all__ = ["Step", "armijo_step", "wolfe_step"]
