"""Per-iteration snapshot handed to iteration callbacks."""

from __future__ import annotations

from typing import Any, Mapping, Optional

import numpy as np

from ..errors import UnsupportedValueError
from .buffers import Array, as_input_vector
from .handles import TAG_SOLVER_STATE, register_tag
from .parameters import StateParameterMap

STOP_PARAMETER = "stop"


def _optional_float(value: Any, what: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, (bool, np.bool_)) or not isinstance(
        value, (int, float, np.integer, np.floating)
    ):
        raise UnsupportedValueError(f"{what} must be a number or None, got {value!r}")
    return float(value)


class SolverState:
    """
    Mutable solver state: ``x``, optional cost and constraint violation, and
    a map of named state parameters.

    The solver refreshes the state once per iteration before calling the
    iteration callbacks, which may read and modify it. Setting the boolean
    state parameter ``"stop"`` asks the backend to terminate early.

    Parameters
    ----------
    input_size:
        Size of ``x``; fixed for the lifetime of the state.
    """

    def __init__(self, input_size: int) -> None:
        self._input_size = int(input_size)
        self._x = np.zeros(self._input_size, dtype=np.float64)
        self._cost: Optional[float] = None
        self._constraint_violation: Optional[float] = None
        self._parameters = StateParameterMap()
        self.iteration = 0

    @property
    def input_size(self) -> int:
        return self._input_size

    @property
    def x(self) -> Array:
        return self._x.copy()

    @x.setter
    def x(self, value: Any) -> None:
        self._x = np.array(as_input_vector(value, self._input_size, "state x"), copy=True)

    @property
    def cost(self) -> Optional[float]:
        return self._cost

    @cost.setter
    def cost(self, value: Any) -> None:
        self._cost = _optional_float(value, "cost")

    @property
    def constraint_violation(self) -> Optional[float]:
        return self._constraint_violation

    @constraint_violation.setter
    def constraint_violation(self, value: Any) -> None:
        self._constraint_violation = _optional_float(value, "constraint violation")

    @property
    def parameters(self) -> StateParameterMap:
        return self._parameters

    @parameters.setter
    def parameters(self, entries: Mapping[str, Any]) -> None:
        self._parameters.replace(entries)

    def request_stop(self, reason: str = "stop requested by callback") -> None:
        self._parameters[STOP_PARAMETER] = (reason, True)

    @property
    def stop_requested(self) -> bool:
        return bool(self._parameters.value(STOP_PARAMETER, False))

    def refresh(
        self,
        x: Array,
        cost: Optional[float],
        constraint_violation: Optional[float],
        iteration: int,
    ) -> None:
        """Load the solver's current iterate; state parameters are kept."""
        self.x = x
        self.cost = cost
        self.constraint_violation = constraint_violation
        self.iteration = iteration

    def __str__(self) -> str:
        def fmt(value: Optional[float]) -> str:
            return "unset" if value is None else f"{value:.6g}"

        lines = [
            f"Solver state (iteration {self.iteration}):",
            f"  x: {self._x.tolist()}",
            f"  cost: {fmt(self._cost)}",
            f"  constraint violation: {fmt(self._constraint_violation)}",
        ]
        if len(self._parameters):
            lines.append("  parameters:")
            lines.extend(f"    {line}" for line in str(self._parameters).splitlines())
        return "\n".join(lines)


register_tag(TAG_SOLVER_STATE, SolverState)


__all__ = ["STOP_PARAMETER", "SolverState"]
