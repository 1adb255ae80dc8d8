"""Solvers that always fail, used to exercise the error outcome."""

from __future__ import annotations

from ..core.results import SolveOutcome, SolverError
from .base import Solver
from .registry import register_solver

FAILURE_MESSAGE = "The dummy solver always fail."


@register_solver("dummy")
class DummySolver(Solver):
    """Never evaluates anything and yields an error outcome."""

    scalar_cost = False

    def _run(self) -> SolveOutcome:
        return SolverError(FAILURE_MESSAGE)


@register_solver("dummy-laststate")
class DummyLastStateSolver(Solver):
    """Performs one iteration at the starting point, then fails with it as last state."""

    scalar_cost = False

    def _run(self) -> SolveOutcome:
        x = self._initial_point()
        values = self.problem.cost(x)
        cost = float(values[0]) if values.size == 1 else None
        violation = self.problem.constraint_violation(x)
        self._iterate(x, cost, violation)
        return self._error(FAILURE_MESSAGE, x)


__all__ = ["DummyLastStateSolver", "DummySolver", "FAILURE_MESSAGE"]
