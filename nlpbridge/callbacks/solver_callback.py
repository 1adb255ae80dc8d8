"""Iteration callback bound to a foreign callable."""

from __future__ import annotations

from typing import Any, Callable, Optional

from ..core.handles import TAG_SOLVER_CALLBACK, ForeignHandle, register_tag
from ..core.problem import Problem
from ..core.state import SolverState
from ..errors import CallbackNotBoundError, HandleTypeError, NotCallableError


class SolverCallback:
    """
    Per-iteration hook for one problem.

    The bound callable is invoked as ``callable(problem, state)`` and may
    modify ``state``, for instance to request a stop.
    """

    def __init__(self, problem: Problem) -> None:
        if not isinstance(problem, Problem):
            raise HandleTypeError(f"expected a Problem, got {type(problem).__name__}")
        self.problem = problem
        self._slot: Optional[ForeignHandle] = None

    @property
    def is_bound(self) -> bool:
        return self._slot is not None and self._slot.alive

    def bind(self, callback: Callable[[Problem, SolverState], Any]) -> None:
        if not callable(callback):
            raise NotCallableError(
                f"solver callback must be callable, got {type(callback).__name__}"
            )
        if self._slot is not None:
            if self._slot.holds(callback):
                return
            self._slot.release()
        self._slot = ForeignHandle(callback)

    def __call__(self, problem: Problem, state: SolverState) -> Any:
        if not self.is_bound:
            raise CallbackNotBoundError("solver callback not set")
        return self._slot(problem, state)  # type: ignore[misc]

    def __str__(self) -> str:
        status = "bound" if self.is_bound else "unbound"
        return f"Solver callback ({status}) for problem with input size {self.problem.input_size}"


register_tag(TAG_SOLVER_CALLBACK, SolverCallback)


__all__ = ["SolverCallback"]
