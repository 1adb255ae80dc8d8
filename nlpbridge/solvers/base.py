"""Solver facade shared by every backend plugin.

A backend subclasses :class:`Solver`, declares its default options in
``default_parameters`` and implements :meth:`Solver._run`. During the run it
reports each iterate through :meth:`Solver._iterate`, which refreshes the
:class:`~nlpbridge.core.state.SolverState` and calls the registered
iteration callback.
"""

from __future__ import annotations

from typing import Any, Callable, ClassVar, Dict, Iterable, Mapping, Optional, Tuple

import numpy as np

from ..core.buffers import Array
from ..core.handles import TAG_SOLVER, ForeignHandle, register_tag
from ..core.parameters import Parameter, ParameterMap
from ..core.problem import Problem
from ..core.results import (
    NO_SOLUTION,
    Result,
    ResultWithWarnings,
    SolveOutcome,
    SolverError,
)
from ..core.state import STOP_PARAMETER, SolverState
from ..errors import (
    CallbackError,
    ConfigurationError,
    HandleTypeError,
    NlpBridgeError,
    NotCallableError,
)
from ..logging import get_logger

logger = get_logger(__name__)

IterationCallback = Callable[[Problem, SolverState], Any]


class Solver:
    """
    Facade over one solver backend bound to one problem.

    Parameters
    ----------
    problem:
        The problem to solve. It is shared, not copied.
    parameters:
        Optional initial options. Each value is either a plain value or a
        ``(description, value)`` tuple; entries override the backend
        defaults.

    Raises
    ------
    ConfigurationError
        If the backend cannot handle ``problem`` (a vector-valued cost,
        constraints or bounds it does not support).
    """

    plugin_name: ClassVar[str] = ""
    supports_constraints: ClassVar[bool] = True
    supports_bounds: ClassVar[bool] = True
    scalar_cost: ClassVar[bool] = True
    default_parameters: ClassVar[Dict[str, Tuple[str, Any]]] = {
        "max-iterations": ("maximum number of iterations", 1000),
    }

    def __init__(
        self,
        problem: Problem,
        parameters: Optional[Mapping[str, Any]] = None,
    ) -> None:
        if not isinstance(problem, Problem):
            raise HandleTypeError(f"expected a Problem, got {type(problem).__name__}")
        self.check_problem(problem)
        self._problem = problem
        self._parameters = ParameterMap(self.default_parameters)
        if parameters:
            for name, entry in parameters.items():
                if isinstance(entry, (Parameter, tuple)):
                    self._parameters[name] = entry
                else:
                    self._parameters.set(name, entry)
        self._state = SolverState(problem.input_size)
        self._result: SolveOutcome = NO_SOLUTION
        self._callback: Optional[ForeignHandle] = None

    @classmethod
    def check_problem(cls, problem: Problem) -> None:
        """Raise ConfigurationError if this backend cannot solve ``problem``."""
        name = cls.plugin_name or cls.__name__
        if cls.scalar_cost and problem.cost.output_size != 1:
            raise ConfigurationError(
                f"solver {name!r} minimizes a scalar cost, "
                f"got output size {problem.cost.output_size}"
            )
        if problem.constraints and not cls.supports_constraints:
            raise ConfigurationError(
                f"solver {name!r} does not support constraints "
                f"({len(problem.constraints)} given)"
            )
        if problem.has_finite_bounds() and not cls.supports_bounds:
            raise ConfigurationError(f"solver {name!r} does not support argument bounds")

    @property
    def problem(self) -> Problem:
        return self._problem

    @property
    def parameters(self) -> ParameterMap:
        return self._parameters

    @property
    def state(self) -> SolverState:
        return self._state

    def set_parameters(self, entries: Mapping[str, Any]) -> None:
        """Replace every option; defaults are not restored."""
        self._parameters.replace(entries)

    def set_parameter(self, name: str, value: Any, description: str = "") -> None:
        self._parameters.set(name, value, description)

    def option(self, name: str) -> Any:
        """Current value of ``name``, falling back to the backend default."""
        default = self.default_parameters.get(name, (None, None))[1]
        return self._parameters.value(name, default)

    # --- iteration callback ---

    @property
    def iteration_callback(self) -> Optional[IterationCallback]:
        if self._callback is None or not self._callback.alive:
            return None
        return self._callback.get()

    def set_iteration_callback(self, callback: Optional[IterationCallback]) -> None:
        """Register ``callback(problem, state)``; ``None`` removes it."""
        if callback is not None and not callable(callback):
            raise NotCallableError(
                f"iteration callback must be callable, got {type(callback).__name__}"
            )
        if self._callback is not None:
            if callback is not None and self._callback.holds(callback):
                return
            self._callback.release()
            self._callback = None
        if callback is not None:
            self._callback = ForeignHandle(callback)

    def _iterate(
        self,
        x: Array,
        cost: Optional[float],
        constraint_violation: Optional[float],
        **extra: Any,
    ) -> bool:
        """Publish one iterate; return True if a callback asked to stop."""
        self._state.refresh(x, cost, constraint_violation, self._state.iteration + 1)
        for name, value in extra.items():
            self._state.parameters.set(name.replace("_", "-"), value)
        if self._callback is not None and self._callback.alive:
            try:
                self._callback(self._problem, self._state)
            except NlpBridgeError:
                raise
            except Exception as exc:
                raise CallbackError.from_exception("iteration callback", exc) from exc
        return self._state.stop_requested

    # --- solving ---

    def solve(self) -> None:
        """Run the backend to completion and store its outcome."""
        name = self.plugin_name or type(self).__name__
        logger.info("solving with %s (input size %d)", name, self._problem.input_size)
        self._state.iteration = 0
        self._state.parameters.pop(STOP_PARAMETER, None)
        self._result = NO_SOLUTION
        self._result = self._run()
        logger.info("%s finished: %s", name, self._result.which.name)

    def minimum(self) -> SolveOutcome:
        """Outcome of the last :meth:`solve`, or ``NO_SOLUTION``."""
        return self._result

    def _run(self) -> SolveOutcome:
        raise NotImplementedError

    # --- helpers for backends ---

    def _lower_upper(self) -> Tuple[Array, Array]:
        bounds = self._problem.argument_bounds
        return bounds[:, 0], bounds[:, 1]

    def _initial_point(self) -> Array:
        """Starting point, or the origin, projected into the argument bounds."""
        start = self._problem.starting_point
        if start is None:
            start = np.zeros(self._problem.input_size)
        lower, upper = self._lower_upper()
        return np.clip(start, lower, upper)

    def _make_result(
        self,
        x: Array,
        lambda_: Optional[Array] = None,
        warnings: Optional[Iterable[str]] = None,
    ) -> Result:
        problem = self._problem
        values = problem.evaluate_constraints(x)
        if lambda_ is None:
            lambda_ = np.zeros(problem.constraints_output_size)
        fields = dict(
            input_size=problem.input_size,
            output_size=problem.cost.output_size,
            x=x,
            value=problem.cost(x),
            constraints=values,
            lambda_=lambda_,
        )
        if warnings is None:
            return Result(**fields)
        return ResultWithWarnings(warnings=tuple(warnings), **fields)

    def _stopped(self, x: Array, lambda_: Optional[Array] = None) -> Result:
        entry = self._state.parameters.get(STOP_PARAMETER)
        reason = entry.description if entry is not None and entry.description else ""
        message = "optimization stopped by iteration callback"
        if reason:
            message += f": {reason}"
        logger.info(message)
        return self._make_result(x, lambda_, warnings=[message])

    def _error(self, message: str, x: Optional[Array] = None) -> SolverError:
        last = None if x is None else self._make_result(x)
        return SolverError(message, last)

    def __str__(self) -> str:
        name = self.plugin_name or type(self).__name__
        return (
            f"Solver {name!r}\n"
            f"  problem input size: {self._problem.input_size}\n"
            f"  constraints: {len(self._problem.constraints)}\n"
            "  parameters:\n    "
            + str(self._parameters).replace("\n", "\n    ")
        )


register_tag(TAG_SOLVER, Solver)


__all__ = ["IterationCallback", "Solver"]
