"""
Procedural, handle-based surface over the native object model.

Every native object crosses this boundary inside a tagged
:class:`~nlpbridge.core.handles.Capsule`; passing a capsule with the wrong
tag raises :class:`~nlpbridge.errors.HandleTypeError`. Callbacks registered
here receive capsules too: iteration callbacks are called as
``callback(problem_handle, state_handle)`` and may use the solver state
accessors below.

Example
-------
>>> import numpy as np
>>> from nlpbridge import wrap
>>> f = wrap.create_differentiable_function(2, 1, "sum")
>>> wrap.bind_compute(f, lambda r, x: r.__setitem__(0, x[0] + x[1]))
>>> wrap.bind_gradient(f, lambda g, x, i: g.fill(1.0))
>>> y = np.zeros(1)
>>> wrap.compute(f, y, [1.0, 2.0])
>>> y
array([3.])
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple

from .callbacks.logger import OptimizationLogger
from .callbacks.multiplexer import Multiplexer
from .callbacks.solver_callback import SolverCallback
from .core.buffers import Array
from .core.cached import DEFAULT_CACHE_SIZE, CachedFunction
from .core.finite_differences import DEFAULT_EPSILON, FiniteDifferenceGradient
from .core.function import (
    DifferentiableFunction,
    Function,
    TwiceDifferentiableFunction,
    require_capability,
)
from .core.handles import (
    TAG_FUNCTION,
    TAG_MULTIPLEXER,
    TAG_NO_SOLUTION,
    TAG_OPTIMIZATION_LOGGER,
    TAG_PROBLEM,
    TAG_RESULT,
    TAG_RESULT_WITH_WARNINGS,
    TAG_SOLVER,
    TAG_SOLVER_CALLBACK,
    TAG_SOLVER_ERROR,
    TAG_SOLVER_STATE,
    Capsule,
    registered_tags,
    unwrap,
)
from .core.pool import FunctionPool
from .core.problem import Problem
from .core.results import Outcome
from .core.state import SolverState
from .errors import HandleTypeError, NotCallableError
from .solvers.base import Solver
from .solvers.registry import create_solver as _create_solver

_OUTCOME_TAGS = {
    Outcome.VALUE: TAG_RESULT,
    Outcome.VALUE_WARNINGS: TAG_RESULT_WITH_WARNINGS,
    Outcome.ERROR: TAG_SOLVER_ERROR,
}


def _function(handle: Capsule, capability: str = "compute", what: str = "function") -> Any:
    return require_capability(unwrap(handle, TAG_FUNCTION), capability, what)


def _problem(handle: Capsule) -> Problem:
    return unwrap(handle, TAG_PROBLEM)


def _solver(handle: Capsule) -> Solver:
    return unwrap(handle, TAG_SOLVER)


def _state(handle: Capsule) -> SolverState:
    return unwrap(handle, TAG_SOLVER_STATE)


class _HandleCallback:
    """Present ``(problem, state)`` to a foreign iteration callback as borrowed capsules."""

    def __init__(self, callback: Callable[[Capsule, Capsule], Any]) -> None:
        if not callable(callback):
            raise NotCallableError(
                f"iteration callback must be callable, got {type(callback).__name__}"
            )
        self.callback = callback

    def __call__(self, problem: Problem, state: SolverState) -> Any:
        problem_handle = Capsule.borrowed(problem, TAG_PROBLEM)
        state_handle = Capsule.borrowed(state, TAG_SOLVER_STATE)
        try:
            return self.callback(problem_handle, state_handle)
        finally:
            problem_handle.release()
            state_handle.release()


# --- functions ---


def create_function(input_size: int, output_size: int, name: str = "") -> Capsule:
    return Capsule(Function(input_size, output_size, name), TAG_FUNCTION)


def create_differentiable_function(input_size: int, output_size: int, name: str = "") -> Capsule:
    return Capsule(DifferentiableFunction(input_size, output_size, name), TAG_FUNCTION)


def create_twice_differentiable_function(
    input_size: int, output_size: int, name: str = ""
) -> Capsule:
    return Capsule(TwiceDifferentiableFunction(input_size, output_size, name), TAG_FUNCTION)


def create_function_pool(
    aggregator: Callable[[Array, Array], None],
    functions: Iterable[Capsule],
    name: str = "",
) -> Capsule:
    members = [_function(h, "gradient", "pool member") for h in functions]
    return Capsule(FunctionPool(aggregator, members, name), TAG_FUNCTION)


def create_fd_wrapper(
    function: Capsule,
    epsilon: float = DEFAULT_EPSILON,
    rule: str = "simple",
) -> Capsule:
    """Finite-difference gradient wrapper; ``rule`` is ``simple`` or ``five-points``."""
    wrapped = _function(function)
    return Capsule(FiniteDifferenceGradient(wrapped, epsilon, rule), TAG_FUNCTION)


def create_cached_function(function: Capsule, size: int = DEFAULT_CACHE_SIZE) -> Capsule:
    wrapped = _function(function, "gradient", "cached function")
    return Capsule(CachedFunction(wrapped, size), TAG_FUNCTION)


def input_size(function: Capsule) -> int:
    return _function(function).input_size


def output_size(function: Capsule) -> int:
    return _function(function).output_size


def get_name(function: Capsule) -> str:
    return _function(function).name


def bind_compute(function: Capsule, callback: Callable[..., Any]) -> None:
    _function(function).bind_compute(callback)


def bind_gradient(function: Capsule, callback: Callable[..., Any]) -> None:
    _function(function, "gradient").bind_gradient(callback)


def bind_jacobian(function: Capsule, callback: Callable[..., Any]) -> None:
    _function(function, "jacobian").bind_jacobian(callback)


def bind_hessian(function: Capsule, callback: Callable[..., Any]) -> None:
    _function(function, "hessian").bind_hessian(callback)


def compute(function: Capsule, result: Array, x: Any) -> None:
    """Evaluate into the caller-owned ``result`` vector."""
    _function(function).compute(result, x)


def gradient(function: Capsule, result: Array, x: Any, function_id: int = 0) -> None:
    _function(function, "gradient").gradient(result, x, function_id)


def jacobian(function: Capsule, result: Array, x: Any) -> None:
    _function(function, "jacobian").jacobian(result, x)


def hessian(function: Capsule, result: Array, x: Any, function_id: int = 0) -> None:
    _function(function, "hessian").hessian(result, x, function_id)


# --- problems ---


def create_problem(cost: Capsule) -> Capsule:
    return Capsule(Problem(_function(cost, "gradient", "cost function")), TAG_PROBLEM)


def get_starting_point(problem: Capsule) -> Optional[Array]:
    return _problem(problem).starting_point


def set_starting_point(problem: Capsule, x: Any) -> None:
    _problem(problem).starting_point = x


def get_argument_bounds(problem: Capsule) -> Array:
    return _problem(problem).argument_bounds


def set_argument_bounds(problem: Capsule, bounds: Any) -> None:
    _problem(problem).argument_bounds = bounds


def get_argument_scales(problem: Capsule) -> Array:
    return _problem(problem).argument_scales


def set_argument_scales(problem: Capsule, scales: Any) -> None:
    _problem(problem).argument_scales = scales


def add_constraint(problem: Capsule, function: Capsule, bounds: Any, scales: Any = None) -> None:
    _problem(problem).add_constraint(_function(function, "gradient", "constraint"), bounds, scales)


# --- solvers ---


def create_solver(
    plugin_name: str,
    problem: Capsule,
    parameters: Optional[Mapping[str, Any]] = None,
) -> Optional[Capsule]:
    """Solver handle, or None if the plugin is unknown or rejects the problem."""
    solver = _create_solver(plugin_name, _problem(problem), parameters)
    if solver is None:
        return None
    return Capsule(solver, TAG_SOLVER)


def solve(solver: Capsule) -> None:
    _solver(solver).solve()


def minimum(solver: Capsule) -> Tuple[str, Optional[Capsule]]:
    """``(tag, handle)`` of the last outcome, ``(TAG_NO_SOLUTION, None)`` before solving."""
    outcome = _solver(solver).minimum()
    if outcome.which is Outcome.NO_SOLUTION:
        return TAG_NO_SOLUTION, None
    tag = _OUTCOME_TAGS[outcome.which]
    return tag, Capsule(outcome, tag)


def get_solver_parameters(solver: Capsule) -> Dict[str, Tuple[str, Any]]:
    return _solver(solver).parameters.to_dict()


def set_solver_parameters(solver: Capsule, parameters: Mapping[str, Any]) -> None:
    """Replace every option with ``{name: (description, value)}``."""
    _solver(solver).set_parameters(parameters)


def set_solver_parameter(solver: Capsule, name: str, value: Any, description: str = "") -> None:
    _solver(solver).set_parameter(name, value, description)


# --- iteration callbacks ---


def create_multiplexer(solver: Capsule) -> Capsule:
    return Capsule(Multiplexer(_solver(solver)), TAG_MULTIPLEXER)


def create_solver_callback(problem: Capsule) -> Capsule:
    return Capsule(SolverCallback(_problem(problem)), TAG_SOLVER_CALLBACK)


def bind_solver_callback(callback: Capsule, fn: Callable[[Capsule, Capsule], Any]) -> None:
    unwrap(callback, TAG_SOLVER_CALLBACK).bind(_HandleCallback(fn))


def add_iteration_callback(multiplexer: Capsule, callback: Any) -> int:
    """Register a solver callback handle or a plain callable; return its index."""
    mux: Multiplexer = unwrap(multiplexer, TAG_MULTIPLEXER)
    if isinstance(callback, Capsule):
        unwrap(callback, TAG_SOLVER_CALLBACK, TAG_OPTIMIZATION_LOGGER)
        return mux.add(callback)
    return mux.add(_HandleCallback(callback))


def remove_iteration_callback(multiplexer: Capsule, index: int) -> None:
    unwrap(multiplexer, TAG_MULTIPLEXER).remove(index)


def add_optimization_logger(solver: Capsule, multiplexer: Capsule, log_dir: str) -> Capsule:
    """
    Log every iteration of ``solver`` to ``log_dir``.

    The multiplexer keeps its own share of the logger. The log files are
    written once the returned handle and the multiplexer's share are both
    released (or the multiplexer entry is removed).
    """
    mux: Multiplexer = unwrap(multiplexer, TAG_MULTIPLEXER)
    opt_logger = OptimizationLogger(_solver(solver), log_dir)
    handle = Capsule(opt_logger, TAG_OPTIMIZATION_LOGGER, destructor=OptimizationLogger.close)
    mux.add(handle)
    return handle


# --- solver state ---


def get_solver_state_x(state: Capsule) -> Array:
    return _state(state).x


def set_solver_state_x(state: Capsule, x: Any) -> None:
    _state(state).x = x


def get_solver_state_cost(state: Capsule) -> Optional[float]:
    return _state(state).cost


def set_solver_state_cost(state: Capsule, cost: Optional[float]) -> None:
    _state(state).cost = cost


def get_solver_state_constraint_violation(state: Capsule) -> Optional[float]:
    return _state(state).constraint_violation


def set_solver_state_constraint_violation(state: Capsule, violation: Optional[float]) -> None:
    _state(state).constraint_violation = violation


def get_solver_state_parameters(state: Capsule) -> Dict[str, Tuple[str, Any]]:
    return _state(state).parameters.to_dict()


def set_solver_state_parameters(state: Capsule, parameters: Mapping[str, Any]) -> None:
    _state(state).parameters = parameters


# --- outcomes and printing ---


def result_to_dict(result: Capsule) -> Dict[str, Any]:
    return unwrap(result, TAG_RESULT).to_dict()


def result_with_warnings_to_dict(result: Capsule) -> Dict[str, Any]:
    return unwrap(result, TAG_RESULT_WITH_WARNINGS).to_dict()


def solver_error_to_dict(error: Capsule) -> Dict[str, Any]:
    return unwrap(error, TAG_SOLVER_ERROR).to_dict()


def describe(handle: Capsule) -> str:
    """Human readable description of any handle's payload."""
    if not isinstance(handle, Capsule):
        raise HandleTypeError(f"expected a handle, got {type(handle).__name__}")
    if handle.tag not in registered_tags():
        raise HandleTypeError(f"unknown handle tag {handle.tag}")
    return str(handle.get())


__all__ = [
    "add_constraint",
    "add_iteration_callback",
    "add_optimization_logger",
    "bind_compute",
    "bind_gradient",
    "bind_hessian",
    "bind_jacobian",
    "bind_solver_callback",
    "compute",
    "create_cached_function",
    "create_differentiable_function",
    "create_fd_wrapper",
    "create_function",
    "create_function_pool",
    "create_multiplexer",
    "create_problem",
    "create_solver",
    "create_solver_callback",
    "create_twice_differentiable_function",
    "describe",
    "get_argument_bounds",
    "get_argument_scales",
    "get_name",
    "get_solver_parameters",
    "get_solver_state_constraint_violation",
    "get_solver_state_cost",
    "get_solver_state_parameters",
    "get_solver_state_x",
    "get_starting_point",
    "gradient",
    "hessian",
    "input_size",
    "jacobian",
    "minimum",
    "output_size",
    "remove_iteration_callback",
    "result_to_dict",
    "result_with_warnings_to_dict",
    "set_argument_bounds",
    "set_argument_scales",
    "set_solver_parameter",
    "set_solver_parameters",
    "set_solver_state_constraint_violation",
    "set_solver_state_cost",
    "set_solver_state_parameters",
    "set_solver_state_x",
    "set_starting_point",
    "solve",
    "solver_error_to_dict",
]
