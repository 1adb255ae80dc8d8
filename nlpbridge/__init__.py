"""nlpbridge - foreign callables as the evaluation core of nonlinear programs."""

__version__ = "0.1.0"

# Native object model
from .core import (
    NO_SOLUTION,
    CachedFunction,
    Capsule,
    Constraint,
    DifferentiableFunction,
    FiniteDifferenceGradient,
    Function,
    FunctionPool,
    Outcome,
    Parameter,
    ParameterMap,
    Problem,
    Result,
    ResultWithWarnings,
    SolverError,
    SolverState,
    StateParameter,
    StateParameterMap,
    TwiceDifferentiableFunction,
    require_solution,
)

# Solvers and callbacks
from .solvers import Solver, available_solvers, create_solver, register_solver
from .callbacks import Multiplexer, OptimizationLogger, SolverCallback

# Errors
from .errors import (
    BufferTypeError,
    CallbackError,
    CallbackNotBoundError,
    CapabilityError,
    ConfigurationError,
    HandleTypeError,
    HessianNotImplementedError,
    NlpBridgeError,
    NonFiniteValueError,
    NotCallableError,
    ShapeError,
    UnsupportedValueError,
    UsageError,
)

# Logging and diagnostics
from .logging import configure_logging, get_logger, set_log_level
from .diagnostics import debug_context, is_debug_enabled, set_debug_enabled

__all__ = [
    "__version__",
    "BufferTypeError",
    "CachedFunction",
    "CallbackError",
    "CallbackNotBoundError",
    "CapabilityError",
    "Capsule",
    "ConfigurationError",
    "Constraint",
    "DifferentiableFunction",
    "FiniteDifferenceGradient",
    "Function",
    "FunctionPool",
    "HandleTypeError",
    "HessianNotImplementedError",
    "Multiplexer",
    "NO_SOLUTION",
    "NlpBridgeError",
    "NonFiniteValueError",
    "NotCallableError",
    "OptimizationLogger",
    "Outcome",
    "Parameter",
    "ParameterMap",
    "Problem",
    "Result",
    "ResultWithWarnings",
    "ShapeError",
    "Solver",
    "SolverCallback",
    "SolverError",
    "SolverState",
    "StateParameter",
    "StateParameterMap",
    "TwiceDifferentiableFunction",
    "UnsupportedValueError",
    "UsageError",
    "available_solvers",
    "configure_logging",
    "create_solver",
    "debug_context",
    "get_logger",
    "is_debug_enabled",
    "register_solver",
    "require_solution",
    "set_debug_enabled",
    "set_log_level",
]
