"""Native object model: buffers, handles, functions, problems and outcomes."""

from .buffers import (
    Array,
    as_input_matrix,
    as_input_vector,
    as_output_matrix,
    as_output_vector,
    new_matrix,
    new_vector,
)
from .cached import CachedFunction
from .finite_differences import (
    DEFAULT_EPSILON,
    FiniteDifferenceGradient,
    five_point_jacobian,
    forward_difference_jacobian,
)
from .function import (
    CAPABILITIES,
    DifferentiableFunction,
    Function,
    TwiceDifferentiableFunction,
    require_capability,
)
from .handles import Capsule, ForeignHandle, Handle, unwrap
from .parameters import (
    Parameter,
    ParameterMap,
    StateParameter,
    StateParameterMap,
    to_parameter_value,
    to_state_parameter_value,
)
from .pool import FunctionPool
from .problem import Constraint, Problem, Scaling
from .results import (
    NO_SOLUTION,
    NoSolution,
    Outcome,
    Result,
    ResultWithWarnings,
    SolveOutcome,
    SolverError,
    require_solution,
)
from .state import STOP_PARAMETER, SolverState

__all__ = [
    "Array",
    "CAPABILITIES",
    "CachedFunction",
    "Capsule",
    "Constraint",
    "DEFAULT_EPSILON",
    "DifferentiableFunction",
    "FiniteDifferenceGradient",
    "ForeignHandle",
    "Function",
    "FunctionPool",
    "Handle",
    "NO_SOLUTION",
    "NoSolution",
    "Outcome",
    "Parameter",
    "ParameterMap",
    "Problem",
    "Result",
    "ResultWithWarnings",
    "STOP_PARAMETER",
    "Scaling",
    "SolveOutcome",
    "SolverError",
    "SolverState",
    "StateParameter",
    "StateParameterMap",
    "TwiceDifferentiableFunction",
    "as_input_matrix",
    "as_input_vector",
    "as_output_matrix",
    "as_output_vector",
    "five_point_jacobian",
    "forward_difference_jacobian",
    "new_matrix",
    "new_vector",
    "require_capability",
    "require_solution",
    "to_parameter_value",
    "to_state_parameter_value",
    "unwrap",
]
