"""Tagged outcomes of a solve.

A solver's :meth:`~nlpbridge.solvers.base.Solver.minimum` returns exactly one
of:

* :data:`NO_SOLUTION` (``Outcome.NO_SOLUTION``): nothing solved yet. This
  is a usage error, not a result.
* :class:`Result` (``Outcome.VALUE``): a clean optimum.
* :class:`ResultWithWarnings` (``Outcome.VALUE_WARNINGS``): an optimum
  plus warnings.
* :class:`SolverError` (``Outcome.ERROR``): a failed solve, optionally
  carrying the last known iterate.

Every outcome exposes its tag as ``which``. Outcomes are immutable.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Tuple, Union

import numpy as np

from ..errors import UsageError
from .buffers import Array
from .handles import (
    TAG_RESULT,
    TAG_RESULT_WITH_WARNINGS,
    TAG_SOLVER_ERROR,
    register_tag,
)


class Outcome(Enum):
    """Discriminator of solve outcomes."""

    NO_SOLUTION = "no_solution"
    VALUE = "value"
    VALUE_WARNINGS = "value_warnings"
    ERROR = "error"


def _frozen(values: Any) -> Array:
    arr = np.array(values, dtype=np.float64, copy=True).reshape(-1)
    arr.flags.writeable = False
    return arr


class NoSolution:
    """Placeholder outcome before :meth:`Solver.solve` has run."""

    which: ClassVar[Outcome] = Outcome.NO_SOLUTION
    _instance: ClassVar[Optional["NoSolution"]] = None

    def __new__(cls) -> "NoSolution":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NO_SOLUTION"

    def __str__(self) -> str:
        return "No solution (problem not yet solved)"


NO_SOLUTION = NoSolution()


@dataclass(frozen=True)
class Result:
    """Optimum found by a solver.

    Attributes:
        input_size: Size of ``x``.
        output_size: Size of ``value`` (the cost output size).
        x: Optimal point.
        value: Cost at ``x``.
        constraints: Concatenated constraint values at ``x``.
        lambda_: Lagrange multipliers, one per constraint output.
    """

    which: ClassVar[Outcome] = Outcome.VALUE

    input_size: int
    output_size: int
    x: Array
    value: Array
    constraints: Array
    lambda_: Array

    def __post_init__(self) -> None:
        for name in ("x", "value", "constraints", "lambda_"):
            object.__setattr__(self, name, _frozen(getattr(self, name)))
        if self.x.size != self.input_size:
            raise ValueError(f"x has size {self.x.size}, expected {self.input_size}")
        if self.value.size != self.output_size:
            raise ValueError(
                f"value has size {self.value.size}, expected {self.output_size}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "inputSize": self.input_size,
            "outputSize": self.output_size,
            "x": self.x.copy(),
            "value": self.value.copy(),
            "constraints": self.constraints.copy(),
            "lambda": self.lambda_.copy(),
        }

    def __str__(self) -> str:
        return (
            "Result:\n"
            f"  size (input, output): {self.input_size}, {self.output_size}\n"
            f"  x: {self.x.tolist()}\n"
            f"  value: {self.value.tolist()}\n"
            f"  constraints: {self.constraints.tolist()}\n"
            f"  lambda: {self.lambda_.tolist()}"
        )


@dataclass(frozen=True)
class ResultWithWarnings(Result):
    """Optimum accompanied by solver warnings."""

    which: ClassVar[Outcome] = Outcome.VALUE_WARNINGS

    warnings: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        super().__post_init__()
        object.__setattr__(self, "warnings", tuple(str(w) for w in self.warnings))

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["warnings"] = list(self.warnings)
        return data

    def __str__(self) -> str:
        lines = [super().__str__().replace("Result:", "Result with warnings:", 1), "  warnings:"]
        lines.extend(f"    - {w}" for w in self.warnings)
        return "\n".join(lines)


@dataclass(frozen=True)
class SolverError:
    """Failed solve; not an exception, just one of the normal outcomes."""

    which: ClassVar[Outcome] = Outcome.ERROR

    message: str
    last_state: Optional[Result] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"error": self.message}
        if self.last_state is not None:
            data["lastState"] = self.last_state.to_dict()
        return data

    def __str__(self) -> str:
        text = f"Solver error: {self.message}"
        if self.last_state is not None:
            text += "\nLast state:\n  " + str(self.last_state).replace("\n", "\n  ")
        return text


SolveOutcome = Union[NoSolution, Result, ResultWithWarnings, SolverError]


def require_solution(outcome: SolveOutcome) -> Union[Result, ResultWithWarnings, SolverError]:
    """Return ``outcome`` unless it is :data:`NO_SOLUTION`, which is a usage error."""
    if outcome.which is Outcome.NO_SOLUTION:
        raise UsageError("problem not yet solved: call solve() before minimum()")
    return outcome  # type: ignore[return-value]


register_tag(TAG_RESULT, Result)
register_tag(TAG_RESULT_WITH_WARNINGS, ResultWithWarnings)
register_tag(TAG_SOLVER_ERROR, SolverError)


__all__ = [
    "NO_SOLUTION",
    "NoSolution",
    "Outcome",
    "Result",
    "ResultWithWarnings",
    "SolveOutcome",
    "SolverError",
    "require_solution",
]
