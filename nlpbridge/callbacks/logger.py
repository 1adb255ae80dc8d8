"""
Optimization logger: records every iteration and writes them to disk.

Register the logger on a :class:`~nlpbridge.callbacks.Multiplexer`. It keeps
the iterations in memory and writes the log directory once, when it is
finalized by :meth:`OptimizationLogger.close`, by leaving a ``with`` block,
or when it is garbage collected:

``journal.log``
    Human readable journal, one block per iteration.
``x.csv``, ``cost.csv``, ``constraint-violation.csv``
    One row per iteration, prefixed by the iteration number.
``state-parameters.json``
    State parameters of every iteration.
``problem.txt``
    Description of the problem and of the solver.
"""

from __future__ import annotations

import json
import os
import weakref
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from ..core.handles import TAG_OPTIMIZATION_LOGGER, register_tag
from ..core.problem import Problem
from ..core.state import SolverState
from ..logging import get_logger
from ..solvers.base import Solver

logger = get_logger(__name__)


def _json_value(value: Any) -> Any:
    if isinstance(value, np.ndarray):
        return value.tolist()
    return value


@dataclass
class _Journal:
    """Iteration records and the files they are written to."""

    log_dir: str
    header: str
    input_size: int
    iterations: List[int] = field(default_factory=list)
    xs: List[np.ndarray] = field(default_factory=list)
    costs: List[float] = field(default_factory=list)
    violations: List[float] = field(default_factory=list)
    parameters: List[Dict[str, Any]] = field(default_factory=list)
    text: List[str] = field(default_factory=list)
    closed: bool = False

    def record(self, state: SolverState) -> None:
        self.iterations.append(state.iteration)
        self.xs.append(state.x)
        self.costs.append(np.nan if state.cost is None else state.cost)
        self.violations.append(
            np.nan if state.constraint_violation is None else state.constraint_violation
        )
        self.parameters.append(
            {
                name: {"description": entry.description, "value": _json_value(entry.value)}
                for name, entry in state.parameters.items()
            }
        )
        self.text.append(str(state))

    def _path(self, name: str) -> str:
        return os.path.join(self.log_dir, name)

    def _write_series(self, name: str, column: str, values: List[float]) -> None:
        data = np.column_stack([np.asarray(self.iterations, dtype=float), values])
        np.savetxt(
            self._path(name),
            data.reshape(len(self.iterations), 2),
            delimiter=",",
            header=f"iteration,{column}",
            comments="",
            fmt=["%d", "%.17g"],
        )

    def flush(self) -> None:
        if self.closed:
            return
        count = len(self.iterations)
        with open(self._path("journal.log"), "w", encoding="utf-8") as f:
            f.write(self.header + "\n\n")
            for block in self.text:
                f.write(block + "\n\n")
            f.write(f"Optimization finished after {count} iterations.\n")
        with open(self._path("problem.txt"), "w", encoding="utf-8") as f:
            f.write(self.header + "\n")
        header = ",".join(["iteration"] + [f"x{i}" for i in range(self.input_size)])
        xs = np.asarray(self.xs, dtype=float).reshape(count, self.input_size)
        np.savetxt(
            self._path("x.csv"),
            np.column_stack([np.asarray(self.iterations, dtype=float), xs]),
            delimiter=",",
            header=header,
            comments="",
            fmt=["%d"] + ["%.17g"] * self.input_size,
        )
        self._write_series("cost.csv", "cost", self.costs)
        self._write_series("constraint-violation.csv", "constraint_violation", self.violations)
        with open(self._path("state-parameters.json"), "w", encoding="utf-8") as f:
            json.dump(
                [
                    {"iteration": it, "parameters": params}
                    for it, params in zip(self.iterations, self.parameters)
                ],
                f,
                indent=2,
                ensure_ascii=False,
            )
        self.closed = True
        logger.info("wrote optimization log (%d iterations) to %s", count, self.log_dir)


class OptimizationLogger:
    """
    Iteration callback writing an optimization log to ``log_dir``.

    Parameters
    ----------
    solver:
        Solver whose iterations are logged. Its problem and options are
        described in ``problem.txt``.
    log_dir:
        Output directory, created if needed.

    Example
    -------
    >>> with OptimizationLogger(solver, "logs/run-1") as opt_logger:  # doctest: +SKIP
    ...     multiplexer.add(opt_logger)
    ...     solver.solve()
    """

    def __init__(self, solver: Solver, log_dir: str) -> None:
        self.solver = solver
        self.log_dir = os.fspath(log_dir)
        os.makedirs(self.log_dir, exist_ok=True)
        header = f"{solver.problem}\n\n{solver}"
        self._journal = _Journal(self.log_dir, header, solver.problem.input_size)
        self._finalizer = weakref.finalize(self, self._journal.flush)

    @property
    def closed(self) -> bool:
        return self._journal.closed

    @property
    def iterations(self) -> int:
        return len(self._journal.iterations)

    def __call__(self, problem: Problem, state: SolverState) -> None:
        if self._journal.closed:
            logger.debug("optimization logger for %s is closed, iteration dropped", self.log_dir)
            return
        self._journal.record(state)

    def close(self) -> None:
        """
        Write the log files; later calls do nothing.

        If writing fails the logger stays open, so ``close`` can be retried
        once the cause is fixed.
        """
        self._journal.flush()
        self._finalizer.detach()

    def __enter__(self) -> "OptimizationLogger":
        return self

    def __exit__(self, exc_type: Optional[type], exc: Optional[BaseException], tb: Any) -> None:
        self.close()

    def __str__(self) -> str:
        status = "closed" if self.closed else "open"
        return f"Optimization logger ({status}, {self.iterations} iterations) in {self.log_dir}"


register_tag(TAG_OPTIMIZATION_LOGGER, OptimizationLogger)


__all__ = ["OptimizationLogger"]
