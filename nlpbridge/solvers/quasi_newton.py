"""Unconstrained quasi-Newton backends (BFGS and L-BFGS)."""

from __future__ import annotations

from collections import deque
from typing import Any, ClassVar, Deque, Dict, Tuple

import numpy as np

from ..core.buffers import Array
from ..core.results import SolveOutcome
from ..errors import ConfigurationError
from ..logging import get_logger
from .base import Solver
from .line_search import Gradient, Objective, Step, armijo_step, wolfe_step
from .registry import register_solver

logger = get_logger(__name__)

LINE_SEARCHES = ("wolfe", "armijo")


class QuasiNewtonSolver(Solver):
    """
    Shared driver: each iteration publishes the iterate, checks the gradient
    norm, computes a quasi-Newton direction and takes a line-search step.

    The iteration runs on ``y = x * argument_scales``; the gradient norm that
    is tested against ``tolerance`` is the one in those variables.

    Constraints and finite argument bounds are rejected at creation.
    """

    supports_constraints = False
    supports_bounds = False
    default_parameters: ClassVar[Dict[str, Tuple[str, Any]]] = {
        "max-iterations": ("maximum number of iterations", 1000),
        "tolerance": ("gradient norm tolerance", 1e-8),
        "line-search": ("line search: wolfe or armijo", "wolfe"),
    }

    def _reset(self, n: int) -> None:
        raise NotImplementedError

    def _direction(self, grad: Array) -> Array:
        raise NotImplementedError

    def _update(self, s: Array, y: Array) -> None:
        raise NotImplementedError

    @staticmethod
    def _search(
        kind: str,
        f: Objective,
        gradient_of: Gradient,
        x: Array,
        fx: float,
        grad: Array,
        direction: Array,
    ) -> Step:
        if kind == "wolfe":
            step = wolfe_step(f, gradient_of, x, fx, grad, direction)
            if step.accepted:
                return step
            logger.debug("Wolfe search failed, backtracking instead")
        return armijo_step(f, x, fx, grad, direction)

    def _run(self) -> SolveOutcome:
        line_search = str(self.option("line-search")).lower()
        if line_search not in LINE_SEARCHES:
            raise ConfigurationError(
                f"unknown line search {line_search!r}; expected one of {LINE_SEARCHES}"
            )
        max_iterations = int(self.option("max-iterations"))
        tol = float(self.option("tolerance"))
        cost = self.problem.cost
        scaling = self.problem.scaled

        def f(y: Array) -> float:
            return float(cost(scaling.unscale(y))[0])

        def gradient_of(y: Array) -> Array:
            return cost.gradient_at(scaling.unscale(y)) / scaling.arguments

        y = scaling.scale(self._initial_point())
        self._reset(y.size)
        fy = f(y)
        grad = gradient_of(y)
        for _ in range(max_iterations):
            x = scaling.unscale(y)
            if not (np.isfinite(fy) and np.all(np.isfinite(grad))):
                return self._error("cost or gradient is not finite", x)
            grad_norm = float(np.linalg.norm(grad))
            stop = self._iterate(x, fy, 0.0, gradient_norm=grad_norm)
            if grad_norm <= tol:
                return self._make_result(x)
            if stop:
                return self._stopped(x)
            direction = self._direction(grad)
            if float(np.dot(direction, grad)) >= 0:
                logger.debug("quasi-Newton direction is not a descent direction, resetting")
                self._reset(y.size)
                direction = -grad
            step = self._search(line_search, f, gradient_of, y, fy, grad, direction)
            if not step.accepted:
                return self._make_result(
                    x,
                    warnings=[
                        f"line search failed to decrease the cost, "
                        f"gradient norm {grad_norm:.3e}"
                    ],
                )
            grad_new = gradient_of(step.x)
            self._update(step.x - y, grad_new - grad)
            y, fy, grad = step.x, step.value, grad_new
        x = scaling.unscale(y)
        grad_norm = float(np.linalg.norm(grad))
        if grad_norm <= tol:
            return self._make_result(x)
        return self._make_result(
            x,
            warnings=[
                f"maximum number of iterations reached ({max_iterations}), "
                f"gradient norm {grad_norm:.3e}"
            ],
        )


@register_solver("bfgs")
class BFGSSolver(QuasiNewtonSolver):
    """Full-memory BFGS on the inverse Hessian approximation."""

    def _reset(self, n: int) -> None:
        self._inv_hessian = np.eye(n)

    def _direction(self, grad: Array) -> Array:
        return -self._inv_hessian @ grad

    def _update(self, s: Array, y: Array) -> None:
        n = s.size
        ys = float(np.dot(y, s))
        if ys <= 1e-12:
            self._inv_hessian = np.eye(n)
            return
        rho = 1.0 / ys
        identity = np.eye(n)
        outer_sy = np.outer(s, y)
        self._inv_hessian = (
            (identity - rho * outer_sy)
            @ self._inv_hessian
            @ (identity - rho * outer_sy.T)
            + rho * np.outer(s, s)
        )


@register_solver("lbfgs")
class LBFGSSolver(QuasiNewtonSolver):
    """Limited-memory BFGS using two-loop recursion."""

    default_parameters: ClassVar[Dict[str, Tuple[str, Any]]] = {
        **QuasiNewtonSolver.default_parameters,
        "memory": ("number of correction pairs kept", 10),
    }

    def _reset(self, n: int) -> None:
        m = int(self.option("memory"))
        if m <= 0:
            raise ConfigurationError("Memory parameter must be positive.")
        self._s_history: Deque[Array] = deque(maxlen=m)
        self._y_history: Deque[Array] = deque(maxlen=m)

    def _direction(self, grad: Array) -> Array:
        q = grad.copy()
        alpha_vals = []
        for s, y in reversed(list(zip(self._s_history, self._y_history))):
            rho = 1.0 / float(np.dot(y, s))
            alpha_i = rho * float(np.dot(s, q))
            q = q - alpha_i * y
            alpha_vals.append((rho, alpha_i, s, y))
        if self._s_history:
            last_s = self._s_history[-1]
            last_y = self._y_history[-1]
            gamma = float(np.dot(last_s, last_y) / np.dot(last_y, last_y))
        else:
            gamma = 1.0
        r = gamma * q
        for rho, alpha_i, s, y in reversed(alpha_vals):
            beta = rho * float(np.dot(y, r))
            r = r + s * (alpha_i - beta)
        return -r

    def _update(self, s: Array, y: Array) -> None:
        if float(np.dot(y, s)) > 1e-12:
            self._s_history.append(s)
            self._y_history.append(y)


__all__ = ["BFGSSolver", "LBFGSSolver", "QuasiNewtonSolver"]
