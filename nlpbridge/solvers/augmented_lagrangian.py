"""
Augmented Lagrangian backend for bound- and interval-constrained problems.

Argument bounds are handled by projection. Each constraint output
``lower <= c(x) <= upper`` becomes an equality when both ends coincide and
up to two inequalities otherwise, penalized with the Powell-Hestenes-
Rockafellar augmented Lagrangian::

    L(x) = f(x) + sum_eq   (lam * h + rho / 2 * h**2)
                + sum_ineq (max(0, mu + rho * g)**2 - mu**2) / (2 * rho)

Every outer iteration minimizes ``L`` over the bounds with projected
gradient descent (Barzilai-Borwein initial steps, Armijo backtracking along
the projection arc), then updates the multipliers and, when the violation
did not decrease enough, the penalty ``rho``.

Iterates live in scaled variables ``y = x * argument_scales`` and every
constraint value is multiplied by its scale, so the scales shape both the
penalty and the feasibility test against ``constraint-tolerance``. The
``scaled-violation`` state parameter holds the tested value, while points
and multipliers are reported in the original units.

References:
    - Nocedal & Wright, *Numerical Optimization* (2006), chapter 17
    - Birgin & Martinez, *Practical Augmented Lagrangian Methods* (2014)
"""

from __future__ import annotations

from typing import Any, ClassVar, Dict, Tuple

import numpy as np

from ..core.buffers import Array
from ..core.results import SolveOutcome, SolverError
from ..logging import get_logger
from .base import Solver
from .line_search import armijo_step
from .registry import register_solver

logger = get_logger(__name__)


@register_solver("augmented-lagrangian")
class AugmentedLagrangianSolver(Solver):
    """PHR augmented Lagrangian with a projected gradient inner solver."""

    default_parameters: ClassVar[Dict[str, Tuple[str, Any]]] = {
        "max-iterations": ("maximum number of outer iterations", 50),
        "max-inner-iterations": ("maximum projected gradient steps per subproblem", 1000),
        "tolerance": ("projected gradient tolerance (infinity norm)", 1e-6),
        "constraint-tolerance": ("admissible constraint violation", 1e-6),
        "initial-penalty": ("initial penalty parameter", 10.0),
        "penalty-growth": ("penalty increase factor", 10.0),
        "max-penalty": ("upper limit of the penalty parameter", 1e8),
    }

    def _constraint_jacobian(self, x: Array) -> Array:
        constraints = self.problem.constraints
        if not constraints:
            return np.zeros((0, self.problem.input_size))
        return np.vstack([c.function.jacobian_at(x) for c in constraints])

    def _run(self) -> SolveOutcome:
        problem = self.problem
        cost = problem.cost
        max_outer = int(self.option("max-iterations"))
        max_inner = int(self.option("max-inner-iterations"))
        tol = float(self.option("tolerance"))
        ctol = float(self.option("constraint-tolerance"))
        rho = float(self.option("initial-penalty"))
        growth = float(self.option("penalty-growth"))
        max_penalty = float(self.option("max-penalty"))

        # The solve runs on y = x * argument scales and on scaled constraint values.
        scaling = problem.scaled
        s, cs = scaling.arguments, scaling.constraints
        box = scaling.argument_intervals(problem.argument_bounds)
        arg_lower, arg_upper = box[:, 0], box[:, 1]

        def proj(p: Array) -> Array:
            return np.clip(p, arg_lower, arg_upper)

        m = problem.constraints_output_size
        if m:
            intervals = np.vstack([c.bounds for c in problem.constraints])
        else:
            intervals = np.zeros((0, 2))
        intervals = scaling.constraint_intervals(intervals)
        lo, hi = intervals[:, 0], intervals[:, 1]
        eq = np.isfinite(lo) & (lo == hi)
        has_lo = np.isfinite(lo) & ~eq
        has_hi = np.isfinite(hi) & ~eq
        lo0 = np.where(np.isfinite(lo), lo, 0.0)
        hi0 = np.where(np.isfinite(hi), hi, 0.0)

        def constraint_values(p: Array) -> Array:
            return cs * problem.evaluate_constraints(scaling.unscale(p))

        def constraint_jacobian(p: Array) -> Array:
            return cs[:, None] * self._constraint_jacobian(scaling.unscale(p)) / s

        def cost_value(p: Array) -> float:
            return float(cost(scaling.unscale(p))[0])

        def cost_gradient(p: Array) -> Array:
            return cost.gradient_at(scaling.unscale(p)) / s

        def scaled_violation(c: Array) -> float:
            if not m:
                return 0.0
            return float(max(np.max(lo - c), np.max(c - hi), 0.0))

        lam = np.zeros(m)
        mu_lo = np.zeros(m)
        mu_hi = np.zeros(m)

        def weights(c: Array) -> Array:
            """Multiplier estimates ``lam + rho * h`` and their inequality counterparts."""
            w = np.zeros(m)
            w[eq] = (lam + rho * (c - lo0))[eq]
            w[has_hi] += np.maximum(0.0, mu_hi + rho * (c - hi0))[has_hi]
            w[has_lo] -= np.maximum(0.0, mu_lo + rho * (lo0 - c))[has_lo]
            return w

        def augmented(p: Array) -> float:
            value = cost_value(p)
            if not m:
                return value
            c = constraint_values(p)
            h = (c - lo0)[eq]
            value += float(np.dot(lam[eq], h) + 0.5 * rho * np.dot(h, h))
            t_hi = np.maximum(0.0, mu_hi + rho * (c - hi0))[has_hi]
            t_lo = np.maximum(0.0, mu_lo + rho * (lo0 - c))[has_lo]
            value += float(
                (np.dot(t_hi, t_hi) - np.dot(mu_hi[has_hi], mu_hi[has_hi])) / (2.0 * rho)
            )
            value += float(
                (np.dot(t_lo, t_lo) - np.dot(mu_lo[has_lo], mu_lo[has_lo])) / (2.0 * rho)
            )
            return value

        def augmented_gradient(p: Array) -> Array:
            g = cost_gradient(p)
            if not m:
                return g
            return g + constraint_jacobian(p).T @ weights(constraint_values(p))

        def projected_gradient_norm(p: Array, g: Array) -> float:
            if not p.size:
                return 0.0
            return float(np.max(np.abs(proj(p - g) - p)))

        def inner(y: Array) -> Array:
            fy = augmented(y)
            g = augmented_gradient(y)
            length = 1.0
            for _ in range(max_inner):
                if projected_gradient_norm(y, g) <= tol:
                    break
                step = armijo_step(
                    augmented, y, fy, g, -g, length=length, max_trials=30, project=proj
                )
                if not step.accepted:
                    logger.debug("projected Armijo search failed at length %.3e", length)
                    break
                g_new = augmented_gradient(step.x)
                dy = step.x - y
                dg = g_new - g
                curvature = float(np.dot(dy, dg))
                length = float(np.dot(dy, dy)) / curvature if curvature > 1e-12 else 1.0
                length = min(max(length, 1e-10), 1e10)
                y, fy, g = step.x, step.value, g_new
            return y

        y = scaling.scale(self._initial_point())
        x = scaling.unscale(y)
        multipliers = np.zeros(m)
        violation = scaled_violation(constraint_values(y))
        previous_violation = np.inf
        for _ in range(max_outer):
            y = inner(y)
            x = scaling.unscale(y)
            value = cost_value(y)
            if not (np.isfinite(value) and np.all(np.isfinite(y))):
                return SolverError(
                    "cost is not finite", self._make_result(x, cs * multipliers)
                )
            c = constraint_values(y)
            multipliers = weights(c)
            lam[eq] = multipliers[eq]
            mu_hi[has_hi] = np.maximum(0.0, mu_hi + rho * (c - hi0))[has_hi]
            mu_lo[has_lo] = np.maximum(0.0, mu_lo + rho * (lo0 - c))[has_lo]
            violation = scaled_violation(c)
            stationarity = projected_gradient_norm(
                y, cost_gradient(y) + constraint_jacobian(y).T @ multipliers
            )
            stop = self._iterate(
                x,
                value,
                problem.constraint_violation(x),
                penalty=rho,
                stationarity=stationarity,
                scaled_violation=violation,
            )
            if violation <= ctol and stationarity <= tol:
                return self._make_result(x, cs * multipliers)
            if stop:
                return self._stopped(x, cs * multipliers)
            if violation > 0.25 * previous_violation:
                rho = min(rho * growth, max_penalty)
                logger.debug("penalty increased to %.3e", rho)
            previous_violation = violation

        message = f"maximum number of iterations reached ({max_outer})"
        if violation <= ctol:
            return self._make_result(x, cs * multipliers, warnings=[message])
        return SolverError(
            f"{message} without reaching feasibility (violation {violation:.3e})",
            self._make_result(x, cs * multipliers),
        )


__all__ = ["AugmentedLagrangianSolver"]
