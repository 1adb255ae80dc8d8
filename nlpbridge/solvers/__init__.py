"""Solver facade, plugin registry and built-in backends.

Example
-------
>>> import numpy as np
>>> from nlpbridge.core import DifferentiableFunction, Problem
>>> from nlpbridge.solvers import create_solver
>>> cost = DifferentiableFunction(2, 1, "distance to (5, 5)")
>>> cost.bind_compute(lambda r, x: r.__setitem__(0, ((x - 5.0) ** 2).sum()))
>>> cost.bind_gradient(lambda g, x, i: g.__setitem__(slice(None), 2.0 * (x - 5.0)))
>>> problem = Problem(cost)
>>> problem.argument_bounds = [(0.0, 10.0), (0.0, 10.0)]
>>> problem.starting_point = np.zeros(2)
>>> solver = create_solver("augmented-lagrangian", problem)
>>> solver.solve()
>>> solver.minimum().x.round(6)
array([5., 5.])
"""

from .base import IterationCallback, Solver
from .registry import ENTRY_POINT_GROUP, available_solvers, create_solver, register_solver
from .dummy import DummyLastStateSolver, DummySolver
from .quasi_newton import BFGSSolver, LBFGSSolver, QuasiNewtonSolver
from .augmented_lagrangian import AugmentedLagrangianSolver
from .line_search import Step, armijo_step, wolfe_step

__all__ = [
    "AugmentedLagrangianSolver",
    "BFGSSolver",
    "DummyLastStateSolver",
    "DummySolver",
    "ENTRY_POINT_GROUP",
    "IterationCallback",
    "LBFGSSolver",
    "QuasiNewtonSolver",
    "Solver",
    "Step",
    "armijo_step",
    "available_solvers",
    "create_solver",
    "register_solver",
    "wolfe_step",
]
