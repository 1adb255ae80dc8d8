"""Iteration callbacks: foreign-bound hooks, multiplexer and optimization logger."""

from .logger import OptimizationLogger
from .multiplexer import Multiplexer
from .solver_callback import SolverCallback

__all__ = ["Multiplexer", "OptimizationLogger", "SolverCallback"]
