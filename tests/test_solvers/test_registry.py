"""Tests for solver plugin lookup."""

import numpy as np
import pytest

from nlpbridge.core import NO_SOLUTION, Outcome, Problem
from nlpbridge.core.results import SolverError
from nlpbridge.errors import ConfigurationError, HandleTypeError
from nlpbridge.solvers import Solver, available_solvers, create_solver, register_solver
from nlpbridge.solvers import registry


def test_unknown_plugin_returns_none(box_problem):
    assert create_solver("unknown-plugin", box_problem) is None


def test_builtin_plugins_are_available():
    names = available_solvers()
    for name in ("dummy", "dummy-laststate", "bfgs", "lbfgs", "augmented-lagrangian"):
        assert name in names


def test_lookup_is_case_insensitive(box_problem):
    solver = create_solver("Augmented-Lagrangian", box_problem)
    assert solver is not None
    assert solver.plugin_name == "augmented-lagrangian"


def test_incompatible_problem_returns_none(box_problem, sum_function, make_linear):
    # Finite bounds are not supported by the quasi-Newton backends.
    assert create_solver("bfgs", box_problem) is None
    problem = Problem(sum_function)
    problem.add_constraint(make_linear([[1.0, -1.0]]), (0.0, 0.0))
    assert create_solver("lbfgs", problem) is None


def test_non_problem_is_a_usage_error():
    with pytest.raises(HandleTypeError):
        create_solver("dummy", object())


def test_register_custom_plugin(box_problem):
    @register_solver("Test-Constant")
    class ConstantSolver(Solver):
        def _run(self):
            return SolverError("constant")

    try:
        solver = create_solver("test-constant", box_problem)
        assert isinstance(solver, ConstantSolver)
        assert solver.minimum() is NO_SOLUTION
        solver.solve()
        assert solver.minimum().which is Outcome.ERROR
    finally:
        registry._SOLVERS.pop("test-constant", None)


def test_register_rejects_non_solver_and_duplicates():
    with pytest.raises(TypeError):
        register_solver("not-a-solver")(object)

    class Other(Solver):
        pass

    with pytest.raises(ValueError, match="already registered"):
        register_solver("dummy")(Other)


def test_failing_entry_point_returns_none(box_problem, monkeypatch):
    def broken(key):
        raise ImportError("missing native library")

    monkeypatch.setattr(registry, "_load_entry_point", broken)
    assert create_solver("from-entry-point", box_problem) is None


def test_entry_point_plugin_is_loaded(box_problem, monkeypatch):
    class EntryPointSolver(Solver):
        def _run(self):
            x = self._initial_point()
            return self._make_result(x)

    class FakeEntryPoint:
        name = "From-Entry-Point"
        value = "plugin:EntryPointSolver"

        def load(self):
            return EntryPointSolver

    monkeypatch.setattr(registry, "entry_points", lambda group: [FakeEntryPoint()])
    try:
        solver = create_solver("from-entry-point", box_problem)
        assert isinstance(solver, EntryPointSolver)
        assert "from-entry-point" in available_solvers()
        solver.solve()
        np.testing.assert_array_equal(solver.minimum().x, [0.0, 0.0])
    finally:
        registry._SOLVERS.pop("from-entry-point", None)


def test_parameters_override_defaults(box_problem):
    solver = create_solver(
        "augmented-lagrangian",
        box_problem,
        {"max-iterations": 5, "tolerance": ("custom tolerance", 1e-4)},
    )
    assert solver.parameters.value("max-iterations") == 5
    assert solver.parameters["max-iterations"].description == "maximum number of outer iterations"
    assert solver.parameters["tolerance"].as_tuple() == ("custom tolerance", 1e-4)
    assert solver.parameters.value("penalty-growth") == 10.0


@pytest.mark.parametrize("name", ["bfgs", "lbfgs", "augmented-lagrangian"])
def test_vector_cost_is_rejected_by_scalar_backends(name, make_linear):
    problem = Problem(make_linear([[1.0, 0.0], [0.0, 1.0]]))
    assert create_solver(name, problem) is None
    with pytest.raises(ConfigurationError, match="scalar cost"):
        registry._SOLVERS[name].check_problem(problem)
