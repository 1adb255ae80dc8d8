"""Tests for the BFGS and L-BFGS backends."""

import numpy as np
import pytest

from nlpbridge.core import Outcome, Problem
from nlpbridge.errors import CallbackError, ConfigurationError
from nlpbridge.solvers import create_solver


@pytest.fixture
def rosenbrock_problem(rosenbrock):
    problem = Problem(rosenbrock)
    problem.starting_point = [-1.2, 1.0]
    return problem


@pytest.mark.parametrize("name", ["bfgs", "lbfgs"])
def test_rosenbrock(name, rosenbrock_problem):
    solver = create_solver(name, rosenbrock_problem, {"tolerance": 1e-6})
    solver.solve()
    outcome = solver.minimum()
    assert outcome.which is Outcome.VALUE
    np.testing.assert_allclose(outcome.x, [1.0, 1.0], atol=1e-5)
    assert outcome.value[0] == pytest.approx(0.0, abs=1e-9)
    assert outcome.constraints.size == 0


@pytest.mark.parametrize("name", ["bfgs", "lbfgs"])
def test_armijo_line_search(name, make_distance):
    problem = Problem(make_distance([3.0, -1.0, 2.0]))
    solver = create_solver(name, problem, {"line-search": "armijo"})
    solver.solve()
    np.testing.assert_allclose(solver.minimum().x, [3.0, -1.0, 2.0], atol=1e-6)


def test_default_starting_point_is_origin(make_distance):
    problem = Problem(make_distance([1.0, 1.0]))
    solver = create_solver("bfgs", problem)
    seen = []
    solver.set_iteration_callback(lambda p, state: seen.append(state.x))
    solver.solve()
    np.testing.assert_array_equal(seen[0], [0.0, 0.0])
    assert solver.state.parameters.value("gradient-norm") == pytest.approx(0.0, abs=1e-8)


def test_iteration_limit_gives_warnings(rosenbrock_problem):
    solver = create_solver("lbfgs", rosenbrock_problem, {"max-iterations": 2})
    solver.solve()
    outcome = solver.minimum()
    assert outcome.which is Outcome.VALUE_WARNINGS
    assert "maximum number of iterations" in outcome.warnings[0]


def test_stop_request_ends_solve(rosenbrock_problem):
    solver = create_solver("bfgs", rosenbrock_problem)
    iterations = []

    def stop_at_third(problem, state):
        iterations.append(state.iteration)
        if state.iteration == 3:
            state.request_stop("third iteration")

    solver.set_iteration_callback(stop_at_third)
    solver.solve()
    outcome = solver.minimum()
    assert outcome.which is Outcome.VALUE_WARNINGS
    assert iterations == [1, 2, 3]
    assert "third iteration" in outcome.warnings[0]


def test_solve_again_resets_stop_request(rosenbrock_problem):
    solver = create_solver("bfgs", rosenbrock_problem)
    solver.set_iteration_callback(lambda p, s: s.request_stop())
    solver.solve()
    assert solver.minimum().which is Outcome.VALUE_WARNINGS
    solver.set_iteration_callback(None)
    solver.solve()
    assert solver.minimum().which is Outcome.VALUE


def test_callback_error_aborts_solve(rosenbrock_problem):
    solver = create_solver("bfgs", rosenbrock_problem)

    def failing(problem, state):
        raise KeyError("missing")

    solver.set_iteration_callback(failing)
    with pytest.raises(CallbackError, match="iteration callback"):
        solver.solve()


def test_unknown_line_search(make_distance):
    solver = create_solver("bfgs", Problem(make_distance([0.0])), {"line-search": "exact"})
    with pytest.raises(ConfigurationError):
        solver.solve()


def test_nan_cost_gives_error(sum_function):
    from nlpbridge.core import DifferentiableFunction

    f = DifferentiableFunction(1, 1, "nan")
    f.bind_compute(lambda r, x: r.fill(np.nan))
    f.bind_gradient(lambda g, x, i: g.fill(1.0))
    solver = create_solver("bfgs", Problem(f))
    solver.solve()
    outcome = solver.minimum()
    assert outcome.which is Outcome.ERROR
    assert "not finite" in outcome.message
    assert outcome.last_state is not None


@pytest.mark.parametrize("name", ["bfgs", "lbfgs"])
def test_argument_scales_change_the_iterates(name, make_distance):
    target = [3.0, -1.0]
    plain = Problem(make_distance(target))
    scaled = Problem(make_distance(target))
    scaled.argument_scales = [10.0, 0.5]
    paths = []
    for problem in (plain, scaled):
        solver = create_solver(name, problem)
        seen = []
        solver.set_iteration_callback(lambda p, state: seen.append(state.x))
        solver.solve()
        np.testing.assert_allclose(solver.minimum().x, target, atol=1e-6)
        paths.append(seen)
    # Steepest descent in scaled variables leaves the origin along another direction.
    assert not np.allclose(paths[0][1], paths[1][1])


def test_invalid_argument_scale_is_rejected_on_solve(make_distance):
    problem = Problem(make_distance([1.0, 1.0]))
    problem.argument_scales = [1.0, np.inf]
    solver = create_solver("bfgs", problem)
    with pytest.raises(ConfigurationError, match="argument scales"):
        solver.solve()
