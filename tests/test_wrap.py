"""Tests for the procedural handle-based surface."""

import numpy as np
import pytest

from nlpbridge import wrap
from nlpbridge.core.handles import (
    TAG_FUNCTION,
    TAG_NO_SOLUTION,
    TAG_OPTIMIZATION_LOGGER,
    TAG_PROBLEM,
    TAG_RESULT,
    TAG_RESULT_WITH_WARNINGS,
    TAG_SOLVER,
    TAG_SOLVER_ERROR,
    TAG_SOLVER_STATE,
    Capsule,
)
from nlpbridge.errors import (
    CallbackNotBoundError,
    CapabilityError,
    HandleTypeError,
    HessianNotImplementedError,
    ShapeError,
)


def _sum_function():
    f = wrap.create_differentiable_function(2, 1, "sum")

    def compute(result, x):
        result[0] = x[0] + x[1]

    def gradient(result, x, function_id):
        result[0] = 1.0
        result[1] = 1.0

    wrap.bind_compute(f, compute)
    wrap.bind_gradient(f, gradient)
    return f


def _distance_function(target):
    target = np.asarray(target, dtype=float)
    f = wrap.create_differentiable_function(target.size, 1, "squared distance")
    wrap.bind_compute(f, lambda r, x: r.__setitem__(0, np.sum((x - target) ** 2)))
    wrap.bind_gradient(f, lambda g, x, i: g.__setitem__(slice(None), 2.0 * (x - target)))
    return f


def _box_problem():
    problem = wrap.create_problem(_distance_function([5.0, 5.0]))
    wrap.set_starting_point(problem, [0.0, 0.0])
    wrap.set_argument_bounds(problem, [(0.0, 10.0), (0.0, 10.0)])
    return problem


def test_sum_function_evaluation():
    f = _sum_function()
    assert f.tag == TAG_FUNCTION
    assert wrap.input_size(f) == 2
    assert wrap.output_size(f) == 1
    assert wrap.get_name(f) == "sum"

    result = np.zeros(1)
    wrap.compute(f, result, [1.0, 2.0])
    np.testing.assert_array_equal(result, [3.0])

    grad = np.zeros(2)
    wrap.gradient(f, grad, [1.0, 2.0], 0)
    np.testing.assert_array_equal(grad, [1.0, 1.0])

    jac = np.zeros((1, 2))
    wrap.jacobian(f, jac, [1.0, 2.0])
    np.testing.assert_array_equal(jac, [[1.0, 1.0]])


def test_wrong_result_size_is_rejected():
    f = _sum_function()
    with pytest.raises(ShapeError):
        wrap.compute(f, np.zeros(2), [1.0, 2.0])
    with pytest.raises(ShapeError):
        wrap.compute(f, np.zeros(1), [1.0, 2.0, 3.0])


def test_plain_function_capabilities():
    f = wrap.create_function(2, 1, "plain")
    with pytest.raises(CallbackNotBoundError):
        wrap.compute(f, np.zeros(1), [0.0, 0.0])
    with pytest.raises(CapabilityError):
        wrap.bind_gradient(f, lambda g, x, i: None)
    with pytest.raises(CapabilityError):
        wrap.create_problem(f)


def test_hessian_without_callback_fails_loudly():
    f = wrap.create_twice_differentiable_function(2, 1, "quadratic")
    with pytest.raises(HessianNotImplementedError):
        wrap.hessian(f, np.zeros((2, 2)), [0.0, 0.0])
    wrap.bind_hessian(f, lambda h, x, i: h.__setitem__(slice(None), 2.0 * np.eye(2)))
    hess = np.zeros((2, 2))
    wrap.hessian(f, hess, [0.0, 0.0])
    np.testing.assert_array_equal(hess, 2.0 * np.eye(2))


def test_wrong_tag_is_rejected():
    problem = _box_problem()
    with pytest.raises(HandleTypeError):
        wrap.input_size(problem)
    with pytest.raises(HandleTypeError):
        wrap.solve(problem)
    with pytest.raises(HandleTypeError):
        wrap.get_starting_point(object())


def test_problem_accessors():
    problem = _box_problem()
    assert problem.tag == TAG_PROBLEM
    np.testing.assert_array_equal(wrap.get_starting_point(problem), [0.0, 0.0])
    np.testing.assert_array_equal(wrap.get_argument_bounds(problem), [[0.0, 10.0], [0.0, 10.0]])
    np.testing.assert_array_equal(wrap.get_argument_scales(problem), [1.0, 1.0])
    wrap.set_argument_scales(problem, [2.0, 0.5])
    np.testing.assert_array_equal(wrap.get_argument_scales(problem), [2.0, 0.5])
    with pytest.raises(ShapeError):
        wrap.set_argument_bounds(problem, [(0.0, 1.0)])
    wrap.add_constraint(problem, _sum_function(), (0.0, 20.0))
    assert "constraints: 1" in wrap.describe(problem)


def test_full_solve_flow():
    problem = _box_problem()
    solver = wrap.create_solver("augmented-lagrangian", problem)
    assert solver.tag == TAG_SOLVER
    assert wrap.minimum(solver) == (TAG_NO_SOLUTION, None)
    wrap.solve(solver)
    tag, outcome = wrap.minimum(solver)
    assert tag == TAG_RESULT
    data = wrap.result_to_dict(outcome)
    assert data["inputSize"] == 2
    assert data["outputSize"] == 1
    np.testing.assert_allclose(data["x"], [5.0, 5.0], atol=1e-6)
    np.testing.assert_allclose(data["value"], [0.0], atol=1e-10)
    with pytest.raises(HandleTypeError):
        wrap.solver_error_to_dict(outcome)


def test_unknown_solver_returns_none():
    assert wrap.create_solver("no-such-solver", _box_problem()) is None


def test_solver_error_outcome():
    solver = wrap.create_solver("dummy-laststate", _box_problem())
    wrap.solve(solver)
    tag, outcome = wrap.minimum(solver)
    assert tag == TAG_SOLVER_ERROR
    data = wrap.solver_error_to_dict(outcome)
    assert data["error"] == "The dummy solver always fail."
    np.testing.assert_array_equal(data["lastState"]["x"], [0.0, 0.0])


def test_vector_cost_problem():
    cost = wrap.create_differentiable_function(2, 2, "residuals")
    wrap.bind_compute(cost, lambda r, x: r.__setitem__(slice(None), x - 1.0))
    wrap.bind_gradient(cost, lambda g, x, i: g.__setitem__(slice(None), np.eye(2)[i]))
    problem = wrap.create_problem(cost)
    assert wrap.create_solver("bfgs", problem) is None
    solver = wrap.create_solver("dummy-laststate", problem)
    wrap.solve(solver)
    tag, outcome = wrap.minimum(solver)
    assert tag == TAG_SOLVER_ERROR
    data = wrap.solver_error_to_dict(outcome)
    assert data["lastState"]["outputSize"] == 2
    np.testing.assert_array_equal(data["lastState"]["value"], [-1.0, -1.0])


def test_solver_parameters():
    solver = wrap.create_solver("augmented-lagrangian", _box_problem())
    parameters = wrap.get_solver_parameters(solver)
    assert parameters["max-iterations"] == ("maximum number of outer iterations", 50)
    wrap.set_solver_parameter(solver, "max-iterations", 3)
    assert wrap.get_solver_parameters(solver)["max-iterations"][1] == 3
    wrap.set_solver_parameters(solver, {"tolerance": ("tolerance", 1e-3)})
    assert list(wrap.get_solver_parameters(solver)) == ["tolerance"]


def test_iteration_callbacks_receive_handles():
    problem = _box_problem()
    solver = wrap.create_solver("augmented-lagrangian", problem)
    multiplexer = wrap.create_multiplexer(solver)
    seen = []

    def observe(problem_handle, state_handle):
        assert problem_handle.tag == TAG_PROBLEM
        assert state_handle.tag == TAG_SOLVER_STATE
        seen.append(
            (
                wrap.get_solver_state_x(state_handle),
                wrap.get_solver_state_cost(state_handle),
                wrap.get_solver_state_constraint_violation(state_handle),
                wrap.get_solver_state_parameters(state_handle),
            )
        )

    index = wrap.add_iteration_callback(multiplexer, observe)
    assert index == 0
    wrap.solve(solver)
    x, cost, violation, parameters = seen[-1]
    np.testing.assert_allclose(x, [5.0, 5.0], atol=1e-6)
    assert cost == pytest.approx(0.0, abs=1e-10)
    assert violation == 0.0
    assert "penalty" in parameters

    wrap.remove_iteration_callback(multiplexer, index)
    count = len(seen)
    wrap.solve(solver)
    assert len(seen) == count


def test_solver_callback_can_stop_through_state_parameters():
    problem = wrap.create_problem(_distance_function([1.0, 1.0]))
    wrap.add_constraint(problem, _sum_function(), (1.0, 1.0))
    solver = wrap.create_solver("augmented-lagrangian", problem)
    multiplexer = wrap.create_multiplexer(solver)
    callback = wrap.create_solver_callback(problem)

    def stop(problem_handle, state_handle):
        parameters = wrap.get_solver_state_parameters(state_handle)
        parameters["stop"] = ("requested from a handle callback", True)
        wrap.set_solver_state_parameters(state_handle, parameters)

    wrap.bind_solver_callback(callback, stop)
    wrap.add_iteration_callback(multiplexer, callback)
    wrap.solve(solver)
    tag, outcome = wrap.minimum(solver)
    assert tag == TAG_RESULT_WITH_WARNINGS
    data = wrap.result_with_warnings_to_dict(outcome)
    assert "requested from a handle callback" in data["warnings"][0]


def test_state_setters():
    problem = _box_problem()
    solver = wrap.create_solver("augmented-lagrangian", problem)
    multiplexer = wrap.create_multiplexer(solver)

    def rewrite(problem_handle, state_handle):
        wrap.set_solver_state_x(state_handle, [1.0, 2.0])
        wrap.set_solver_state_cost(state_handle, 7.0)
        wrap.set_solver_state_constraint_violation(state_handle, None)

    wrap.add_iteration_callback(multiplexer, rewrite)
    wrap.solve(solver)
    state = solver.get().state
    np.testing.assert_array_equal(state.x, [1.0, 2.0])
    assert state.cost == 7.0
    assert state.constraint_violation is None


def test_add_iteration_callback_rejects_other_handles():
    solver = wrap.create_solver("augmented-lagrangian", _box_problem())
    multiplexer = wrap.create_multiplexer(solver)
    with pytest.raises(HandleTypeError):
        wrap.add_iteration_callback(multiplexer, _sum_function())


def test_optimization_logger_handle(tmp_path):
    solver = wrap.create_solver("augmented-lagrangian", _box_problem())
    multiplexer = wrap.create_multiplexer(solver)
    log_dir = tmp_path / "log"
    opt_logger = wrap.add_optimization_logger(solver, multiplexer, str(log_dir))
    assert opt_logger.tag == TAG_OPTIMIZATION_LOGGER
    wrap.solve(solver)
    assert "iterations" in wrap.describe(opt_logger)
    opt_logger.release()
    assert not (log_dir / "x.csv").exists()
    wrap.remove_iteration_callback(multiplexer, 0)
    assert (log_dir / "x.csv").is_file()


def test_fd_and_cached_wrappers():
    f = wrap.create_function(2, 1, "product")
    wrap.bind_compute(f, lambda r, x: r.__setitem__(0, x[0] * x[1]))
    fd = wrap.create_fd_wrapper(f, 1e-6, "five-points")
    grad = np.zeros(2)
    wrap.gradient(fd, grad, [2.0, 3.0])
    np.testing.assert_allclose(grad, [3.0, 2.0], atol=1e-6)
    cached = wrap.create_cached_function(fd, 4)
    value = np.zeros(1)
    wrap.compute(cached, value, [2.0, 3.0])
    np.testing.assert_array_equal(value, [6.0])


def test_function_pool_handle():
    pool = wrap.create_function_pool(
        lambda result, x: None, [_sum_function(), _sum_function()], "pair"
    )
    assert wrap.output_size(pool) == 2
    result = np.zeros(2)
    wrap.compute(pool, result, [1.0, 1.0])
    np.testing.assert_array_equal(result, [2.0, 2.0])


def test_describe():
    f = _sum_function()
    assert "sum" in wrap.describe(f)
    solver = wrap.create_solver("augmented-lagrangian", _box_problem())
    assert "augmented-lagrangian" in wrap.describe(solver)
    with pytest.raises(HandleTypeError):
        wrap.describe("not a handle")
    with pytest.raises(HandleTypeError):
        wrap.describe(Capsule(object(), "nlpbridge.Unknown"))
