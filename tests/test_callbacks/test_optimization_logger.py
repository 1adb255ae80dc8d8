"""Tests for the optimization logger callback."""

import gc
import json
import shutil

import numpy as np
import pytest

from nlpbridge.callbacks import Multiplexer, OptimizationLogger
from nlpbridge.solvers import create_solver


LOG_FILES = (
    "journal.log",
    "problem.txt",
    "x.csv",
    "cost.csv",
    "constraint-violation.csv",
    "state-parameters.json",
)


@pytest.fixture
def constrained_solver(box_problem, make_linear):
    box_problem.add_constraint(make_linear([[1.0, 1.0]], "sum"), (-np.inf, 4.0))
    return create_solver("augmented-lagrangian", box_problem)


def _solve_with_logger(solver, log_dir):
    multiplexer = Multiplexer(solver)
    opt_logger = OptimizationLogger(solver, log_dir)
    multiplexer.add(opt_logger)
    solver.solve()
    return opt_logger


def test_files_written_on_close(constrained_solver, tmp_path):
    log_dir = tmp_path / "run"
    opt_logger = _solve_with_logger(constrained_solver, log_dir)
    assert log_dir.is_dir()
    assert not (log_dir / "x.csv").exists()
    opt_logger.close()
    assert opt_logger.closed
    for name in LOG_FILES:
        assert (log_dir / name).is_file(), name


def test_csv_contents(constrained_solver, tmp_path):
    opt_logger = _solve_with_logger(constrained_solver, tmp_path)
    opt_logger.close()
    count = constrained_solver.state.iteration
    assert opt_logger.iterations == count

    lines = (tmp_path / "x.csv").read_text().splitlines()
    assert lines[0] == "iteration,x0,x1"
    assert len(lines) == count + 1
    x = np.loadtxt(tmp_path / "x.csv", delimiter=",", skiprows=1, ndmin=2)
    np.testing.assert_array_equal(x[:, 0], np.arange(1, count + 1))
    np.testing.assert_allclose(x[-1, 1:], constrained_solver.minimum().x)

    cost = np.loadtxt(tmp_path / "cost.csv", delimiter=",", skiprows=1, ndmin=2)
    assert cost.shape == (count, 2)
    assert cost[-1, 1] == pytest.approx(constrained_solver.minimum().value[0])
    header = (tmp_path / "constraint-violation.csv").read_text().splitlines()[0]
    assert header == "iteration,constraint_violation"


def test_state_parameters_json(constrained_solver, tmp_path):
    _solve_with_logger(constrained_solver, tmp_path).close()
    with open(tmp_path / "state-parameters.json", encoding="utf-8") as f:
        records = json.load(f)
    assert records[0]["iteration"] == 1
    penalty = records[0]["parameters"]["penalty"]
    assert penalty["value"] == 10.0
    assert penalty["description"] == ""


def test_problem_and_journal_text(constrained_solver, tmp_path):
    _solve_with_logger(constrained_solver, tmp_path).close()
    problem_text = (tmp_path / "problem.txt").read_text()
    assert "squared distance" in problem_text
    assert "augmented-lagrangian" in problem_text
    journal = (tmp_path / "journal.log").read_text()
    assert "iteration 1" in journal
    assert "Optimization finished" in journal


def test_context_manager_and_idempotent_close(constrained_solver, tmp_path):
    multiplexer = Multiplexer(constrained_solver)
    with OptimizationLogger(constrained_solver, tmp_path) as opt_logger:
        multiplexer.add(opt_logger)
        constrained_solver.solve()
    assert opt_logger.closed
    first = (tmp_path / "x.csv").read_text()
    opt_logger.close()
    assert (tmp_path / "x.csv").read_text() == first


def test_iterations_after_close_are_dropped(constrained_solver, tmp_path):
    opt_logger = _solve_with_logger(constrained_solver, tmp_path)
    opt_logger.close()
    recorded = opt_logger.iterations
    constrained_solver.solve()
    assert opt_logger.iterations == recorded
    assert "closed" in str(opt_logger)


def test_files_written_on_garbage_collection(box_problem, tmp_path):
    solver = create_solver("augmented-lagrangian", box_problem)
    opt_logger = OptimizationLogger(solver, tmp_path)
    opt_logger(box_problem, solver.state)
    del opt_logger
    gc.collect()
    assert (tmp_path / "x.csv").is_file()
    assert len((tmp_path / "x.csv").read_text().splitlines()) == 2


def test_empty_log(box_problem, tmp_path):
    solver = create_solver("augmented-lagrangian", box_problem)
    OptimizationLogger(solver, tmp_path).close()
    assert (tmp_path / "x.csv").read_text().splitlines() == ["iteration,x0,x1"]


def test_failed_close_can_be_retried(constrained_solver, tmp_path):
    log_dir = tmp_path / "run"
    opt_logger = _solve_with_logger(constrained_solver, log_dir)
    shutil.rmtree(log_dir)
    with pytest.raises(OSError):
        opt_logger.close()
    assert not opt_logger.closed
    log_dir.mkdir()
    opt_logger.close()
    assert opt_logger.closed
    for name in LOG_FILES:
        assert (log_dir / name).is_file()
