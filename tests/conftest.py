"""Pytest configuration and shared fixtures for nlpbridge tests.

This module provides:
- Deterministic RNG fixtures for numpy and torch
- Sample functions and problems reused across test modules
"""

import os

import numpy as np
import pytest
import torch

from nlpbridge.core import DifferentiableFunction, Problem


@pytest.fixture(scope="function")
def rng() -> np.random.Generator:
    """Provide a deterministic numpy RNG for tests.

    Uses seed from TEST_RNG_SEED environment variable (default: 0).
    """
    seed = int(os.environ.get("TEST_RNG_SEED", "0"))
    return np.random.default_rng(seed)


@pytest.fixture(scope="function")
def torch_rng() -> torch.Generator:
    """Provide a deterministic CPU torch RNG for tests."""
    seed = int(os.environ.get("TEST_RNG_SEED", "0"))
    generator = torch.Generator(device="cpu")
    generator.manual_seed(seed)
    return generator


@pytest.fixture(scope="function", autouse=True)
def set_random_seeds() -> None:
    """Auto-use fixture to set global random seeds for reproducibility."""
    seed = int(os.environ.get("TEST_RNG_SEED", "0"))
    np.random.seed(seed)
    torch.manual_seed(seed)


def make_sum_function() -> DifferentiableFunction:
    """``f(x) = x0 + x1`` with a constant gradient."""
    f = DifferentiableFunction(2, 1, "sum")

    def compute(result, x):
        result[0] = x[0] + x[1]

    def gradient(result, x, function_id):
        result[:] = 1.0

    f.bind_compute(compute)
    f.bind_gradient(gradient)
    return f


def make_distance_function(target) -> DifferentiableFunction:
    """``f(x) = ||x - target||^2``."""
    target = np.asarray(target, dtype=float)
    f = DifferentiableFunction(target.size, 1, "squared distance")

    def compute(result, x):
        result[0] = float(np.sum((x - target) ** 2))

    def gradient(result, x, function_id):
        result[:] = 2.0 * (x - target)

    f.bind_compute(compute)
    f.bind_gradient(gradient)
    return f


def make_linear_function(weights, name="linear") -> DifferentiableFunction:
    """``f(x) = weights @ x`` for a 2-D ``weights`` matrix."""
    weights = np.atleast_2d(np.asarray(weights, dtype=float))
    f = DifferentiableFunction(weights.shape[1], weights.shape[0], name)

    def compute(result, x):
        result[:] = weights @ x

    def gradient(result, x, function_id):
        result[:] = weights[function_id]

    f.bind_compute(compute)
    f.bind_gradient(gradient)
    return f


@pytest.fixture
def sum_function() -> DifferentiableFunction:
    return make_sum_function()


@pytest.fixture
def box_problem() -> Problem:
    """Squared distance to (5, 5) inside the box [0, 10]^2, starting at the origin."""
    problem = Problem(make_distance_function([5.0, 5.0]))
    problem.argument_bounds = [(0.0, 10.0), (0.0, 10.0)]
    problem.starting_point = np.zeros(2)
    return problem


@pytest.fixture
def rosenbrock() -> DifferentiableFunction:
    f = DifferentiableFunction(2, 1, "rosenbrock")

    def compute(result, x):
        result[0] = (1 - x[0]) ** 2 + 100 * (x[1] - x[0] ** 2) ** 2

    def gradient(result, x, function_id):
        result[0] = -2 * (1 - x[0]) - 400 * x[0] * (x[1] - x[0] ** 2)
        result[1] = 200 * (x[1] - x[0] ** 2)

    f.bind_compute(compute)
    f.bind_gradient(gradient)
    return f


@pytest.fixture
def make_distance():
    return make_distance_function


@pytest.fixture
def make_linear():
    return make_linear_function
