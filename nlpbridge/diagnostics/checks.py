"""Numeric sanity checks run on evaluation results in debug mode."""

from __future__ import annotations

import numpy as np

from ..errors import NonFiniteValueError
from .debug_mode import is_debug_enabled


def assert_finite(values: np.ndarray, what: str) -> None:
    """
    Raise if ``values`` contains NaN or infinite entries.

    Parameters
    ----------
    values:
        Array to check.
    what:
        Description used in the error message, e.g. ``"compute of f"``.

    Raises
    ------
    NonFiniteValueError
        If any entry is not finite.
    """
    mask = ~np.isfinite(values)
    if mask.any():
        positions = [tuple(int(i) for i in idx) for idx in np.argwhere(mask)[:5]]
        raise NonFiniteValueError(
            f"{what} produced non-finite values at {positions}"
        )


def check_result(values: np.ndarray, what: str) -> None:
    """Run :func:`assert_finite` only when debug mode is enabled."""
    if is_debug_enabled():
        assert_finite(values, what)


__all__ = ["assert_finite", "check_result"]
