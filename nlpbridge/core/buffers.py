"""Zero-copy float64 views exchanged with foreign callables.

Arguments supplied by callers are viewed, not copied, whenever they already
are C-contiguous ``float64`` arrays; anything else is converted exactly once.
Output storage must be pre-allocated by the caller with the exact shape, in
row-major (C) order, and is written in place. Shapes are never truncated or
padded.
"""

from __future__ import annotations

from typing import Any

import numpy as np

from ..errors import BufferTypeError, ShapeError

Array = np.ndarray

_NUMERIC_KINDS = "iuf"


def _to_array(obj: Any, name: str) -> np.ndarray:
    if isinstance(obj, np.ndarray):
        arr = obj
    else:
        try:
            # Also picks up CPU torch tensors through __array__.
            arr = np.asarray(obj)
        except (TypeError, ValueError) as exc:
            raise BufferTypeError(f"{name} cannot be converted to an array: {exc}") from exc
    if arr.dtype.kind not in _NUMERIC_KINDS:
        raise BufferTypeError(
            f"{name} must contain real numbers, got dtype {arr.dtype}"
        )
    return arr


def _read_only(arr: np.ndarray) -> np.ndarray:
    if arr.dtype != np.float64 or not arr.flags.c_contiguous:
        arr = np.ascontiguousarray(arr, dtype=np.float64)
    view = arr.view()
    view.flags.writeable = False
    return view


def as_input_vector(obj: Any, size: int, name: str = "argument") -> Array:
    """
    View ``obj`` as a read-only float64 vector of exactly ``size`` entries.

    Parameters
    ----------
    obj:
        Array-like (ndarray, list, tuple, CPU tensor).
    size:
        Required length.
    name:
        Used in error messages.

    Raises
    ------
    BufferTypeError
        If ``obj`` is not convertible to a real-valued array.
    ShapeError
        If ``obj`` is not one-dimensional or has the wrong length.
    """
    arr = _to_array(obj, name)
    if arr.ndim != 1:
        raise ShapeError(f"{name} must be a vector, got shape {arr.shape}")
    if arr.shape[0] != size:
        raise ShapeError(f"{name} must have size {size}, got {arr.shape[0]}")
    return _read_only(arr)


def as_input_matrix(obj: Any, rows: int, cols: int, name: str = "matrix") -> Array:
    """View ``obj`` as a read-only row-major ``(rows, cols)`` float64 matrix."""
    arr = _to_array(obj, name)
    if arr.ndim != 2:
        raise ShapeError(f"{name} must be a matrix, got shape {arr.shape}")
    if arr.shape != (rows, cols):
        raise ShapeError(f"{name} must have shape {(rows, cols)}, got {arr.shape}")
    return _read_only(arr)


def _check_output(obj: Any, shape: tuple[int, ...], name: str) -> Array:
    if not isinstance(obj, np.ndarray):
        raise BufferTypeError(
            f"{name} must be a pre-allocated numpy array, got {type(obj).__name__}"
        )
    if obj.dtype != np.float64:
        raise BufferTypeError(f"{name} must have dtype float64, got {obj.dtype}")
    if obj.shape != shape:
        raise ShapeError(f"{name} must have shape {shape}, got {obj.shape}")
    if not obj.flags.writeable:
        raise BufferTypeError(f"{name} is read-only")
    if not obj.flags.c_contiguous:
        raise BufferTypeError(f"{name} must be C-contiguous (row-major)")
    return obj


def as_output_vector(obj: Any, size: int, name: str = "result") -> Array:
    """Validate caller-owned output storage of length ``size``; never copies."""
    return _check_output(obj, (size,), name)


def as_output_matrix(obj: Any, rows: int, cols: int, name: str = "result") -> Array:
    """Validate caller-owned row-major ``(rows, cols)`` output storage."""
    return _check_output(obj, (rows, cols), name)


def new_vector(size: int) -> Array:
    return np.zeros(size, dtype=np.float64)


def new_matrix(rows: int, cols: int) -> Array:
    return np.zeros((rows, cols), dtype=np.float64)


__all__ = [
    "Array",
    "as_input_matrix",
    "as_input_vector",
    "as_output_matrix",
    "as_output_vector",
    "new_matrix",
    "new_vector",
]
