"""Memoizing wrapper around an expensive differentiable function."""

from __future__ import annotations

from collections import OrderedDict
from typing import Callable, Hashable, Tuple

import numpy as np

from ..errors import ConfigurationError
from ..logging import get_logger
from .buffers import Array
from .function import DifferentiableFunction, require_capability

logger = get_logger(__name__)

DEFAULT_CACHE_SIZE = 10

_Key = Tuple[Hashable, ...]


class CachedFunction(DifferentiableFunction):
    """
    Cache the values, gradients and Jacobians of ``function``.

    Each kind of result keeps its own least-recently-used store of at most
    ``size`` entries, keyed by the exact bytes of the argument.

    Parameters
    ----------
    function:
        Shared differentiable function to wrap.
    size:
        Number of arguments remembered per kind of result.
    """

    kind = "cached function"

    def __init__(self, function: DifferentiableFunction, size: int = DEFAULT_CACHE_SIZE) -> None:
        require_capability(function, "gradient", "cached function")
        if size < 1:
            raise ConfigurationError(f"cache size must be positive, got {size}")
        super().__init__(function.input_size, function.output_size, f"{function.label} (cached)")
        self._function = function
        self._size = int(size)
        self._stores: dict[str, "OrderedDict[_Key, Array]"] = {
            "compute": OrderedDict(),
            "gradient": OrderedDict(),
            "jacobian": OrderedDict(),
        }
        self.hits = 0
        self.misses = 0

    @property
    def function(self) -> DifferentiableFunction:
        return self._function

    def reset(self) -> None:
        """Forget every cached result."""
        for store in self._stores.values():
            store.clear()
        logger.debug("cleared cache of %s", self.label)

    def _lookup(
        self,
        kind: str,
        key: _Key,
        result: Array,
        evaluate: Callable[[Array], None],
    ) -> None:
        store = self._stores[kind]
        cached = store.get(key)
        if cached is not None:
            store.move_to_end(key)
            self.hits += 1
            result[...] = cached
            return
        self.misses += 1
        evaluate(result)
        store[key] = np.array(result, copy=True)
        if len(store) > self._size:
            store.popitem(last=False)

    def impl_compute(self, result: Array, x: Array) -> None:
        self._lookup(
            "compute", (x.tobytes(),), result, lambda out: self._function.compute(out, x)
        )

    def impl_gradient(self, result: Array, x: Array, function_id: int) -> None:
        self._lookup(
            "gradient",
            (function_id, x.tobytes()),
            result,
            lambda out: self._function.gradient(out, x, function_id),
        )

    def impl_jacobian(self, result: Array, x: Array) -> None:
        self._lookup(
            "jacobian", (x.tobytes(),), result, lambda out: self._function.jacobian(out, x)
        )


__all__ = ["CachedFunction", "DEFAULT_CACHE_SIZE"]
