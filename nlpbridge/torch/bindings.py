"""Bind PyTorch callables into function slots with autograd derivatives."""

from __future__ import annotations

from typing import Callable

import torch
from torch.autograd.functional import hessian as _autograd_hessian
from torch.autograd.functional import jacobian as _autograd_jacobian

from ..core.buffers import Array
from ..core.function import Function, require_capability
from ..logging import get_logger

logger = get_logger(__name__)

TorchCallable = Callable[[torch.Tensor], torch.Tensor]


def as_argument_tensor(x: Array) -> torch.Tensor:
    """
    Copy a read-only argument view into a float64 tensor.

    Parameters
    ----------
    x:
        Argument buffer handed to a bound callable.

    Returns
    -------
    torch.Tensor
        1-D float64 tensor, detached from any graph.
    """
    return torch.tensor(x, dtype=torch.float64)


def as_result_tensor(result: Array) -> torch.Tensor:
    """Zero-copy tensor alias of a writable output buffer."""
    return torch.from_numpy(result)


def _flat(fn: TorchCallable) -> TorchCallable:
    def wrapped(t: torch.Tensor) -> torch.Tensor:
        return torch.as_tensor(fn(t), dtype=torch.float64).reshape(-1)

    return wrapped


def bind_torch(function: Function, fn: TorchCallable) -> Function:
    """
    Bind ``fn(x) -> y`` as the compute slot of ``function`` and derive the
    remaining slots with ``torch.autograd``.

    Differentiable functions get gradient and Jacobian callables; twice
    differentiable functions also get a Hessian callable. ``fn`` must be
    differentiable with respect to its argument and return ``output_size``
    values.

    Parameters
    ----------
    function:
        Function whose slots are bound.
    fn:
        Torch callable mapping a 1-D float64 tensor to a tensor of
        ``function.output_size`` entries.

    Returns
    -------
    Function
        ``function`` itself.
    """
    require_capability(function, "compute", "torch binding target")
    flat = _flat(fn)

    def compute(result: Array, x: Array) -> None:
        with torch.no_grad():
            as_result_tensor(result).copy_(flat(as_argument_tensor(x)))

    function.bind_compute(compute)

    if function.has_capability("gradient"):

        def gradient(result: Array, x: Array, function_id: int) -> None:
            t = as_argument_tensor(x).requires_grad_(True)
            (grad,) = torch.autograd.grad(flat(t)[function_id], t, allow_unused=True)
            out = as_result_tensor(result)
            if grad is None:
                out.zero_()
            else:
                out.copy_(grad)

        def jacobian(result: Array, x: Array) -> None:
            jac = _autograd_jacobian(flat, as_argument_tensor(x))
            as_result_tensor(result).copy_(jac.reshape(result.shape))

        function.bind_gradient(gradient)  # type: ignore[attr-defined]
        function.bind_jacobian(jacobian)  # type: ignore[attr-defined]

    if function.has_capability("hessian"):

        def hessian(result: Array, x: Array, function_id: int) -> None:
            hess = _autograd_hessian(lambda t: flat(t)[function_id], as_argument_tensor(x))
            as_result_tensor(result).copy_(hess.reshape(result.shape))

        function.bind_hessian(hessian)  # type: ignore[attr-defined]

    logger.debug("bound torch callable to %s", function.label)
    return function


__all__ = ["as_argument_tensor", "as_result_tensor", "bind_torch"]
