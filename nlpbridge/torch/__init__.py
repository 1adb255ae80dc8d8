"""PyTorch integration: autograd-backed function slots."""

from .bindings import as_argument_tensor, as_result_tensor, bind_torch

__all__ = ["as_argument_tensor", "as_result_tensor", "bind_torch"]
