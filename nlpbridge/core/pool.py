"""Aggregate several differentiable functions sharing one input space.

The pool's output is the concatenation of its members' outputs. After every
member has written its slice, an aggregation callable runs once over the
whole output vector and may rewrite it in place (normalize, reduce...).

Derivatives are not aggregated: output row ``i`` belongs to exactly one
member, and the pool's Jacobian is made of the members' Jacobians placed in
their own row bands, with zeros everywhere else.
"""

from __future__ import annotations

import bisect
from typing import Callable, Iterable, List, Tuple

from ..errors import CallbackError, ConfigurationError, NlpBridgeError, NotCallableError
from .buffers import Array
from .function import DifferentiableFunction, require_capability
from .handles import ForeignHandle

Aggregator = Callable[[Array, Array], None]


class FunctionPool(DifferentiableFunction):
    """
    Differentiable function built from a list of member functions.

    Parameters
    ----------
    aggregator:
        Callable ``aggregator(result, x)`` invoked once after the members
        have filled ``result``.
    functions:
        Non-empty sequence of differentiable functions with identical input
        sizes. They are shared: the pool does not own them.
    name:
        Optional name of the pool.

    Raises
    ------
    ConfigurationError
        If ``functions`` is empty or the input sizes differ.
    """

    kind = "function pool"

    def __init__(
        self,
        aggregator: Aggregator,
        functions: Iterable[DifferentiableFunction],
        name: str = "",
    ) -> None:
        members = list(functions)
        if not members:
            raise ConfigurationError("a function pool needs at least one function")
        for i, member in enumerate(members):
            require_capability(member, "gradient", f"pool member {i}")
        input_size = members[0].input_size
        for i, member in enumerate(members):
            if member.input_size != input_size:
                raise ConfigurationError(
                    f"pool member {i} ({member.label}) has input size "
                    f"{member.input_size}, expected {input_size}"
                )
        if not callable(aggregator):
            raise NotCallableError("pool aggregator must be callable")
        offsets = [0]
        for member in members:
            offsets.append(offsets[-1] + member.output_size)
        super().__init__(input_size, offsets[-1], name)
        self._members: Tuple[DifferentiableFunction, ...] = tuple(members)
        self._offsets: Tuple[int, ...] = tuple(offsets)
        self._aggregator = ForeignHandle(aggregator)

    @property
    def members(self) -> Tuple[DifferentiableFunction, ...]:
        return self._members

    @property
    def offsets(self) -> Tuple[int, ...]:
        """Cumulative output offsets; member ``k`` owns rows ``offsets[k]:offsets[k+1]``."""
        return self._offsets

    def member_for(self, function_id: int) -> Tuple[DifferentiableFunction, int]:
        """Return the member owning output ``function_id`` and its local index."""
        index = self._check_function_id(function_id)
        k = bisect.bisect_right(self._offsets, index) - 1
        return self._members[k], index - self._offsets[k]

    def _bands(self) -> List[Tuple[DifferentiableFunction, slice]]:
        return [
            (member, slice(self._offsets[k], self._offsets[k + 1]))
            for k, member in enumerate(self._members)
        ]

    def impl_compute(self, result: Array, x: Array) -> None:
        for member, band in self._bands():
            member.compute(result[band], x)
        try:
            self._aggregator(result, x)
        except NlpBridgeError:
            raise
        except Exception as exc:
            raise CallbackError.from_exception(f"aggregator of {self.label}", exc) from exc

    def impl_gradient(self, result: Array, x: Array, function_id: int) -> None:
        member, local = self.member_for(function_id)
        member.gradient(result, x, local)

    def impl_jacobian(self, result: Array, x: Array) -> None:
        result.fill(0.0)
        for member, band in self._bands():
            member.jacobian(result[band], x)

    def __str__(self) -> str:
        lines = [super().__str__(), "  members:"]
        for member, band in self._bands():
            lines.append(f"    [{band.start}:{band.stop}] {member.label}")
        return "\n".join(lines)


__all__ = ["FunctionPool"]
