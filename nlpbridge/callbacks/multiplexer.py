"""Fan one solver's iteration callback out to an ordered list of callbacks."""

from __future__ import annotations

from typing import Any, Callable, Iterator, List

from ..core.handles import TAG_MULTIPLEXER, Capsule, ForeignHandle, Handle, register_tag
from ..core.problem import Problem
from ..core.state import SolverState
from ..errors import NotCallableError
from ..logging import get_logger
from ..solvers.base import Solver

logger = get_logger(__name__)


class Multiplexer:
    """
    Ordered registry of iteration callbacks attached to ``solver``.

    Creating the multiplexer installs it as the solver's iteration callback.
    Each registered callback holds one share of ownership; removing it
    releases that share.

    Dispatch works on a snapshot of the list: callbacks removed while an
    iteration is being dispatched still run for that iteration. When some
    callbacks raise, the remaining ones still run, then the first error is
    re-raised and the others are logged.
    """

    def __init__(self, solver: Solver) -> None:
        self.solver = solver
        self._entries: List[Handle] = []
        solver.set_iteration_callback(self)

    def add(self, callback: Any) -> int:
        """Append ``callback`` (a callable or a capsule on one) and return its index."""
        if isinstance(callback, Capsule):
            if not callable(callback.get()):
                raise NotCallableError(f"{callback.tag} handle is not callable")
            entry: Handle = callback.share()
        elif callable(callback):
            entry = ForeignHandle(callback)
        else:
            raise NotCallableError(
                f"iteration callback must be callable, got {type(callback).__name__}"
            )
        self._entries.append(entry)
        logger.debug("added iteration callback %d", len(self._entries) - 1)
        return len(self._entries) - 1

    def remove(self, index: int) -> None:
        """Remove the callback at ``index`` and release it."""
        if not -len(self._entries) <= index < len(self._entries):
            raise IndexError(
                f"callback index {index} out of range ({len(self._entries)} registered)"
            )
        self._entries.pop(index).release()

    def clear(self) -> None:
        while self._entries:
            self._entries.pop().release()

    def callbacks(self) -> List[Callable[..., Any]]:
        return [entry.get() for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Callable[..., Any]]:
        return iter(self.callbacks())

    def __call__(self, problem: Problem, state: SolverState) -> None:
        errors: List[BaseException] = []
        for index, callback in enumerate(self.callbacks()):
            try:
                callback(problem, state)
            except Exception as exc:
                errors.append(exc)
                if len(errors) > 1:
                    logger.error(
                        "iteration callback %d failed: %s: %s",
                        index,
                        type(exc).__name__,
                        exc,
                    )
        if errors:
            raise errors[0]

    def __str__(self) -> str:
        lines = [f"Callback multiplexer ({len(self._entries)} callbacks)"]
        for index, callback in enumerate(self.callbacks()):
            lines.append(f"  [{index}] {type(callback).__name__}")
        return "\n".join(lines)


register_tag(TAG_MULTIPLEXER, Multiplexer)


__all__ = ["Multiplexer"]
