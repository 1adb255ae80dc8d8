"""Reference-counted handles for objects crossing the native/foreign boundary.

A :class:`Handle` is one share of ownership over an object.  Shares created
with :meth:`Handle.share` point to the same control cell; the object's
destructor runs exactly once, when the last share is released, either
explicitly through :meth:`Handle.release` or implicitly when the share is
garbage collected.  Borrowed handles (``owned=False``) never run a
destructor.

:class:`ForeignHandle` wraps foreign callables bound into native slots and
:class:`Capsule` is the tagged opaque handle used by :mod:`nlpbridge.wrap`.
"""

from __future__ import annotations

import weakref
from typing import Any, Callable, Dict, Optional, Type

from ..errors import HandleTypeError
from ..logging import get_logger

logger = get_logger(__name__)

Destructor = Callable[[Any], None]

TAG_FUNCTION = "nlpbridge.Function"
TAG_PROBLEM = "nlpbridge.Problem"
TAG_SOLVER = "nlpbridge.Solver"
TAG_MULTIPLEXER = "nlpbridge.Multiplexer"
TAG_SOLVER_CALLBACK = "nlpbridge.SolverCallback"
TAG_SOLVER_STATE = "nlpbridge.SolverState"
TAG_RESULT = "nlpbridge.Result"
TAG_RESULT_WITH_WARNINGS = "nlpbridge.ResultWithWarnings"
TAG_SOLVER_ERROR = "nlpbridge.SolverError"
TAG_OPTIMIZATION_LOGGER = "nlpbridge.OptimizationLogger"
TAG_NO_SOLUTION = "nlpbridge.NoSolution"

# tag -> payload type, filled by the modules defining the payload types
_registry: Dict[str, Type[Any]] = {}


def register_tag(tag: str, payload_type: Type[Any]) -> None:
    """Associate ``tag`` with the type its capsules must carry."""
    known = _registry.get(tag)
    if known is not None and known is not payload_type:
        raise ValueError(f"tag {tag!r} already registered for {known.__name__}")
    _registry[tag] = payload_type


def registered_tags() -> Dict[str, Type[Any]]:
    return dict(_registry)


class _Cell:
    """Control block shared by all shares of one object."""

    def __init__(self, obj: Any, destructor: Optional[Destructor], owned: bool) -> None:
        self.obj = obj
        self.owned = owned
        self.destructor = destructor if owned else None
        self.count = 0

    def incref(self) -> None:
        self.count += 1

    def decref(self) -> None:
        self.count -= 1
        if self.count > 0:
            return
        obj, destructor = self.obj, self.destructor
        self.obj = None
        self.destructor = None
        if destructor is not None:
            logger.debug("destroying %s", type(obj).__name__)
            destructor(obj)


class Handle:
    """One share of ownership over ``obj``."""

    def __init__(
        self,
        obj: Any,
        destructor: Optional[Destructor] = None,
        owned: bool = True,
    ) -> None:
        self._attach(_Cell(obj, destructor, owned))

    def _attach(self, cell: _Cell) -> None:
        self._cell = cell
        cell.incref()
        self._finalizer = weakref.finalize(self, cell.decref)

    @classmethod
    def borrowed(cls, obj: Any, *args: Any, **kwargs: Any) -> "Handle":
        """Non-owning handle: releasing it never destroys ``obj``."""
        kwargs["owned"] = False
        return cls(obj, *args, **kwargs)

    def share(self) -> "Handle":
        """Return a new share of the same object (acquire)."""
        if not self.alive:
            raise HandleTypeError(f"cannot share a released {self!r}")
        other = self.__class__.__new__(self.__class__)
        other._copy_from(self)
        other._attach(self._cell)
        return other

    def _copy_from(self, other: "Handle") -> None:
        pass

    def release(self) -> None:
        """Give up this share. Releasing twice is a no-op."""
        self._finalizer()

    def get(self) -> Any:
        if not self.alive:
            raise HandleTypeError(f"{self!r} has been released")
        return self._cell.obj

    @property
    def alive(self) -> bool:
        return self._finalizer.alive and self._cell.count > 0

    @property
    def refcount(self) -> int:
        """Number of live shares of the underlying object."""
        return self._cell.count

    @property
    def owned(self) -> bool:
        return self._cell.owned

    def __repr__(self) -> str:
        state = "alive" if self.alive else "released"
        name = type(self._cell.obj).__name__ if self.alive else "-"
        return f"<{type(self).__name__} {name} ({state}, refs={self.refcount})>"


class ForeignHandle(Handle):
    """Handle on a foreign callable bound into a native evaluation slot."""

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self.get()(*args, **kwargs)

    def holds(self, obj: Any) -> bool:
        return self.alive and self._cell.obj is obj


class Capsule(Handle):
    """Tagged opaque handle on a native object."""

    def __init__(
        self,
        obj: Any,
        tag: str,
        destructor: Optional[Destructor] = None,
        owned: bool = True,
    ) -> None:
        expected = _registry.get(tag)
        if expected is not None and not isinstance(obj, expected):
            raise HandleTypeError(
                f"{tag} capsule cannot hold a {type(obj).__name__}"
            )
        self.tag = tag
        super().__init__(obj, destructor, owned)

    def _copy_from(self, other: Handle) -> None:
        self.tag = other.tag  # type: ignore[attr-defined]

    def __repr__(self) -> str:
        state = "alive" if self.alive else "released"
        return f"<Capsule {self.tag} ({state}, refs={self.refcount})>"


def unwrap(handle: Any, *tags: str) -> Any:
    """
    Return the payload of ``handle`` after checking its tag.

    Parameters
    ----------
    handle:
        Object expected to be a :class:`Capsule`.
    tags:
        Accepted tags; at least one is required.

    Raises
    ------
    HandleTypeError
        If ``handle`` is not a capsule, carries another tag or was released.
    """
    if not isinstance(handle, Capsule):
        raise HandleTypeError(
            f"expected a {' or '.join(tags)} handle, got {type(handle).__name__}"
        )
    if handle.tag not in tags:
        raise HandleTypeError(f"expected a {' or '.join(tags)} handle, got {handle.tag}")
    return handle.get()


def unwrap_as(handle: Any, tag: str, payload_type: Type[Any], what: str) -> Any:
    """Unwrap ``handle`` and check that its payload is a ``payload_type``."""
    obj = unwrap(handle, tag)
    if not isinstance(obj, payload_type):
        raise HandleTypeError(f"{what} must be a {payload_type.__name__}")
    return obj


__all__ = [
    "Capsule",
    "ForeignHandle",
    "Handle",
    "TAG_FUNCTION",
    "TAG_MULTIPLEXER",
    "TAG_NO_SOLUTION",
    "TAG_OPTIMIZATION_LOGGER",
    "TAG_PROBLEM",
    "TAG_RESULT",
    "TAG_RESULT_WITH_WARNINGS",
    "TAG_SOLVER",
    "TAG_SOLVER_CALLBACK",
    "TAG_SOLVER_ERROR",
    "TAG_SOLVER_STATE",
    "register_tag",
    "registered_tags",
    "unwrap",
    "unwrap_as",
]
