"""Solver plugin registry.

Backends register under a case-insensitive name, either in-process with
:func:`register_solver` or from an installed distribution through the
``nlpbridge.solvers`` entry point group::

    [project.entry-points."nlpbridge.solvers"]
    my-solver = "my_package.backend:MySolver"
"""

from __future__ import annotations

from importlib.metadata import entry_points
from typing import Any, Callable, Dict, List, Mapping, Optional, Type, TypeVar

from ..core.problem import Problem
from ..errors import ConfigurationError
from ..logging import get_logger
from .base import Solver

logger = get_logger(__name__)

ENTRY_POINT_GROUP = "nlpbridge.solvers"

_SOLVERS: Dict[str, Type[Solver]] = {}

S = TypeVar("S", bound=Type[Solver])


def register_solver(name: str) -> Callable[[S], S]:
    """Class decorator registering a :class:`Solver` subclass under ``name``."""
    key = name.lower()

    def decorator(cls: S) -> S:
        if not (isinstance(cls, type) and issubclass(cls, Solver)):
            raise TypeError(f"solver plugin {name!r} must subclass Solver")
        known = _SOLVERS.get(key)
        if known is not None and known is not cls:
            raise ValueError(f"solver plugin {name!r} already registered by {known.__name__}")
        cls.plugin_name = key
        _SOLVERS[key] = cls
        return cls

    return decorator


def _entry_point_names() -> List[str]:
    return [ep.name.lower() for ep in entry_points(group=ENTRY_POINT_GROUP)]


def _load_entry_point(key: str) -> Optional[Type[Solver]]:
    for ep in entry_points(group=ENTRY_POINT_GROUP):
        if ep.name.lower() != key:
            continue
        cls = ep.load()
        if not (isinstance(cls, type) and issubclass(cls, Solver)):
            raise TypeError(f"entry point {ep.value} is not a Solver subclass")
        if not cls.plugin_name:
            cls.plugin_name = key
        _SOLVERS[key] = cls
        return cls
    return None


def available_solvers() -> List[str]:
    """Names of the registered and installed solver plugins."""
    return sorted(set(_SOLVERS) | set(_entry_point_names()))


def create_solver(
    name: str,
    problem: Problem,
    parameters: Optional[Mapping[str, Any]] = None,
) -> Optional[Solver]:
    """
    Create the solver plugin ``name`` for ``problem``.

    Returns ``None`` (and logs a warning) when the plugin is unknown, fails
    to load, or rejects the problem.
    """
    key = str(name).lower()
    cls = _SOLVERS.get(key)
    if cls is None:
        try:
            cls = _load_entry_point(key)
        except Exception as exc:
            logger.warning("failed to load solver plugin %r: %s", name, exc)
            return None
    if cls is None:
        logger.warning(
            "unknown solver plugin %r (available: %s)",
            name,
            ", ".join(available_solvers()) or "none",
        )
        return None
    try:
        solver = cls(problem, parameters)
    except ConfigurationError as exc:
        logger.warning("solver plugin %r rejected the problem: %s", name, exc)
        return None
    logger.debug("created solver plugin %r", key)
    return solver


__all__ = [
    "ENTRY_POINT_GROUP",
    "available_solvers",
    "create_solver",
    "register_solver",
]
