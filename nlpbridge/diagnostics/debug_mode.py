"""
Process-wide debug switch.

In debug mode every function evaluation checks its output buffer for NaN and
infinite values before handing it back. The switch starts from the
``NLPBRIDGE_DEBUG`` environment variable, read once at import.
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Iterator, Mapping, Optional

ENV_VAR = "NLPBRIDGE_DEBUG"
_ENABLING_VALUES = frozenset({"1", "true", "yes", "on"})


def debug_from_environment(environ: Optional[Mapping[str, str]] = None) -> bool:
    """Whether ``NLPBRIDGE_DEBUG`` in ``environ`` (default ``os.environ``) turns debug mode on."""
    if environ is None:
        environ = os.environ
    return environ.get(ENV_VAR, "").strip().lower() in _ENABLING_VALUES


_enabled = debug_from_environment()


def is_debug_enabled() -> bool:
    return _enabled


def set_debug_enabled(enabled: bool) -> bool:
    """Switch debug mode on or off and return the previous setting."""
    global _enabled
    previous, _enabled = _enabled, bool(enabled)
    return previous


@contextmanager
def debug_context(enabled: bool = True) -> Iterator[None]:
    """Run a block with debug mode set to ``enabled``, then restore it."""
    previous = set_debug_enabled(enabled)
    try:
        yield
    finally:
        set_debug_enabled(previous)


__all__ = [
    "ENV_VAR",
    "debug_context",
    "debug_from_environment",
    "is_debug_enabled",
    "set_debug_enabled",
]
