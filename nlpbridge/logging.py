"""Logging helpers for nlpbridge.

All package loggers live under the ``nlpbridge.`` namespace, write to stderr
and default to WARNING so that a solve stays quiet unless asked otherwise.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional, TextIO, Union

_ROOT = "nlpbridge"
_FORMAT = "[%(levelname)s] %(name)s: %(message)s"
_LEVEL_ENV_VAR = "NLPBRIDGE_LOG_LEVEL"

_loggers: dict[str, logging.Logger] = {}


def _parse_level(level: Union[int, str]) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.WARNING)
    return int(level)


_default_level = _parse_level(os.getenv(_LEVEL_ENV_VAR, "WARNING"))


def _make_handler(stream: Optional[TextIO], level: int, fmt: str) -> logging.Handler:
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return the cached logger for ``name`` (usually ``__name__``).

    Names outside the package namespace are prefixed with ``nlpbridge.``.

    Example:
        >>> from nlpbridge.logging import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.debug("binding compute callback")
    """
    if name is None:
        name = _ROOT
    if name != _ROOT and not name.startswith(_ROOT + "."):
        name = f"{_ROOT}.{name}"

    logger = _loggers.get(name)
    if logger is not None:
        return logger

    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.setLevel(_default_level)
        logger.addHandler(_make_handler(None, _default_level, _FORMAT))
        logger.propagate = False
    _loggers[name] = logger
    return logger


def set_log_level(level: Union[int, str]) -> None:
    """Set the level of every nlpbridge logger, present and future."""
    global _default_level
    level = _parse_level(level)
    for logger in _loggers.values():
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)
    _default_level = level


def configure_logging(
    level: Union[int, str] = logging.WARNING,
    format_string: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> None:
    """Replace the handlers of every cached logger.

    Args:
        level: Logging level or level name.
        format_string: Record format, defaults to ``[LEVEL] name: message``.
        stream: Output stream, defaults to ``sys.stderr``.
    """
    global _default_level
    level = _parse_level(level)
    fmt = format_string or _FORMAT
    for logger in _loggers.values():
        logger.setLevel(level)
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
        logger.addHandler(_make_handler(stream, level, fmt))
    _default_level = level


__all__ = ["configure_logging", "get_logger", "set_log_level"]
