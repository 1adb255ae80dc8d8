"""Debug-mode switches and numeric checks."""

from .checks import assert_finite, check_result
from .debug_mode import debug_context, is_debug_enabled, set_debug_enabled

__all__ = [
    "assert_finite",
    "check_result",
    "debug_context",
    "is_debug_enabled",
    "set_debug_enabled",
]
