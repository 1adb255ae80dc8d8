"""Named, described, typed values used for solver options and solver state.

``Parameter`` values are ``float``, ``int`` or ``str``. ``StateParameter``
values additionally allow ``bool`` and dense ``float64`` vectors. Converting
any other object raises :class:`UnsupportedValueError`.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Mapping, MutableMapping, Tuple, Union

import numpy as np

from ..errors import UnsupportedValueError

ParameterValue = Union[float, int, str]
StateParameterValue = Union[float, int, str, bool, np.ndarray]


def to_parameter_value(obj: Any) -> ParameterValue:
    """Convert ``obj`` to a solver parameter value.

    Booleans are stored as integers, as are numpy integer scalars.
    """
    if isinstance(obj, str):
        return obj
    if isinstance(obj, bytes):
        return obj.decode("utf-8")
    if isinstance(obj, (bool, np.bool_)):
        return int(obj)
    if isinstance(obj, (int, np.integer)):
        return int(obj)
    if isinstance(obj, (float, np.floating)):
        return float(obj)
    raise UnsupportedValueError(
        f"unsupported parameter value type {type(obj).__name__}; "
        "expected float, int or str"
    )


def to_state_parameter_value(obj: Any) -> StateParameterValue:
    """Convert ``obj`` to a solver state parameter value."""
    if isinstance(obj, (bool, np.bool_)):
        return bool(obj)
    if isinstance(obj, np.ndarray):
        if obj.ndim != 1 or obj.dtype.kind not in "iuf":
            raise UnsupportedValueError(
                f"state parameter vectors must be 1-D real arrays, got {obj.dtype} {obj.shape}"
            )
        out = np.array(obj, dtype=np.float64, copy=True)
        out.flags.writeable = False
        return out
    return to_parameter_value(obj)


@dataclass(frozen=True)
class Parameter:
    """A described solver option."""

    description: str
    value: ParameterValue

    def __post_init__(self) -> None:
        object.__setattr__(self, "description", str(self.description))
        object.__setattr__(self, "value", to_parameter_value(self.value))

    def as_tuple(self) -> Tuple[str, ParameterValue]:
        return self.description, self.value


@dataclass(frozen=True)
class StateParameter:
    """A described value attached to the solver state."""

    description: str
    value: StateParameterValue

    def __post_init__(self) -> None:
        object.__setattr__(self, "description", str(self.description))
        object.__setattr__(self, "value", to_state_parameter_value(self.value))

    def as_tuple(self) -> Tuple[str, StateParameterValue]:
        return self.description, self.value


class ParameterMap(MutableMapping[str, Parameter]):
    """Ordered ``name -> Parameter`` mapping.

    Assigning a plain ``(description, value)`` tuple wraps it automatically.
    :meth:`replace` swaps the whole content and never merges.
    """

    entry_type: type = Parameter

    def __init__(self, entries: Mapping[str, Any] | None = None) -> None:
        self._data: "OrderedDict[str, Any]" = OrderedDict()
        if entries is not None:
            self.replace(entries)

    def _coerce(self, name: Any, entry: Any) -> Any:
        if not isinstance(name, str):
            raise UnsupportedValueError(f"parameter names must be strings, got {name!r}")
        if isinstance(entry, self.entry_type):
            return entry
        if isinstance(entry, tuple) and len(entry) == 2:
            return self.entry_type(entry[0], entry[1])
        raise UnsupportedValueError(
            f"parameter {name!r} must be a {self.entry_type.__name__} or a "
            "(description, value) tuple"
        )

    def __getitem__(self, name: str) -> Any:
        return self._data[name]

    def __setitem__(self, name: str, entry: Any) -> None:
        self._data[name] = self._coerce(name, entry)

    def __delitem__(self, name: str) -> None:
        del self._data[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def set(self, name: str, value: Any, description: str = "") -> None:
        """Set one entry, keeping the old description when none is given."""
        if not description and name in self._data:
            description = self._data[name].description
        self[name] = self.entry_type(description, value)

    def value(self, name: str, default: Any = None) -> Any:
        entry = self._data.get(name)
        return default if entry is None else entry.value

    def replace(self, entries: Mapping[str, Any]) -> None:
        """Clear the map, then insert ``entries``; nothing changes on error."""
        if not isinstance(entries, Mapping):
            raise UnsupportedValueError(
                f"parameters must be a mapping, got {type(entries).__name__}"
            )
        staged = OrderedDict(
            (name, self._coerce(name, entry)) for name, entry in entries.items()
        )
        self._data = staged

    def to_dict(self) -> Dict[str, Tuple[str, Any]]:
        """Plain ``{name: (description, value)}`` copy."""
        return {name: entry.as_tuple() for name, entry in self._data.items()}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.to_dict()!r})"

    def __str__(self) -> str:
        if not self._data:
            return "(no parameters)"
        return "\n".join(
            f"{name}: {entry.value!r} ({entry.description})" if entry.description
            else f"{name}: {entry.value!r}"
            for name, entry in self._data.items()
        )


class StateParameterMap(ParameterMap):
    entry_type = StateParameter


__all__ = [
    "Parameter",
    "ParameterMap",
    "ParameterValue",
    "StateParameter",
    "StateParameterMap",
    "StateParameterValue",
    "to_parameter_value",
    "to_state_parameter_value",
]
