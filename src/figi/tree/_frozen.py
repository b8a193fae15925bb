"""
Read-only views used to publish the live table.

Config hands readers a FrozenMapping wrapping the tree built by the last
rebuild. Containers inside it are wrapped lazily as they are reached, so
publishing a table costs one object and no copy, while nobody holding a
view can change what other readers see. thaw() turns a view (or any
tree) back into independent plain dicts and lists.
"""

from __future__ import annotations

import collections.abc as _abc
import typing as _typing


class _FrozenView:
    """Shared behaviour of the two view types."""

    __slots__ = ("_data",)

    _data: _typing.Any

    def __hash__(self) -> int:
        # Views compare equal to mutable containers, so they cannot be hashable
        raise TypeError(f"unhashable type: '{type(self).__name__}'")

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._data!r})"

    def __copy__(self) -> _FrozenView:
        return self

    def __deepcopy__(self, memo: dict[int, _typing.Any]) -> _FrozenView:
        return self


class FrozenMapping(_FrozenView, _abc.Mapping[str, _typing.Any]):
    """
    Immutable mapping view over one tree level.

    The wrapped dict is not copied; it must not be mutated afterwards.
    Store rebuilds satisfy this by building a fresh tree every time.

    Example:
        >>> table = FrozenMapping({"database": {"hosts": ["a", "b"]}})
        >>> table["database"]["hosts"][1]
        'b'
        >>> table["database"]["port"] = 1
        Traceback (most recent call last):
        TypeError: 'FrozenMapping' object does not support item assignment
    """

    __slots__ = ()

    def __init__(self, data: _abc.Mapping[str, _typing.Any]) -> None:
        self._data = data if isinstance(data, dict) else dict(data)

    def __getitem__(self, key: str) -> _typing.Any:
        return freeze(self._data[key])

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> _typing.Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, _abc.Mapping):
            return NotImplemented
        if len(self) != len(other):
            return False
        return all(key in other and self[key] == other[key] for key in self._data)

    __hash__ = _FrozenView.__hash__

    def to_dict(self) -> dict[str, _typing.Any]:
        """Independent, mutable deep copy."""
        return thaw(self._data)


class FrozenSequence(_FrozenView, _abc.Sequence[_typing.Any]):
    """Immutable list view. Slicing returns another view."""

    __slots__ = ()

    def __init__(self, data: _abc.Sequence[_typing.Any]) -> None:
        self._data = data if isinstance(data, list) else list(data)

    @_typing.overload
    def __getitem__(self, index: int) -> _typing.Any: ...

    @_typing.overload
    def __getitem__(self, index: slice) -> FrozenSequence: ...

    def __getitem__(self, index: int | slice) -> _typing.Any:
        if isinstance(index, slice):
            return FrozenSequence(self._data[index])
        return freeze(self._data[index])

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        # A str is a Sequence too, but never a config list
        if isinstance(other, (str, bytes)) or not isinstance(other, _abc.Sequence):
            return NotImplemented
        return len(self) == len(other) and all(a == b for a, b in zip(self, other))

    __hash__ = _FrozenView.__hash__

    def to_list(self) -> list[_typing.Any]:
        """Independent, mutable deep copy."""
        return thaw(self._data)


def freeze(value: _typing.Any) -> _typing.Any:
    """
    Return value wrapped in a view if it is a mutable container.

    Mappings become FrozenMapping and lists become FrozenSequence.
    Scalars, strings and tuples are already immutable and come back
    unchanged, as do existing views.
    """
    if isinstance(value, _FrozenView):
        return value
    if isinstance(value, _abc.Mapping):
        return FrozenMapping(value)
    if isinstance(value, _abc.MutableSequence):
        return FrozenSequence(value)
    return value


def thaw(value: _typing.Any) -> _typing.Any:
    """
    Deep-copy a tree, frozen or not, into plain dicts and lists.

    Tuples come back as lists, matching what normalization produces.

    Example:
        >>> thaw(FrozenMapping({"a": [1, {"b": 2}]}))
        {'a': [1, {'b': 2}]}
    """
    if isinstance(value, _FrozenView):
        value = value._data
    if isinstance(value, _abc.Mapping):
        return {str(key): thaw(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [thaw(item) for item in value]
    return value
