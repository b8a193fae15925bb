"""Aliases describing the shape of a normalized configuration tree."""

from __future__ import annotations

import typing as _typing

# ("database", "host") addresses database.host
Path: _typing.TypeAlias = tuple[str, ...]

Scalar: _typing.TypeAlias = str | int | float | bool | None

if _typing.TYPE_CHECKING:
    Value: _typing.TypeAlias = "Scalar | list[Value] | dict[str, Value]"
    Tree: _typing.TypeAlias = dict[str, "Value"]
else:
    Value: _typing.TypeAlias = object
    Tree: _typing.TypeAlias = dict[str, object]

KEY_SEPARATOR = "."
