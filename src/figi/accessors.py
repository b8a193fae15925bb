"""
Coercion rules behind the typed accessors (Config.get_int() and friends).

Each function takes the key (for error messages) and a stored value that
is known to be present, and either returns the value converted to the
requested type or raises ConfigTypeError. Numeric coercion uses
pydantic's lax-mode validation, so "5433" is accepted as an int while
5.5 is not.

Booleans are deliberately strict: only real booleans and the strings
"true"/"false" (any case, surrounding whitespace ignored) qualify, and
booleans are never accepted where a number is expected.
"""

from __future__ import annotations

import typing as _typing

import pydantic as _pydantic

import figi.errors as errors
import figi.tree as tree

_INT_ADAPTER = _pydantic.TypeAdapter(int)
_FLOAT_ADAPTER = _pydantic.TypeAdapter(float)
_LIST_ADAPTER = _pydantic.TypeAdapter(list[_typing.Any])
_DICT_ADAPTER = _pydantic.TypeAdapter(dict[str, _typing.Any])


def _validate(
    adapter: _pydantic.TypeAdapter[_typing.Any],
    key: str,
    value: _typing.Any,
    expected: str,
) -> _typing.Any:
    try:
        return adapter.validate_python(value)
    except _pydantic.ValidationError as e:
        raise errors.ConfigTypeError(key, value, expected) from e


def to_string(key: str, value: _typing.Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    raise errors.ConfigTypeError(key, tree.thaw(value), "str")


def to_int(key: str, value: _typing.Any) -> int:
    if isinstance(value, bool):
        raise errors.ConfigTypeError(key, value, "int")
    if isinstance(value, str):
        value = value.strip()
    return _validate(_INT_ADAPTER, key, value, "int")


def to_float(key: str, value: _typing.Any) -> float:
    if isinstance(value, bool):
        raise errors.ConfigTypeError(key, value, "float")
    if isinstance(value, str):
        value = value.strip()
    return _validate(_FLOAT_ADAPTER, key, value, "float")


def to_bool(key: str, value: _typing.Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    raise errors.ConfigTypeError(key, tree.thaw(value), "bool")


def to_list(key: str, value: _typing.Any) -> list[_typing.Any]:
    """Return a mutable copy; the live table is never exposed."""
    return _validate(_LIST_ADAPTER, key, tree.thaw(value), "list")


def to_dict(key: str, value: _typing.Any) -> dict[str, _typing.Any]:
    """Return a mutable copy; the live table is never exposed."""
    return _validate(_DICT_ADAPTER, key, tree.thaw(value), "dict")
