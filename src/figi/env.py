"""
Environment variable binding.

Translates an environment snapshot into a configuration tree, either
automatically from a prefix/separator naming scheme or through explicit
per-variable bindings.

Auto-binding (prefix "FIGI", separator "_"):
    FIGI_SERVICE_ENABLED=true  ->  {"service": {"enabled": True}}
    FIGI_DATABASE_PORT=5432    ->  {"database": {"port": 5432}}

Explicit binding:
    binding.bind("APP_TIMEOUT", "service.timeout", lambda v: int(v) * 2)

An explicit binding always wins over auto-binding for that exact
variable name. With the prefix set to None (or ""), auto-binding is off
and only explicit bindings apply.

Unless a transformer is given, values go through coerce_scalar():
integer-looking strings become int, decimal-looking strings become
float, "true"/"false" (any case) become bool, anything else stays a str.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import logging as _logging
import os as _os
import re as _re
import typing as _typing

import figi.tree as tree

_logger = _logging.getLogger(__name__)

DEFAULT_PREFIX = "FIGI"
DEFAULT_SEPARATOR = "_"

Formatter: _typing.TypeAlias = _typing.Callable[[list[str]], str]
Transformer: _typing.TypeAlias = _typing.Callable[[_typing.Any], _typing.Any]

_INT_PATTERN = _re.compile(r"[+-]?\d+")
_FLOAT_PATTERN = _re.compile(r"[+-]?\d*\.\d+")
_BOOL_PATTERN = _re.compile(r"true|false", _re.IGNORECASE)


def coerce_scalar(value: _typing.Any) -> _typing.Any:
    """
    Convert a string to the scalar type it looks like.

    Non-string values (numbers, booleans, None) are returned unchanged.

    Example:
        >>> coerce_scalar("42"), coerce_scalar("-1.5"), coerce_scalar("TRUE")
        (42, -1.5, True)
        >>> coerce_scalar("1.2.3")
        '1.2.3'
    """
    if not isinstance(value, str):
        return value
    if _INT_PATTERN.fullmatch(value):
        return int(value)
    if _FLOAT_PATTERN.fullmatch(value):
        return float(value)
    if _BOOL_PATTERN.fullmatch(value):
        return value.lower() == "true"
    return value


def default_formatter(segments: list[str]) -> str:
    """Lower-case each segment and join with dots."""
    return tree.join_key(segment.lower() for segment in segments)


@_dataclasses.dataclass(frozen=True)
class EnvBindingEntry:
    """An explicit env var -> config key binding."""

    env_var: str
    key: str
    transformer: Transformer | None = None

    def convert(self, raw: str) -> _typing.Any:
        if self.transformer is not None:
            return self.transformer(raw)
        return coerce_scalar(raw)


class EnvBinding:
    """
    Reads configuration from environment variables.

    Args:
        prefix: Auto-binding prefix, or None to disable auto-binding.
        separator: Separator between the prefix and between name segments.
        formatter: Turns the name segments after the prefix into a dotted
            key. Defaults to default_formatter().
    """

    def __init__(
        self,
        prefix: str | None = DEFAULT_PREFIX,
        separator: str = DEFAULT_SEPARATOR,
        formatter: Formatter | None = None,
    ) -> None:
        if not separator:
            raise ValueError("Env separator must be non-empty")
        self.prefix = prefix or None
        self.separator = separator
        self._formatter: Formatter = formatter or default_formatter
        self._bindings: dict[str, EnvBindingEntry] = {}

    @property
    def auto_prefix(self) -> str | None:
        """The variable-name prefix auto-binding looks for, e.g. "FIGI_"."""
        if self.prefix is None:
            return None
        return f"{self.prefix}{self.separator}"

    @property
    def bindings(self) -> dict[str, EnvBindingEntry]:
        return dict(self._bindings)

    def set_formatter(self, formatter: Formatter) -> EnvBinding:
        self._formatter = formatter
        return self

    def bind(
        self,
        env_var: str,
        key: str,
        transformer: Transformer | None = None,
    ) -> EnvBinding:
        """
        Bind env_var to key explicitly.

        Args:
            env_var: Exact environment variable name.
            key: Dotted config key the value is stored under.
            transformer: Converts the raw string. Replaces the default
                coercion when given.

        Returns:
            self, so calls can be chained.
        """
        tree.split_key(key)
        self._bindings[str(env_var)] = EnvBindingEntry(str(env_var), str(key), transformer)
        return self

    def unbind(self, env_var: str) -> None:
        self._bindings.pop(env_var, None)

    def key_for(self, env_var: str) -> str | None:
        """
        Return the config key env_var maps to, or None if it is not bound.
        """
        entry = self._bindings.get(env_var)
        if entry is not None:
            return entry.key
        auto_prefix = self.auto_prefix
        if auto_prefix is None or not env_var.startswith(auto_prefix):
            return None
        remainder = env_var[len(auto_prefix):]
        if not remainder:
            return None
        key = self._formatter(remainder.split(self.separator))
        return str(key) if key else None

    def read(self, environ: _typing.Mapping[str, str] | None = None) -> dict[str, _typing.Any]:
        """
        Build a configuration tree from an environment snapshot.

        Args:
            environ: Mapping of variable name to value. Defaults to os.environ.

        Returns:
            Nested dict of the bound values. Variables are processed in
            sorted name order, so the result does not depend on the
            iteration order of the snapshot.
        """
        if environ is None:
            environ = _os.environ
        result: dict[str, _typing.Any] = {}
        for name in sorted(environ):
            raw = environ[name]
            entry = self._bindings.get(name)
            if entry is not None:
                value = entry.convert(raw)
                key: str | None = entry.key
            else:
                key = self.key_for(name)
                if key is None:
                    continue
                value = coerce_scalar(raw)
            try:
                path = tree.split_key(key)
            except ValueError:
                _logger.debug("Ignoring %s: formatter produced an empty key", name)
                continue
            tree.assign(result, path, value)
            _logger.debug("Bound env var %s to %s", name, key)
        return result
