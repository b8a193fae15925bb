"""
Exception types raised by Figi.

All errors derive from ConfigError so callers can catch the whole family
with a single except clause. Where a standard library exception has the
same meaning (FileNotFoundError, TypeError) the Figi error also derives
from it, so generic handlers keep working.
"""

from __future__ import annotations

import pathlib as _pathlib
import typing as _typing


class ConfigError(Exception):
    """Base class for all configuration errors."""

    pass


class ConfigFileNotFoundError(ConfigError, FileNotFoundError):
    """A configuration file is missing or cannot be read."""

    def __init__(self, path: _pathlib.Path | str, message: str | None = None) -> None:
        self.path = _pathlib.Path(path)
        detail = message or "file not found"
        super().__init__(f"Config file {self.path}: {detail}")

    def __str__(self) -> str:
        # FileNotFoundError formats errno/filename otherwise
        return str(self.args[0])


class ConfigParseError(ConfigError):
    """A parser rejected the content of a configuration file."""

    def __init__(self, path: _pathlib.Path | str, fmt: str, message: str) -> None:
        self.path = _pathlib.Path(path)
        self.format = fmt
        super().__init__(f"Error parsing {fmt} config file {self.path}: {message}")


class ConfigFormatError(ConfigError):
    """A configuration file has an extension no parser is registered for."""

    def __init__(self, path: _pathlib.Path | str, known: _typing.Iterable[str]) -> None:
        self.path = _pathlib.Path(path)
        self.known = tuple(known)
        super().__init__(
            f"Unsupported config file extension {self.path.suffix!r} for {self.path} "
            f"(expected one of: {', '.join(self.known)})"
        )


class ConfigRemoteError(ConfigError):
    """A remote source's fetch function failed."""

    def __init__(self, source: str, message: str) -> None:
        self.source = source
        super().__init__(f"Remote source {source!r} failed: {message}")


class ConfigTypeError(ConfigError, TypeError):
    """A stored value cannot be coerced to the type a typed accessor asked for."""

    def __init__(self, key: str, value: _typing.Any, expected: str) -> None:
        self.key = key
        self.value = value
        self.expected = expected
        super().__init__(
            f"Config key {key!r}: cannot convert {type(value).__name__} {value!r} to {expected}"
        )
