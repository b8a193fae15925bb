"""
Configuration file discovery and parsing.

Discovery checks, for each search directory in registration order:

    <dir>/<name>.json, <dir>/<name>.yml, <dir>/<name>.yaml, <dir>/<name>.toml

Every file that exists is returned, in that order. Later files win on
conflicting keys when they are merged into the files bucket.

Parsing is delegated to a ParserRegistry keyed by file extension. The
defaults are the stdlib json and tomllib modules and PyYAML's safe
loader; callers may register their own.
"""

from __future__ import annotations

import collections.abc as _abc
import dataclasses as _dataclasses
import json as _json
import logging as _logging
import pathlib as _pathlib
import tomllib as _tomllib
import typing as _typing

import yaml as _yaml

import figi.errors as errors

_logger = _logging.getLogger(__name__)

ParseFunction: _typing.TypeAlias = _typing.Callable[[str], _typing.Any]

# Search order for discovery; also the order within one directory
DEFAULT_EXTENSIONS: tuple[str, ...] = (".json", ".yml", ".yaml", ".toml")


@_dataclasses.dataclass(frozen=True)
class Parser:
    """A named parse function for one config format."""

    format: str
    parse: ParseFunction


def _parse_yaml(content: str) -> _typing.Any:
    return _yaml.safe_load(content)


class ParserRegistry:
    """Maps file extensions (".json", ...) to parsers."""

    def __init__(self, parsers: _abc.Mapping[str, Parser] | None = None) -> None:
        self._parsers: dict[str, Parser] = {}
        for extension, parser in (parsers or {}).items():
            self.register(extension, parser)

    @classmethod
    def with_defaults(cls) -> ParserRegistry:
        """Registry with JSON, YAML (.yml/.yaml) and TOML parsers."""
        yaml_parser = Parser("YAML", _parse_yaml)
        return cls(
            {
                ".json": Parser("JSON", _json.loads),
                ".yml": yaml_parser,
                ".yaml": yaml_parser,
                ".toml": Parser("TOML", _tomllib.loads),
            }
        )

    def register(self, extension: str, parser: Parser) -> None:
        self._parsers[_normalize_extension(extension)] = parser

    def get(self, extension: str) -> Parser | None:
        return self._parsers.get(_normalize_extension(extension))

    @property
    def extensions(self) -> tuple[str, ...]:
        return tuple(self._parsers)

    def for_path(self, path: _pathlib.Path) -> Parser:
        """
        Return the parser for path's extension.

        Raises:
            ConfigFormatError: If no parser handles the extension.
        """
        parser = self.get(path.suffix)
        if parser is None:
            raise errors.ConfigFormatError(path, self.extensions)
        return parser


def _normalize_extension(extension: str) -> str:
    extension = extension.lower()
    return extension if extension.startswith(".") else f".{extension}"


def discover(
    search_paths: _typing.Iterable[_pathlib.Path | str],
    name: str,
    extensions: _typing.Iterable[str] = DEFAULT_EXTENSIONS,
) -> list[_pathlib.Path]:
    """
    Find config files named `name` in the search paths.

    Args:
        search_paths: Directories, searched in order.
        name: Base file name without extension.
        extensions: Extensions to look for, in order.

    Returns:
        Absolute paths of every existing candidate, directories first,
        then extensions, in the given orders. Duplicates are dropped.
    """
    found: list[_pathlib.Path] = []
    extensions = tuple(extensions)
    for directory in search_paths:
        base = _pathlib.Path(directory).expanduser()
        for extension in extensions:
            candidate = (base / f"{name}{_normalize_extension(extension)}").resolve()
            if candidate.is_file() and candidate not in found:
                found.append(candidate)
    _logger.debug("Discovered config files for %r: %s", name, [str(p) for p in found])
    return found


def load_file(
    path: _pathlib.Path | str,
    registry: ParserRegistry,
    *,
    parser: Parser | None = None,
) -> dict[str, _typing.Any]:
    """
    Read and parse one config file.

    Args:
        path: File to load.
        registry: Supplies the parser when `parser` is not given.
        parser: Explicit parser, bypassing extension lookup.

    Returns:
        The parsed top-level mapping ({} for an empty document).

    Raises:
        ConfigFormatError: Unknown extension and no explicit parser.
        ConfigFileNotFoundError: File missing or unreadable.
        ConfigParseError: Parser rejected the content, or the top level
            is not a mapping.
    """
    path = _pathlib.Path(path).expanduser()
    if parser is None:
        parser = registry.for_path(path)

    if not path.is_file():
        raise errors.ConfigFileNotFoundError(path)
    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise errors.ConfigParseError(path, parser.format, f"not valid UTF-8: {e}") from e
    except OSError as e:
        raise errors.ConfigFileNotFoundError(path, f"cannot read file: {e}") from e

    try:
        parsed = parser.parse(content)
    except Exception as e:
        raise errors.ConfigParseError(path, parser.format, str(e)) from e

    if parsed is None:
        return {}
    if not isinstance(parsed, _abc.Mapping):
        raise errors.ConfigParseError(
            path,
            parser.format,
            f"top level must be a mapping, got {type(parsed).__name__}",
        )
    _logger.debug("Loaded %s config file %s", parser.format, path)
    return dict(parsed)
