"""
Figi - layered configuration for Python applications.

Merges defaults, config files, remote sources, environment variables and
runtime overrides into one live, queryable tree, and keeps it current as
files change and remote sources are polled.
"""

import importlib.metadata as _metadata

# Version is defined in pyproject.toml - read it and parse into tuple (primary representation)
_raw_version = _metadata.version("figi")
__version_info__: tuple[int, int, int] = tuple(int(x) for x in _raw_version.split(".")[:3])  # type: ignore[assignment]
__version__: str = ".".join(str(x) for x in __version_info__)

from figi.config import Config  # noqa: E402
from figi.env import EnvBinding  # noqa: E402
from figi.errors import (  # noqa: E402
    ConfigError,
    ConfigFileNotFoundError,
    ConfigFormatError,
    ConfigParseError,
    ConfigRemoteError,
    ConfigTypeError,
)
from figi.store import SourceTag  # noqa: E402

__all__ = [
    "__version__",
    "__version_info__",
    "Config",
    "ConfigError",
    "ConfigFileNotFoundError",
    "ConfigFormatError",
    "ConfigParseError",
    "ConfigRemoteError",
    "ConfigTypeError",
    "EnvBinding",
    "SourceTag",
]
