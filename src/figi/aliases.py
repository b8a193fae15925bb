"""
Key alias resolution.

Maps caller-chosen keys onto canonical dotted keys, so that a value
written as `db_host` and a default registered as `database.host` land on
the same leaf of the live table.

Resolution is a single exact-match hop: if `a -> b` and `b -> c` are both
registered, resolving `a` yields `b`.

Config looks up every prefix of a key path, longest first, through
`figi.tree.resolve_path`, so an alias on a container key also covers
the keys beneath it.

Example:
    >>> resolver = AliasResolver()
    >>> resolver.register("db_host", "database.host")
    >>> resolver.resolve("db_host")
    'database.host'
    >>> resolver.resolve("database.port")
    'database.port'
"""

from __future__ import annotations

import logging as _logging
import threading as _threading

_logger = _logging.getLogger(__name__)


class AliasResolver:
    """Thread-safe alias table (alias key -> canonical key)."""

    def __init__(self) -> None:
        self._aliases: dict[str, str] = {}
        self._lock = _threading.Lock()

    def register(self, alias_key: str, canonical_key: str) -> None:
        """
        Register an alias.

        Re-registering an alias replaces its target.

        Raises:
            ValueError: If either key is empty.
        """
        alias_key = str(alias_key)
        canonical_key = str(canonical_key)
        if not alias_key or not canonical_key:
            raise ValueError("Alias and canonical key must be non-empty")
        with self._lock:
            previous = self._aliases.get(alias_key)
            self._aliases[alias_key] = canonical_key
        if previous is not None and previous != canonical_key:
            _logger.debug(
                "Alias %r retargeted from %r to %r", alias_key, previous, canonical_key
            )

    def resolve(self, key: str) -> str:
        """Return the canonical key for key, or key itself if it is not an alias."""
        key = str(key)
        # dict.get is atomic; readers don't need the lock
        return self._aliases.get(key, key)

    __call__ = resolve

    def aliases(self) -> dict[str, str]:
        """Return a copy of the alias table."""
        with self._lock:
            return dict(self._aliases)

    def clear(self) -> None:
        with self._lock:
            self._aliases.clear()

    def __len__(self) -> int:
        return len(self._aliases)

    def __contains__(self, key: object) -> bool:
        return key in self._aliases
