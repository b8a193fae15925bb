"""
Per-source storage and priority merge.

Each source tag holds any number of named entries (one tree per file,
per remote source, ...). rebuild() folds them into the live table:

    defaults < files < remote < env < cli

Within a tag, entries are folded in the order they were first stored;
replacing an entry keeps its position.

Concurrency:
    Mutations and rebuilds are serialized by a re-entrant lock, which
    callers may also hold to group several mutations into one rebuild.
    Readers never take the lock: the live table is a frozen view built
    from scratch on every rebuild and published by a single attribute
    assignment, so a reader sees either the old table or the new one.
"""

from __future__ import annotations

import enum as _enum
import logging as _logging
import threading as _threading
import typing as _typing

import figi.tree as tree

_logger = _logging.getLogger(__name__)

ChangeCallback: _typing.TypeAlias = _typing.Callable[[tree.FrozenMapping], _typing.Any]


class SourceTag(str, _enum.Enum):
    """Source priority classes, declared lowest priority first."""

    DEFAULTS = "defaults"
    FILES = "files"
    REMOTE = "remote"
    ENV = "env"
    CLI = "cli"

    @classmethod
    def parse(cls, value: SourceTag | str) -> SourceTag:
        """Accept either a SourceTag or its string value."""
        try:
            return cls(value)
        except ValueError:
            valid = ", ".join(tag.value for tag in cls)
            raise ValueError(f"Unknown source tag {value!r} (expected one of: {valid})") from None


class RebuildResult(_typing.NamedTuple):
    """Outcome of a rebuild."""

    table: tree.FrozenMapping
    changed: bool


class SourceStore:
    """
    Holds one tree per (source tag, entry name) and merges them.

    Trees handed to set_entry() are copied, so later mutation by the
    caller cannot leak into the live table.
    """

    def __init__(self) -> None:
        self._lock = _threading.RLock()
        self._buckets: dict[SourceTag, dict[str, dict[str, _typing.Any]]] = {
            tag: {} for tag in SourceTag
        }
        self._table = tree.FrozenMapping({})
        self._callbacks: list[ChangeCallback] = []
        self._notifying = _threading.local()

    @property
    def lock(self) -> _threading.RLock:
        """The mutation lock. Hold it to batch mutations before rebuild()."""
        return self._lock

    @property
    def table(self) -> tree.FrozenMapping:
        """The current live table (lock-free read)."""
        return self._table

    @property
    def in_callback(self) -> bool:
        """True while the current thread is running change callbacks."""
        return getattr(self._notifying, "depth", 0) > 0

    # =========================================================================
    # Mutation
    # =========================================================================

    def set_entry(
        self,
        source_tag: SourceTag | str,
        entry_name: str,
        data: _typing.Mapping[str, _typing.Any],
    ) -> None:
        """Create or replace one named entry under a source tag."""
        tag = SourceTag.parse(source_tag)
        copied = tree.thaw(data)
        with self._lock:
            self._buckets[tag][str(entry_name)] = copied
        _logger.debug("Stored %s entry %r", tag.value, entry_name)

    def clear_bucket(
        self,
        source_tag: SourceTag | str,
        entry_name: str | None = None,
    ) -> None:
        """Remove one entry, or every entry of the tag when entry_name is None."""
        tag = SourceTag.parse(source_tag)
        with self._lock:
            if entry_name is None:
                self._buckets[tag].clear()
            else:
                self._buckets[tag].pop(str(entry_name), None)

    def get_entry(
        self,
        source_tag: SourceTag | str,
        entry_name: str,
    ) -> dict[str, _typing.Any] | None:
        """Return a copy of one entry, or None if absent."""
        tag = SourceTag.parse(source_tag)
        with self._lock:
            entry = self._buckets[tag].get(str(entry_name))
            return tree.thaw(entry) if entry is not None else None

    def entry_names(self, source_tag: SourceTag | str) -> list[str]:
        """Entry names of a tag, in merge order."""
        tag = SourceTag.parse(source_tag)
        with self._lock:
            return list(self._buckets[tag])

    # =========================================================================
    # Merge
    # =========================================================================

    def merged(self, tags: _typing.Iterable[SourceTag] | None = None) -> dict[str, _typing.Any]:
        """
        Merge the buckets of the given tags (all tags by default).

        Tags are always folded in priority order regardless of the
        order they are passed in.
        """
        selected = set(SourceTag) if tags is None else {SourceTag.parse(t) for t in tags}
        with self._lock:
            per_tag = [
                tree.merge_all(self._buckets[tag].values())
                for tag in SourceTag
                if tag in selected
            ]
        return tree.merge_all(per_tag)

    def rebuild(self) -> RebuildResult:
        """
        Recompute the live table and publish it.

        Change callbacks run, in registration order, only when the new
        table differs structurally from the previous one.
        """
        with self._lock:
            previous = self._table
            merged = self.merged()
            changed = not tree.trees_equal(previous, merged)
            if changed:
                self._table = tree.FrozenMapping(merged)
            _logger.debug("Rebuilt live table (changed=%s)", changed)
            if changed:
                self._notify(self._table)
            return RebuildResult(self._table, changed)

    # =========================================================================
    # Change callbacks
    # =========================================================================

    def on_change(self, callback: ChangeCallback) -> ChangeCallback:
        """Register a callback for table changes. Returns it (usable as a decorator)."""
        with self._lock:
            self._callbacks.append(callback)
        return callback

    def remove_callback(self, callback: ChangeCallback) -> bool:
        """Unregister a callback. Returns False if it was not registered."""
        with self._lock:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                return False
            return True

    def _notify(self, table: tree.FrozenMapping) -> None:
        self._notifying.depth = getattr(self._notifying, "depth", 0) + 1
        try:
            for callback in list(self._callbacks):
                try:
                    callback(table)
                except Exception:
                    name = getattr(callback, "__qualname__", repr(callback))
                    _logger.exception("Config change callback %s failed", name)
        finally:
            self._notifying.depth -= 1

    def reset(self) -> None:
        """Drop every entry and callback and publish an empty table."""
        with self._lock:
            for bucket in self._buckets.values():
                bucket.clear()
            self._callbacks.clear()
            self._table = tree.FrozenMapping({})
