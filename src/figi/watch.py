"""
File watching.

A FileWatcher follows one absolute path. It wraps a notifier (by default
a watchdog observer on the file's directory) that reports batches of
modified, added and removed paths; when the watched path is among them,
the watcher runs its reload callback.

Reload failures in this path (file missing, parse error) are logged and
swallowed: the previous live table stays in effect until the next
successful reload.

Notifiers are pluggable so tests, or hosts with their own event loop,
can drive watchers without touching the filesystem:

    def notifier_factory(path, on_change):
        ...                       # arrange for on_change(modified, added, removed)
        return handle             # object with start() and stop()
"""

from __future__ import annotations

import logging as _logging
import os as _os
import pathlib as _pathlib
import threading as _threading
import typing as _typing

import watchdog.events as _watchdog_events
import watchdog.observers as _watchdog_observers

import figi.errors as errors

_logger = _logging.getLogger(__name__)

PathSet: _typing.TypeAlias = _typing.AbstractSet[_pathlib.Path]
ChangeHandler: _typing.TypeAlias = _typing.Callable[[PathSet, PathSet, PathSet], None]
ReloadCallback: _typing.TypeAlias = _typing.Callable[[_pathlib.Path], _typing.Any]


class Notifier(_typing.Protocol):
    """Handle returned by a notifier factory."""

    def start(self) -> None: ...

    def stop(self) -> None: ...


NotifierFactory: _typing.TypeAlias = _typing.Callable[[_pathlib.Path, ChangeHandler], Notifier]

_JOIN_TIMEOUT = 2.0


def _event_path(raw: str | bytes) -> _pathlib.Path:
    return _pathlib.Path(_os.fsdecode(raw)).resolve()


class _DirectoryEventHandler(_watchdog_events.FileSystemEventHandler):
    """Translates watchdog events into (modified, added, removed) batches."""

    def __init__(self, on_change: ChangeHandler) -> None:
        super().__init__()
        self._on_change = on_change

    def on_modified(self, event: _watchdog_events.FileSystemEvent) -> None:
        if not event.is_directory:
            self._on_change({_event_path(event.src_path)}, set(), set())

    def on_created(self, event: _watchdog_events.FileSystemEvent) -> None:
        if not event.is_directory:
            self._on_change(set(), {_event_path(event.src_path)}, set())

    def on_deleted(self, event: _watchdog_events.FileSystemEvent) -> None:
        if not event.is_directory:
            self._on_change(set(), set(), {_event_path(event.src_path)})

    def on_moved(self, event: _watchdog_events.FileSystemEvent) -> None:
        # Editors commonly save via rename-over-original
        if not event.is_directory:
            self._on_change(
                set(),
                {_event_path(event.dest_path)},
                {_event_path(event.src_path)},
            )


class WatchdogNotifier:
    """Default notifier: a watchdog observer on the file's parent directory."""

    def __init__(self, path: _pathlib.Path, on_change: ChangeHandler) -> None:
        self.path = path
        self._handler = _DirectoryEventHandler(on_change)
        self._observer: _typing.Any = None

    def start(self) -> None:
        if self._observer is not None:
            return
        observer = _watchdog_observers.Observer()
        observer.daemon = True
        observer.schedule(self._handler, str(self.path.parent), recursive=False)
        observer.start()
        self._observer = observer

    def stop(self) -> None:
        observer, self._observer = self._observer, None
        if observer is None:
            return
        observer.stop()
        if observer is not _threading.current_thread():
            observer.join(timeout=_JOIN_TIMEOUT)


class FileWatcher:
    """
    Watches one file and reloads it on change.

    Args:
        path: File to watch; made absolute.
        reload: Called with the path whenever it may have changed.
        notifier_factory: Builds the underlying notifier. None means no
            live notifier; only trigger() causes reloads.
    """

    def __init__(
        self,
        path: _pathlib.Path | str,
        reload: ReloadCallback,
        notifier_factory: NotifierFactory | None = WatchdogNotifier,
    ) -> None:
        self.path = _pathlib.Path(path).expanduser().resolve()
        self._reload = reload
        self._notifier = (
            notifier_factory(self.path, self._on_change) if notifier_factory else None
        )
        self._started = False

    def __repr__(self) -> str:
        return f"FileWatcher(path={str(self.path)!r}, started={self._started})"

    @property
    def started(self) -> bool:
        return self._started

    def start(self) -> None:
        if self._started:
            return
        if self._notifier is not None:
            self._notifier.start()
        self._started = True
        _logger.debug("Watching %s", self.path)

    def stop(self) -> None:
        if not self._started:
            return
        self._started = False
        if self._notifier is not None:
            self._notifier.stop()
        _logger.debug("Stopped watching %s", self.path)

    def _on_change(self, modified: PathSet, added: PathSet, removed: PathSet) -> None:
        if not self._started:
            return
        if self.path in modified or self.path in added or self.path in removed:
            self.trigger()

    def trigger(self) -> bool:
        """
        Run the reload callback now.

        Returns:
            True if the reload succeeded, False if it failed (and was logged).
        """
        try:
            self._reload(self.path)
        except errors.ConfigError as e:
            _logger.warning("Reloading %s failed; keeping previous config: %s", self.path, e)
            return False
        except Exception:
            _logger.warning(
                "Reloading %s failed; keeping previous config", self.path, exc_info=True
            )
            return False
        return True


class WatcherRegistry:
    """One FileWatcher per absolute path, created on first request."""

    def __init__(self, notifier_factory: NotifierFactory | None = WatchdogNotifier) -> None:
        self._notifier_factory = notifier_factory
        self._watchers: dict[_pathlib.Path, FileWatcher] = {}
        self._lock = _threading.Lock()

    def watch(self, path: _pathlib.Path | str, reload: ReloadCallback) -> FileWatcher:
        """Start watching path. Idempotent: an existing watcher is returned as-is."""
        resolved = _pathlib.Path(path).expanduser().resolve()
        with self._lock:
            watcher = self._watchers.get(resolved)
            if watcher is None:
                watcher = FileWatcher(resolved, reload, self._notifier_factory)
                self._watchers[resolved] = watcher
                watcher.start()
            return watcher

    def unwatch(self, path: _pathlib.Path | str) -> bool:
        resolved = _pathlib.Path(path).expanduser().resolve()
        with self._lock:
            watcher = self._watchers.pop(resolved, None)
        if watcher is None:
            return False
        watcher.stop()
        return True

    def get(self, path: _pathlib.Path | str) -> FileWatcher | None:
        return self._watchers.get(_pathlib.Path(path).expanduser().resolve())

    def paths(self) -> list[_pathlib.Path]:
        with self._lock:
            return list(self._watchers)

    def simulate_change(self, path: _pathlib.Path | str, reload: ReloadCallback) -> bool:
        """
        Run the reload logic for path as if its notifier had fired.

        Without a watcher for path, `reload` runs directly (with the same
        error handling).
        """
        watcher = self.get(path)
        if watcher is None:
            watcher = FileWatcher(path, reload, notifier_factory=None)
        return watcher.trigger()

    def stop_all(self) -> None:
        with self._lock:
            watchers = list(self._watchers.values())
            self._watchers.clear()
        for watcher in watchers:
            watcher.stop()

    def __len__(self) -> int:
        return len(self._watchers)
