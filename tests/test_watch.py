"""
Tests for file watchers, driven through the fake notifier from conftest.
"""

import logging as _logging
import pathlib as _pathlib
import threading as _threading
import types as _types

import pytest as _pytest

import figi.errors as errors
import figi.watch as watch


class _Reloads:
    def __init__(self, fail_with: Exception | None = None) -> None:
        self.paths: list[_pathlib.Path] = []
        self.fail_with = fail_with

    def __call__(self, path: _pathlib.Path) -> None:
        self.paths.append(path)
        if self.fail_with is not None:
            raise self.fail_with


class TestFileWatcher:
    def test_path_made_absolute(self, tmp_path: _pathlib.Path, monkeypatch: _pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        watcher = watch.FileWatcher("app.yaml", _Reloads(), notifier_factory=None)
        assert watcher.path == tmp_path.resolve() / "app.yaml"

    def test_start_and_stop_drive_notifier(self, tmp_path: _pathlib.Path, fake_notifiers) -> None:
        watcher = watch.FileWatcher(tmp_path / "app.yaml", _Reloads(), fake_notifiers)
        notifier = fake_notifiers.for_path(tmp_path / "app.yaml")

        watcher.start()
        assert notifier.started and watcher.started
        watcher.stop()
        assert notifier.stopped and not watcher.started

    @_pytest.mark.parametrize("kind", ["modified", "added", "removed"])
    def test_event_on_watched_path_reloads(self, tmp_path: _pathlib.Path, fake_notifiers, kind: str) -> None:
        reloads = _Reloads()
        target = (tmp_path / "app.yaml").resolve()
        watcher = watch.FileWatcher(target, reloads, fake_notifiers)
        watcher.start()

        fake_notifiers.for_path(target).fire(**{kind: [target]})

        assert reloads.paths == [target]

    def test_events_for_other_files_ignored(self, tmp_path: _pathlib.Path, fake_notifiers) -> None:
        reloads = _Reloads()
        watcher = watch.FileWatcher(tmp_path / "app.yaml", reloads, fake_notifiers)
        watcher.start()

        fake_notifiers.for_path(tmp_path / "app.yaml").fire(modified=[(tmp_path / "other.yaml").resolve()])

        assert reloads.paths == []

    def test_events_after_stop_ignored(self, tmp_path: _pathlib.Path, fake_notifiers) -> None:
        reloads = _Reloads()
        target = (tmp_path / "app.yaml").resolve()
        watcher = watch.FileWatcher(target, reloads, fake_notifiers)
        watcher.start()
        watcher.stop()

        fake_notifiers.for_path(target).fire(modified=[target])

        assert reloads.paths == []

    def test_trigger_failure_logged_not_raised(
        self,
        tmp_path: _pathlib.Path,
        caplog: _pytest.LogCaptureFixture,
    ) -> None:
        failure = errors.ConfigParseError(tmp_path / "app.yaml", "YAML", "bad indent")
        watcher = watch.FileWatcher(tmp_path / "app.yaml", _Reloads(failure), notifier_factory=None)

        with caplog.at_level(_logging.WARNING, logger="figi.watch"):
            assert watcher.trigger() is False

        assert "keeping previous config" in caplog.text
        assert "bad indent" in caplog.text

    def test_trigger_unexpected_failure_logged(self, tmp_path: _pathlib.Path, caplog: _pytest.LogCaptureFixture) -> None:
        watcher = watch.FileWatcher(tmp_path / "app.yaml", _Reloads(RuntimeError("x")), notifier_factory=None)
        with caplog.at_level(_logging.WARNING, logger="figi.watch"):
            assert watcher.trigger() is False
        assert "RuntimeError" in caplog.text


class TestWatcherRegistry:
    def test_watch_is_idempotent(self, tmp_path: _pathlib.Path, fake_notifiers) -> None:
        registry = watch.WatcherRegistry(fake_notifiers)
        first = registry.watch(tmp_path / "app.yaml", _Reloads())
        second = registry.watch(str(tmp_path / "app.yaml"), _Reloads())

        assert first is second
        assert len(fake_notifiers.notifiers) == 1
        assert len(registry) == 1

    def test_unwatch_stops_watcher(self, tmp_path: _pathlib.Path, fake_notifiers) -> None:
        registry = watch.WatcherRegistry(fake_notifiers)
        registry.watch(tmp_path / "app.yaml", _Reloads())

        assert registry.unwatch(tmp_path / "app.yaml") is True
        assert registry.unwatch(tmp_path / "app.yaml") is False
        assert fake_notifiers.for_path(tmp_path / "app.yaml").stopped
        assert registry.paths() == []

    def test_simulate_change_uses_registered_watcher(self, tmp_path: _pathlib.Path, fake_notifiers) -> None:
        registry = watch.WatcherRegistry(fake_notifiers)
        registered = _Reloads()
        registry.watch(tmp_path / "app.yaml", registered)
        ignored = _Reloads()

        assert registry.simulate_change(tmp_path / "app.yaml", ignored) is True
        assert registered.paths == [(tmp_path / "app.yaml").resolve()]
        assert ignored.paths == []

    def test_simulate_change_without_watcher(self, tmp_path: _pathlib.Path, fake_notifiers) -> None:
        registry = watch.WatcherRegistry(fake_notifiers)
        reloads = _Reloads()

        assert registry.simulate_change(tmp_path / "app.yaml", reloads) is True
        assert reloads.paths == [(tmp_path / "app.yaml").resolve()]
        assert fake_notifiers.notifiers == []

    def test_stop_all(self, tmp_path: _pathlib.Path, fake_notifiers) -> None:
        registry = watch.WatcherRegistry(fake_notifiers)
        registry.watch(tmp_path / "a.yaml", _Reloads())
        registry.watch(tmp_path / "b.yaml", _Reloads())

        registry.stop_all()

        assert len(registry) == 0
        assert all(n.stopped for n in fake_notifiers.notifiers)


class TestDirectoryEventHandler:
    """Translation of watchdog events into change batches."""

    def _handler(self) -> tuple[watch._DirectoryEventHandler, list[tuple[set, set, set]]]:
        batches: list[tuple[set, set, set]] = []
        handler = watch._DirectoryEventHandler(
            lambda m, a, r: batches.append((set(m), set(a), set(r)))
        )
        return handler, batches

    def test_modified_file(self, tmp_path: _pathlib.Path) -> None:
        handler, batches = self._handler()
        event = _types.SimpleNamespace(is_directory=False, src_path=str(tmp_path / "app.yaml"))
        handler.on_modified(event)  # type: ignore[arg-type]
        assert batches == [({(tmp_path / "app.yaml").resolve()}, set(), set())]

    def test_move_reports_added_and_removed(self, tmp_path: _pathlib.Path) -> None:
        handler, batches = self._handler()
        event = _types.SimpleNamespace(
            is_directory=False,
            src_path=str(tmp_path / "app.yaml.tmp"),
            dest_path=str(tmp_path / "app.yaml"),
        )
        handler.on_moved(event)  # type: ignore[arg-type]
        assert batches == [(set(), {(tmp_path / "app.yaml").resolve()}, {(tmp_path / "app.yaml.tmp").resolve()})]

    def test_directory_events_ignored(self, tmp_path: _pathlib.Path) -> None:
        handler, batches = self._handler()
        event = _types.SimpleNamespace(is_directory=True, src_path=str(tmp_path))
        handler.on_created(event)  # type: ignore[arg-type]
        handler.on_deleted(event)  # type: ignore[arg-type]
        assert batches == []


@_pytest.mark.slow
class TestWatchdogNotifier:
    def test_real_file_change_detected(self, tmp_path: _pathlib.Path) -> None:
        target = tmp_path / "app.yaml"
        target.write_text("a: 1\n")
        seen = _threading.Event()

        def on_change(modified, added, removed) -> None:
            if target.resolve() in modified | added:
                seen.set()

        notifier = watch.WatchdogNotifier(target.resolve(), on_change)
        notifier.start()
        try:
            target.write_text("a: 2\n")
            assert seen.wait(timeout=10)
        finally:
            notifier.stop()
