"""
Shared pytest fixtures for Figi tests.

This file is automatically loaded by pytest. Fixtures defined here are
available to all test files without explicit imports.
"""

import pathlib as _pathlib
import typing as _typing

import pytest as _pytest

import figi.config as config
import figi.watch as watch


class FakeNotifier:
    """In-memory stand-in for a filesystem notifier."""

    def __init__(self, path: _pathlib.Path, on_change: watch.ChangeHandler) -> None:
        self.path = path
        self.on_change = on_change
        self.started = False
        self.stopped = False

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def fire(
        self,
        modified: _typing.Iterable[_pathlib.Path] = (),
        added: _typing.Iterable[_pathlib.Path] = (),
        removed: _typing.Iterable[_pathlib.Path] = (),
    ) -> None:
        """Deliver a change batch as the real notifier would."""
        self.on_change(set(modified), set(added), set(removed))


class FakeNotifierFactory:
    """Notifier factory that remembers every notifier it built."""

    def __init__(self) -> None:
        self.notifiers: list[FakeNotifier] = []

    def __call__(self, path: _pathlib.Path, on_change: watch.ChangeHandler) -> FakeNotifier:
        notifier = FakeNotifier(path, on_change)
        self.notifiers.append(notifier)
        return notifier

    def for_path(self, path: _pathlib.Path) -> FakeNotifier:
        resolved = path.resolve()
        matches = [n for n in self.notifiers if n.path == resolved]
        assert len(matches) == 1, f"expected one notifier for {resolved}, got {len(matches)}"
        return matches[0]


@_pytest.fixture
def fake_notifiers() -> FakeNotifierFactory:
    return FakeNotifierFactory()


@_pytest.fixture
def environ() -> dict[str, str]:
    """Mutable environment snapshot injected into the `cfg` fixture."""
    return {}


@_pytest.fixture
def cfg(
    environ: dict[str, str],
    fake_notifiers: FakeNotifierFactory,
) -> _typing.Iterator[config.Config]:
    """
    Config isolated from the process environment and the filesystem
    notifier. Closed after the test so no background threads leak.
    """
    instance = config.Config(environ=environ, notifier_factory=fake_notifiers)
    yield instance
    instance.close()
