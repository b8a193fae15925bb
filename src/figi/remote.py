"""
Remote configuration sources.

A RemoteSource wraps a caller-supplied fetch function that returns an
already-parsed tree (Figi ships no network client). Each fetched tree is
handed to a sink, which stores it under remote/<name> and rebuilds.

Lifecycle:
    idle --start()--> running --stop()--> idle

Only sources with a poll interval ever enter `running`: they own one
daemon thread that fetches immediately and then once per interval. A
source without an interval fetches once on start() and stays idle.

Errors:
    poll() raises ConfigRemoteError when the fetch function fails. The
    background loop catches and logs it, then waits for the next tick.

Stopping:
    stop() sets the loop's stop event and, unless told not to wait, joins
    the thread. A fetch that completes after the event is set is never
    handed to the sink; sinks that block on a lock confirm this with
    delivery_cancelled() once they hold it.
"""

from __future__ import annotations

import collections.abc as _abc
import enum as _enum
import logging as _logging
import threading as _threading
import typing as _typing

import figi.errors as errors

_logger = _logging.getLogger(__name__)

FetchFunction: _typing.TypeAlias = _typing.Callable[[], _typing.Any]
Sink: _typing.TypeAlias = _typing.Callable[[str, _abc.Mapping[str, _typing.Any]], _typing.Any]

# How long stop() waits for a loop thread to finish
_JOIN_TIMEOUT = 5.0

# Stop event of the poll loop running on the current thread, if any
_loop_context = _threading.local()


def delivery_cancelled() -> bool:
    """
    True when called from a poll loop whose source has been stopped.

    Sinks check this after taking their own lock, so a loop that was
    stopped while it waited for that lock stores nothing.
    """
    stop_event = getattr(_loop_context, "stop_event", None)
    return stop_event is not None and stop_event.is_set()


class RemoteState(str, _enum.Enum):
    IDLE = "idle"
    RUNNING = "running"


class RemoteSource:
    """
    One registered remote source.

    Args:
        name: Source name; also the entry name in the remote bucket.
        fetch: Zero-argument callable returning a mapping (or None for
            "no configuration").
        sink: Receives (name, tree) after every successful fetch.
        interval: Poll interval in seconds, or None for fetch-on-start only.
    """

    def __init__(
        self,
        name: str,
        fetch: FetchFunction,
        sink: Sink,
        *,
        interval: float | None = None,
    ) -> None:
        if interval is not None and interval <= 0:
            raise ValueError(f"Poll interval must be positive, got {interval!r}")
        self.name = str(name)
        self.interval = interval
        self._fetch = fetch
        self._sink = sink
        self._lock = _threading.Lock()
        self._thread: _threading.Thread | None = None
        self._stop_event: _threading.Event | None = None

    def __repr__(self) -> str:
        return f"RemoteSource(name={self.name!r}, interval={self.interval!r}, state={self.state.value})"

    @property
    def state(self) -> RemoteState:
        thread = self._thread
        if thread is not None and thread.is_alive():
            return RemoteState.RUNNING
        return RemoteState.IDLE

    @property
    def running(self) -> bool:
        return self.state is RemoteState.RUNNING

    def fetch(self) -> dict[str, _typing.Any]:
        """
        Invoke the fetch function without storing the result.

        Raises:
            ConfigRemoteError: If the fetch function raises or returns
                something other than a mapping.
        """
        try:
            data = self._fetch()
        except errors.ConfigRemoteError:
            raise
        except Exception as e:
            raise errors.ConfigRemoteError(self.name, f"{type(e).__name__}: {e}") from e
        if data is None:
            return {}
        if not isinstance(data, _abc.Mapping):
            raise errors.ConfigRemoteError(
                self.name, f"fetch returned {type(data).__name__}, expected a mapping"
            )
        return dict(data)

    def poll(self) -> dict[str, _typing.Any]:
        """
        Fetch once and hand the result to the sink.

        Returns:
            The fetched tree.

        Raises:
            ConfigRemoteError: If the fetch fails. The sink is not called.
        """
        data = self.fetch()
        self._sink(self.name, data)
        return data

    def start(self, *, wait: bool = True) -> None:
        """
        Start the source.

        With an interval, (re)starts the background loop; a loop already
        running is stopped first so there is never more than one. Without
        an interval, polls once in the calling thread.

        Args:
            wait: Join a loop being replaced. See stop().
        """
        if self.interval is None:
            self.poll()
            return
        with self._lock:
            self._stop_locked(wait)
            stop_event = _threading.Event()
            thread = _threading.Thread(
                target=self._run,
                args=(stop_event,),
                name=f"figi-remote-{self.name}",
                daemon=True,
            )
            self._stop_event = stop_event
            self._thread = thread
            thread.start()
        _logger.debug("Started remote polling for %r every %ss", self.name, self.interval)

    def stop(self, *, wait: bool = True) -> None:
        """
        Stop the background loop. Safe to call when idle.

        Args:
            wait: Join the loop thread. Pass False when the caller holds a
                lock the sink needs; the loop then exits on its own and
                whatever it was fetching is dropped by the sink.
        """
        with self._lock:
            self._stop_locked(wait)

    def _stop_locked(self, wait: bool = True) -> None:
        thread, stop_event = self._thread, self._stop_event
        self._thread = None
        self._stop_event = None
        if stop_event is None or thread is None:
            return
        stop_event.set()
        # A callback running on the loop thread may stop its own source
        if wait and thread is not _threading.current_thread():
            thread.join(timeout=_JOIN_TIMEOUT)
            if thread.is_alive():
                _logger.warning("Remote poller %r did not stop within %ss", self.name, _JOIN_TIMEOUT)
        _logger.debug("Stopped remote polling for %r", self.name)

    def _run(self, stop_event: _threading.Event) -> None:
        assert self.interval is not None
        _loop_context.stop_event = stop_event
        while not stop_event.is_set():
            try:
                data = self.fetch()
                if stop_event.is_set():
                    break
                self._sink(self.name, data)
            except Exception:
                _logger.warning("Polling remote source %r failed", self.name, exc_info=True)
            if stop_event.wait(self.interval):
                break
