"""Live rebuild watcher for mdblog.

Watches the blog root with a watchdog observer and reruns load + build when a
source file changes. The pieces are kept separate so each can be tested on
its own:

- EventChannel: watchdog handler that turns filesystem events into
  ChangeEvents and releases each one after a quiet period (the debounce
  window), coalescing repeated events on the same path.
- IgnorePatterns: fnmatch-style globs against absolute paths; dotfiles and
  the build directory never trigger a rebuild.
- process_event: pure step function deciding whether one event triggers a
  rebuild, given the current WatchState.
- RebuildWatcher: the blocking loop tying them together. Rebuild failures are
  logged and the loop keeps going.

Events arriving within ``interval`` seconds of the last triggered rebuild are
dropped, not queued: a burst of saves produces one rebuild, and a second edit
inside the interval is only picked up by the next change after it.
"""

from __future__ import annotations

import enum
import glob
import logging
import os
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from fnmatch import fnmatchcase
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .errors import MdblogError, WatcherError
from .protocols import Rebuildable
from .utils import log_error

logger = logging.getLogger(__name__)

DEFAULT_DELAY = 2.0
POLL_INTERVAL = 0.5


class EventKind(str, enum.Enum):
    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"
    MOVED = "moved"


@dataclass(frozen=True)
class ChangeEvent:
    kind: EventKind
    path: Path
    dest_path: Path | None = None

    @property
    def target(self) -> Path:
        """Path the change ends up at: the destination of a move, else ``path``."""
        if self.kind is EventKind.MOVED and self.dest_path is not None:
            return self.dest_path
        return self.path

    @property
    def paths(self) -> tuple[Path, ...]:
        if self.target != self.path:
            return (self.path, self.target)
        return (self.path,)


def to_change_event(event: FileSystemEvent) -> ChangeEvent | None:
    """Convert a watchdog event, or return None for events that never rebuild."""
    if event.is_directory:
        return None
    try:
        kind = EventKind(event.event_type)
    except ValueError:
        return None
    dest = getattr(event, "dest_path", "") or None
    return ChangeEvent(
        kind=kind,
        path=Path(os.fsdecode(event.src_path)),
        dest_path=Path(os.fsdecode(dest)) if dest else None,
    )


class IgnorePatterns:
    """Glob patterns matched against absolute posix paths.

    ``*`` matches across ``/``, so ``<root>/*/.*`` catches a dotfile or dot
    directory at any depth below the root.
    """

    def __init__(self, patterns: Iterable[str]):
        self.patterns = tuple(patterns)

    @classmethod
    def default(cls, root: Path, build_dir: Path) -> IgnorePatterns:
        root_pat = glob.escape(root.absolute().as_posix().rstrip("/"))
        build_pat = glob.escape(build_dir.absolute().as_posix().rstrip("/"))
        return cls([f"{root_pat}/.*", f"{root_pat}/*/.*", build_pat, f"{build_pat}/*"])

    def matches(self, path: Path) -> bool:
        posix = Path(path).absolute().as_posix()
        return any(fnmatchcase(posix, pattern) for pattern in self.patterns)


class WatchStatus(enum.Enum):
    IDLE = "idle"
    REBUILDING = "rebuilding"
    STOPPED = "stopped"


@dataclass(frozen=True)
class WatchState:
    status: WatchStatus = WatchStatus.IDLE
    last_run: float | None = None


def process_event(
    event: ChangeEvent,
    state: WatchState,
    ignore: IgnorePatterns,
    interval: float,
    now: float,
) -> tuple[WatchState, bool]:
    """Decide whether an event triggers a rebuild.

    Args:
        event: The change to consider.
        state: Current watcher state.
        ignore: Paths that never trigger a rebuild.
        interval: Minimum seconds between triggered rebuilds.
        now: Current monotonic time.

    Returns:
        Tuple of (next state, whether to rebuild). A triggered rebuild moves
        the state to REBUILDING and records ``now`` as ``last_run``.
    """
    if state.status is WatchStatus.STOPPED:
        return state, False
    # A move is only dropped when both its source and destination are ignored.
    if all(ignore.matches(path) for path in event.paths):
        return state, False
    if state.last_run is not None and now - state.last_run < interval:
        return state, False
    return WatchState(WatchStatus.REBUILDING, last_run=now), True


class ChannelClosed(Exception):
    """Raised by EventChannel.get once the channel is closed and drained."""


class EventChannel(FileSystemEventHandler):
    """Blocking, debounced channel of ChangeEvents.

    An event is handed out once no newer event for the same target path has
    arrived for ``delay`` seconds; a newer event replaces the pending one.
    Moves are keyed on their destination.
    """

    def __init__(self, delay: float = DEFAULT_DELAY, clock: Callable[[], float] = time.monotonic):
        super().__init__()
        self.delay = delay
        self._clock = clock
        self._pending: dict[Path, tuple[ChangeEvent, float]] = {}
        self._cond = threading.Condition()
        self._closed = False

    def on_any_event(self, event: FileSystemEvent) -> None:
        change = to_change_event(event)
        if change is not None:
            self.put(change)

    def put(self, change: ChangeEvent) -> None:
        with self._cond:
            if self._closed:
                return
            # Re-inserting keeps the dict ordered by arrival time.
            self._pending.pop(change.target, None)
            self._pending[change.target] = (change, self._clock())
            self._cond.notify_all()

    def get(self, timeout: float | None = None) -> ChangeEvent | None:
        """Return the next settled event, or None when ``timeout`` expires.

        Raises:
            ChannelClosed: If the channel is closed and nothing is pending.
        """
        deadline = None if timeout is None else self._clock() + timeout
        with self._cond:
            while True:
                wait: float | None = None
                if self._pending:
                    path, (change, stamp) = next(iter(self._pending.items()))
                    wait = stamp + self.delay - self._clock()
                    if wait <= 0:
                        del self._pending[path]
                        return change
                elif self._closed:
                    raise ChannelClosed("event channel is closed")
                if deadline is not None:
                    remaining = deadline - self._clock()
                    if remaining <= 0:
                        return None
                    wait = remaining if wait is None else min(wait, remaining)
                self._cond.wait(wait)

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()


class RebuildWatcher:
    """Reloads and rebuilds a blog whenever its sources change.

    Attributes:
        blog: Object providing ``load()`` and ``build()``.
        root: Directory watched recursively.
        ignore: Ignore patterns, computed once per watcher.
        interval: Minimum seconds between rebuilds.
        channel: Debounced event channel fed by the observer.
        state: Current WatchState.
    """

    def __init__(
        self,
        blog: Rebuildable,
        root: Path,
        ignore: IgnorePatterns,
        interval: float,
        delay: float = DEFAULT_DELAY,
        clock: Callable[[], float] = time.monotonic,
        on_rebuilt: Callable[[], None] | None = None,
        observer_factory: Callable[[], Observer] = Observer,
    ):
        self.blog = blog
        self.root = root
        self.ignore = ignore
        self.interval = interval
        self.channel = EventChannel(delay, clock)
        self.state = WatchState()
        self.on_rebuilt = on_rebuilt
        self._clock = clock
        self._observer_factory = observer_factory
        self._observer: Observer | None = None
        self._stop = threading.Event()

    def handle_event(self, event: ChangeEvent) -> bool:
        """Process one event, rebuilding if it passes the filters.

        Returns:
            True if a rebuild was triggered, whether or not it succeeded.
        """
        self.state, should_rebuild = process_event(
            event, self.state, self.ignore, self.interval, self._clock()
        )
        if not should_rebuild:
            return False
        logger.info("Modified file: %s", event.target)
        logger.info("Rebuild blog again...")
        try:
            self.blog.load()
            self.blog.build()
        except (MdblogError, OSError) as exc:
            log_error(exc)
        except Exception:
            logger.exception("unexpected error while rebuilding")
        else:
            logger.info("Rebuild done!")
            if self.on_rebuilt is not None:
                self.on_rebuilt()
        finally:
            self.state = replace(self.state, status=WatchStatus.IDLE)
        return True

    def start(self) -> None:
        """Start the observer.

        Raises:
            WatcherError: If the observer cannot be created or started.
        """
        try:
            observer = self._observer_factory()
            observer.schedule(self.channel, str(self.root), recursive=True)
            observer.start()
        except Exception as exc:
            self.state = replace(self.state, status=WatchStatus.STOPPED)
            raise WatcherError(f"cannot watch directory: {exc}", self.root) from exc
        self._observer = observer
        logger.info("watching dir: %s", self.root)

    def run(self, poll_interval: float = POLL_INTERVAL) -> None:
        """Start watching and process events until ``stop()`` is called."""
        self.start()
        try:
            while not self._stop.is_set():
                try:
                    event = self.channel.get(timeout=poll_interval)
                except ChannelClosed as exc:
                    if self._stop.is_set():
                        break
                    logger.error("watch error: %s", exc)
                    self._stop.wait(poll_interval)
                    continue
                if event is not None:
                    self.handle_event(event)
        finally:
            self._shutdown()

    def stop(self) -> None:
        self._stop.set()
        self.channel.close()

    def _shutdown(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
        self.state = replace(self.state, status=WatchStatus.STOPPED)
