"""Filesystem watch handles with debouncing.

This module provides:
- EventKind, WatchEvent: Normalized filesystem events (add/change/unlink/addDir/unlinkDir)
- Debouncer: Trailing-edge debounce keyed per caller-chosen key
- EndpointWatcher: One watch subscription on one side of a mapping

An EndpointWatcher either watches a directory tree recursively or a single
file (by watching its parent directory and keeping only that file's events).
In deliver-everything mode it reports the pre-existing snapshot as synthetic
add/addDir events and holds all events until set_steady_state() is called;
at that point snapshot events are dropped and the live ones are released.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.polling import PollingObserver

from pairsync.core.config import WatchOptions
from pairsync.sync.ignore import IgnorePatterns

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_S = 0.5


class EventKind(str, Enum):
    """Kind of a normalized filesystem event."""

    ADD = "add"
    CHANGE = "change"
    UNLINK = "unlink"
    ADD_DIR = "addDir"
    UNLINK_DIR = "unlinkDir"


@dataclass
class WatchEvent:
    """A normalized filesystem event.

    Attributes:
        kind: What happened.
        path: Absolute path of the affected entry.
        initial: True for synthetic events describing the pre-existing snapshot.
        timestamp: When the event was observed.
    """

    kind: EventKind
    path: Path
    initial: bool = False
    timestamp: float = field(default_factory=time.time)

    @property
    def is_directory(self) -> bool:
        """Check if the event concerns a directory."""
        return self.kind in (EventKind.ADD_DIR, EventKind.UNLINK_DIR)


class Debouncer:
    """Trailing-edge debounce: only the last call of a burst runs.

    Each key has its own timer. A new call for a key cancels the pending
    one and restarts the delay, so the callback runs once the key has been
    quiet for the whole delay, with the arguments of the last call.
    """

    def __init__(self, delay_s: float = DEFAULT_DEBOUNCE_S) -> None:
        self._delay_s = delay_s
        self._timers: dict[Hashable, threading.Timer] = {}
        self._lock = threading.Lock()

    @property
    def delay_s(self) -> float:
        """Get the quiet period in seconds."""
        return self._delay_s

    @property
    def pending(self) -> int:
        """Get the number of keys with a scheduled call."""
        with self._lock:
            return len(self._timers)

    def call(self, key: Hashable, func: Callable[..., Any], *args: Any) -> None:
        """Schedule func(*args) for key, replacing any pending call for it."""
        timer: threading.Timer

        def fire() -> None:
            with self._lock:
                if self._timers.get(key) is not timer:
                    return
                del self._timers[key]
            try:
                func(*args)
            except Exception:
                logger.exception("Debounced callback for %s failed", key)

        timer = threading.Timer(self._delay_s, fire)
        timer.daemon = True
        with self._lock:
            previous = self._timers.get(key)
            self._timers[key] = timer
        if previous is not None:
            previous.cancel()
        timer.start()

    def cancel_all(self) -> None:
        """Cancel every pending call."""
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()


def _decode(path: str | bytes) -> Path:
    if isinstance(path, bytes):
        path = path.decode("utf-8", errors="replace")
    return Path(path)


class _EndpointEventHandler(FileSystemEventHandler):
    """Forwards watchdog events to the owning EndpointWatcher."""

    def __init__(self, watcher: EndpointWatcher) -> None:
        super().__init__()
        self._watcher = watcher

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle created event."""
        self._watcher.handle_fs_event(event)

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle modified event."""
        self._watcher.handle_fs_event(event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        """Handle deleted event."""
        self._watcher.handle_fs_event(event)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle moved event."""
        self._watcher.handle_fs_event(event)


class EndpointWatcher:
    """Watch handle for one endpoint of a mapping.

    Usage:
        watcher = EndpointWatcher(root, on_event, recursive=True, ignore_initial=False)
        watcher.start()
        ...  # initial reconciliation
        watcher.set_steady_state()
        ...
        watcher.close()
    """

    def __init__(
        self,
        path: Path,
        on_event: Callable[[WatchEvent], None],
        *,
        recursive: bool = True,
        options: WatchOptions | None = None,
        ignore_initial: bool = True,
        debounce_s: float = DEFAULT_DEBOUNCE_S,
        debounce_key: Callable[[WatchEvent], Hashable] | None = None,
        label: str = "",
    ) -> None:
        """Initialize the watch handle.

        Args:
            path: Directory to watch (recursive) or file to watch (not recursive).
            on_event: Called with each debounced event.
            recursive: Watch a directory tree instead of a single file.
            options: Watch options (polling, interval, ignore patterns).
            ignore_initial: Start in steady-state mode, without snapshot events.
            debounce_s: Debounce window in seconds.
            debounce_key: Maps an event to its debounce key. By default every
                event of this watcher shares one key.
            label: Prefix for log messages.

        Raises:
            ValueError: If the directory (or the file's parent) does not exist.
        """
        self._path = Path(path)
        self._recursive = recursive
        self._options = options or WatchOptions()
        self._on_event = on_event
        self._label = label or str(self._path)
        self._debounce_key = debounce_key

        if recursive:
            self._watch_root = self._path
            self._file: Path | None = None
        else:
            self._watch_root = self._path.parent
            self._file = self._path
        if not self._watch_root.is_dir():
            raise ValueError(f"Watch path must be a directory: {self._watch_root}")

        self._ignore = IgnorePatterns(list(self._options.ignored))
        self._debouncer = Debouncer(debounce_s)
        self._handler = _EndpointEventHandler(self)

        self._ignore_initial = ignore_initial
        self._steady = ignore_initial
        self._held: dict[Path, WatchEvent] = {}
        self._lock = threading.Lock()

        self._observer: BaseObserver | None = None
        self._running = False
        self._failed = False

    @property
    def path(self) -> Path:
        """Get the watched endpoint path."""
        return self._path

    @property
    def is_running(self) -> bool:
        """Check if the watcher is running."""
        return self._running

    @property
    def is_degraded(self) -> bool:
        """Check if the watch subscription failed to start or died."""
        if self._failed:
            return True
        return self._running and self._observer is not None and not self._observer.is_alive()

    @property
    def is_steady(self) -> bool:
        """Check if the watcher dispatches events as they arrive."""
        return self._steady

    def _make_observer(self) -> BaseObserver:
        if self._options.use_polling:
            return PollingObserver(timeout=self._options.interval_s)
        return Observer()

    def start(self) -> bool:
        """Start the watch subscription.

        Returns:
            True if watching, False if the subscription could not be set up.
        """
        if self._running:
            return True

        observer = self._make_observer()
        try:
            observer.schedule(self._handler, str(self._watch_root), recursive=self._recursive)
            observer.start()
        except (OSError, RuntimeError) as e:
            logger.error("[%s] Failed to watch %s: %s", self._label, self._path, e)
            self._failed = True
            return False

        self._observer = observer
        self._running = True
        logger.debug("[%s] Watching %s", self._label, self._path)

        if not self._ignore_initial:
            self._emit_snapshot()
        return True

    def stop(self) -> None:
        """Stop watching and drop pending events."""
        if not self._running:
            return

        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5.0)
            self._observer = None
        # No event can be delivered past this point
        self._debouncer.cancel_all()
        with self._lock:
            self._held.clear()
        self._running = False
        logger.debug("[%s] Stopped watching %s", self._label, self._path)

    close = stop

    def set_steady_state(self) -> None:
        """Switch to steady-state mode.

        Snapshot events held so far are dropped; live events seen while
        holding are released to the debouncer.
        """
        with self._lock:
            if self._steady:
                return
            self._steady = True
            held = list(self._held.values())
            self._held.clear()

        live = [event for event in held if not event.initial]
        logger.debug(
            "[%s] Steady state: releasing %d event(s), dropping %d snapshot event(s)",
            self._label,
            len(live),
            len(held) - len(live),
        )
        for event in live:
            self._schedule(event)

    def _emit_snapshot(self) -> None:
        if self._file is not None:
            if self._file.is_file():
                self._receive(WatchEvent(EventKind.ADD, self._file, initial=True))
            return

        for dirpath, dirnames, filenames in os.walk(self._watch_root):
            current = Path(dirpath)
            kept_dirs = []
            for name in sorted(dirnames):
                entry = current / name
                if self._ignore.should_ignore(entry, self._watch_root, is_dir=True):
                    continue
                kept_dirs.append(name)
                self._receive(WatchEvent(EventKind.ADD_DIR, entry, initial=True))
            dirnames[:] = kept_dirs
            for name in sorted(filenames):
                entry = current / name
                if not self._ignore.should_ignore(entry, self._watch_root, is_dir=False):
                    self._receive(WatchEvent(EventKind.ADD, entry, initial=True))

    def _translate(self, event: FileSystemEvent) -> list[WatchEvent]:
        src = _decode(event.src_path)
        if isinstance(event, FileMovedEvent):
            dest = _decode(event.dest_path)
            return [WatchEvent(EventKind.UNLINK, src), WatchEvent(EventKind.ADD, dest)]
        if isinstance(event, DirMovedEvent):
            dest = _decode(event.dest_path)
            return [WatchEvent(EventKind.UNLINK_DIR, src), WatchEvent(EventKind.ADD_DIR, dest)]
        if isinstance(event, FileCreatedEvent):
            return [WatchEvent(EventKind.ADD, src)]
        if isinstance(event, FileModifiedEvent):
            return [WatchEvent(EventKind.CHANGE, src)]
        if isinstance(event, FileDeletedEvent):
            return [WatchEvent(EventKind.UNLINK, src)]
        if isinstance(event, DirCreatedEvent):
            return [WatchEvent(EventKind.ADD_DIR, src)]
        if isinstance(event, DirDeletedEvent):
            return [WatchEvent(EventKind.UNLINK_DIR, src)]
        # Directory modifications only mean "an entry inside changed"
        return []

    def _accepts(self, event: WatchEvent) -> bool:
        if self._file is not None:
            return not event.is_directory and event.path == self._file
        return not self._ignore.should_ignore(
            event.path, self._watch_root, is_dir=event.is_directory
        )

    def handle_fs_event(self, event: FileSystemEvent) -> None:
        """Translate, filter and forward a raw watchdog event."""
        for watch_event in self._translate(event):
            if self._accepts(watch_event):
                logger.debug(
                    "[%s] %s %s", self._label, watch_event.kind.value, watch_event.path
                )
                self._receive(watch_event)

    def _receive(self, event: WatchEvent) -> None:
        with self._lock:
            if not self._steady:
                # Latest event per path wins while holding
                self._held.pop(event.path, None)
                self._held[event.path] = event
                return
        self._schedule(event)

    def _schedule(self, event: WatchEvent) -> None:
        key = self._debounce_key(event) if self._debounce_key else self._path
        self._debouncer.call(key, self._dispatch, event)

    def _dispatch(self, event: WatchEvent) -> None:
        try:
            self._on_event(event)
        except Exception:
            logger.exception("[%s] Failed to handle %s %s", self._label, event.kind.value, event.path)

    def __enter__(self) -> EndpointWatcher:
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.stop()
