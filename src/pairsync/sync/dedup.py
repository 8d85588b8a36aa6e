"""In-flight operation registry used to suppress duplicate and echo operations.

A copy from A to B makes B's watcher fire. Without suppression the handler
for B would copy back to A, A's watcher would fire, and so on. Tokens are
therefore released only after a cooldown following the end of an operation,
long enough for the echo event to arrive and be dropped.

The cooldown assumes event delivery latency well under one second. On slow
filesystems or heavily loaded machines an echo can arrive after the token
is gone and be propagated once more.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_S = 1.0


class OperationDeduplicator:
    """Thread-safe set of active operation tokens.

    Usage:
        token = dedup.make_token(source, target)
        if not dedup.try_begin(token):
            return
        try:
            copy_file(source, target)
        finally:
            dedup.end(token)
    """

    def __init__(self, cooldown_s: float = DEFAULT_COOLDOWN_S) -> None:
        """Initialize the registry.

        Args:
            cooldown_s: Delay between end() and the token's release.
        """
        self._cooldown_s = cooldown_s
        self._active: set[str] = set()
        self._timers: dict[str, threading.Timer] = {}
        self._lock = threading.Lock()

    @property
    def cooldown_s(self) -> float:
        """Get the release delay in seconds."""
        return self._cooldown_s

    @staticmethod
    def make_token(source: Path, target: Path) -> str:
        """Build the token identifying an operation between two paths."""
        return f"{source}:{target}"

    def try_begin(self, token: str) -> bool:
        """Register a token if it is not already active.

        Returns:
            True if the caller may proceed, False if it must skip.
        """
        with self._lock:
            if token in self._active:
                logger.debug("Skipping duplicate operation %s", token)
                return False
            self._active.add(token)
            # A token re-admitted after release supersedes any stale timer
            stale = self._timers.pop(token, None)
        if stale is not None:
            stale.cancel()
        return True

    def end(self, token: str) -> None:
        """Schedule the release of a token after the cooldown."""
        timer: threading.Timer

        def release() -> None:
            with self._lock:
                # Only the most recent timer for a token may release it
                if self._timers.get(token) is timer:
                    del self._timers[token]
                    self._active.discard(token)

        timer = threading.Timer(self._cooldown_s, release)
        timer.daemon = True
        with self._lock:
            previous = self._timers.pop(token, None)
            self._timers[token] = timer
        if previous is not None:
            previous.cancel()
        timer.start()

    def is_active(self, token: str) -> bool:
        """Check whether a token is registered."""
        with self._lock:
            return token in self._active

    def clear(self) -> None:
        """Cancel pending releases and forget every token."""
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
            self._active.clear()
        for timer in timers:
            timer.cancel()

    def __len__(self) -> int:
        with self._lock:
            return len(self._active)
