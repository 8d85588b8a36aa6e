"""Sync status shared between the orchestrator and its synchronizers.

The status only ever holds plain values: mapping summaries, timestamps and
flags. Watch handles and the raw configuration stay with the orchestrator so
that snapshots can be serialized as-is by a dashboard.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pairsync.core.types import MappingKind, ServiceState


@dataclass(frozen=True)
class MappingSummary:
    """Serializable description of one mapping."""

    name: str
    source: str
    target: str
    kind: MappingKind

    def to_dict(self) -> dict[str, str]:
        """Convert to the snapshot representation."""
        return {
            "name": self.name,
            "source": self.source,
            "target": self.target,
            "type": self.kind.value,
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncStatus:
    """Mutable status record owned by one orchestrator.

    Writers are the orchestrator (lifecycle fields) and synchronizers
    (last sync times). Readers get a copy through snapshot().
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = ServiceState.STOPPED
        self._is_running = False
        self._start_time: datetime | None = None
        self._mappings: list[MappingSummary] = []
        self._last_sync_times: dict[str, datetime] = {}

    @property
    def state(self) -> ServiceState:
        """Get the orchestrator state."""
        return self._state

    @property
    def is_running(self) -> bool:
        """Check if the service is running."""
        return self._is_running

    def set_state(self, state: ServiceState) -> None:
        """Record a lifecycle transition."""
        with self._lock:
            self._state = state

    def mark_started(self, mappings: list[MappingSummary]) -> None:
        """Record the mappings of a new run and its start time."""
        with self._lock:
            self._mappings = list(mappings)
            self._is_running = True
            self._start_time = _utcnow()

    def mark_stopped(self) -> None:
        """Record that the service is no longer running."""
        with self._lock:
            self._is_running = False

    def record_sync(self, name: str, when: datetime | None = None) -> None:
        """Record the time of the last successful operation of a mapping."""
        with self._lock:
            self._last_sync_times[name] = when or _utcnow()

    def last_sync_time(self, name: str) -> datetime | None:
        """Get the last sync time of a mapping."""
        with self._lock:
            return self._last_sync_times.get(name)

    def snapshot(self) -> dict[str, Any]:
        """Get a serializable copy of the status.

        Returns:
            Dict with isRunning, state, startTime, uptimeSeconds, syncPairs
            and lastSyncTimes. Times are ISO 8601 strings.
        """
        with self._lock:
            is_running = self._is_running
            state = self._state
            start_time = self._start_time
            mappings = list(self._mappings)
            last_sync_times = dict(self._last_sync_times)

        uptime = 0
        if is_running and start_time is not None:
            uptime = int((_utcnow() - start_time).total_seconds())

        return {
            "isRunning": is_running,
            "state": state.value,
            "startTime": start_time.isoformat() if start_time else None,
            "uptimeSeconds": uptime,
            "syncPairs": [mapping.to_dict() for mapping in mappings],
            "lastSyncTimes": {name: when.isoformat() for name, when in last_sync_times.items()},
        }
