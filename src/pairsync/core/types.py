"""Shared types for pairsync.

This module defines enums used by the engine, the CLI and the status snapshot.
"""

from __future__ import annotations

from enum import Enum


class MappingKind(str, Enum):
    """Kind of a sync mapping."""

    FILE = "file"
    DIRECTORY = "directory"


class SyncDirection(str, Enum):
    """Direction in which a change is propagated."""

    SOURCE_TO_TARGET = "source-to-target"
    TARGET_TO_SOURCE = "target-to-source"

    @property
    def reverse(self) -> SyncDirection:
        """Get the opposite direction."""
        if self is SyncDirection.SOURCE_TO_TARGET:
            return SyncDirection.TARGET_TO_SOURCE
        return SyncDirection.SOURCE_TO_TARGET


class ServiceState(str, Enum):
    """Lifecycle state of the sync orchestrator.

    stopped -> starting -> running -> stopping -> stopped
    running -> restarting -> running
    """

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    RESTARTING = "restarting"
