"""Base class shared by the file and directory synchronizers.

This module provides:
- BaseSynchronizer: Path resolution, token admission, watcher lifecycle

Subclasses must implement:
- _reconcile(): The one-shot comparison-and-copy pass
- handle_event(): Reaction to one debounced watcher event
- _create_watcher(): The watch handle for one direction
"""

from __future__ import annotations

import functools
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from pairsync.core.config import SyncMapping, WatchOptions
from pairsync.core.types import SyncDirection
from pairsync.sync.ignore import IgnorePatterns
from pairsync.sync.operations import copy_file
from pairsync.sync.status import MappingSummary
from pairsync.sync.watcher import DEFAULT_DEBOUNCE_S, EndpointWatcher, WatchEvent

if TYPE_CHECKING:
    from pairsync.sync.dedup import OperationDeduplicator
    from pairsync.sync.paths import PathResolver
    from pairsync.sync.status import SyncStatus

logger = logging.getLogger(__name__)


class BaseSynchronizer(ABC):
    """Keeps one mapping mirrored in both directions.

    Endpoint paths are resolved from the mapping on every access rather than
    cached, so each event is handled from the current configuration.
    """

    def __init__(
        self,
        mapping: SyncMapping,
        resolver: PathResolver,
        dedup: OperationDeduplicator,
        status: SyncStatus,
        *,
        options: WatchOptions | None = None,
        debounce_s: float = DEFAULT_DEBOUNCE_S,
    ) -> None:
        """Initialize the synchronizer.

        Args:
            mapping: The mapping to keep mirrored.
            resolver: Resolves endpoints to absolute paths.
            dedup: Registry of in-flight operations, shared by all mappings.
            status: Status record receiving last sync times.
            options: Watch options passed to the watch handles.
            debounce_s: Debounce window of the watch handles.

        Raises:
            ConfigurationError: If an endpoint cannot be resolved.
        """
        self._mapping = mapping
        self._resolver = resolver
        self._dedup = dedup
        self._status = status
        self._options = options or WatchOptions()
        self._debounce_s = debounce_s
        self._ignore = IgnorePatterns(list(self._options.ignored))
        self._watchers: dict[SyncDirection, EndpointWatcher] = {}

        # Fail at setup rather than on the first event
        self._resolver.resolve_endpoint(mapping.source)
        self._resolver.resolve_endpoint(mapping.target)

    @property
    def name(self) -> str:
        """Get the mapping's display name."""
        return self._mapping.display_name

    @property
    def mapping(self) -> SyncMapping:
        """Get the mapping."""
        return self._mapping

    @property
    def source_path(self) -> Path:
        """Get the resolved source endpoint."""
        return self._resolver.resolve_endpoint(self._mapping.source)

    @property
    def target_path(self) -> Path:
        """Get the resolved target endpoint."""
        return self._resolver.resolve_endpoint(self._mapping.target)

    @property
    def watchers(self) -> dict[SyncDirection, EndpointWatcher]:
        """Get the armed watch handles by direction."""
        return dict(self._watchers)

    def summary(self) -> MappingSummary:
        """Get the serializable summary of this mapping."""
        return MappingSummary(
            name=self.name,
            source=self._mapping.source.display,
            target=self._mapping.target.display,
            kind=self._mapping.mapping_kind,
        )

    def endpoints(self, direction: SyncDirection) -> tuple[Path, Path]:
        """Get (origin, mirror) endpoints for a propagation direction."""
        if direction is SyncDirection.SOURCE_TO_TARGET:
            return self.source_path, self.target_path
        return self.target_path, self.source_path

    def make_token(self, direction: SyncDirection, origin: Path, mirror: Path) -> str:
        """Build the operation token in source-to-target orientation.

        Both directions of the same entry share one token, which is what
        lets the echo of a write be recognised and dropped.
        """
        if direction is SyncDirection.SOURCE_TO_TARGET:
            return self._dedup.make_token(origin, mirror)
        return self._dedup.make_token(mirror, origin)

    def run_operation(self, token: str, operation: Callable[[], bool]) -> bool | None:
        """Run an operation if its token is admitted.

        Returns:
            None if the token was refused, else the operation's result.
        """
        if not self._dedup.try_begin(token):
            return None
        try:
            ok = operation()
            if ok:
                self._status.record_sync(self.name)
            return ok
        finally:
            self._dedup.end(token)

    def copy(self, direction: SyncDirection, origin: Path, mirror: Path) -> bool:
        """Copy origin over mirror through token admission."""
        token = self.make_token(direction, origin, mirror)
        return bool(self.run_operation(token, functools.partial(copy_file, origin, mirror)))

    def is_ignored(self, path: Path, root: Path, is_dir: bool | None = None) -> bool:
        """Check a path against the watch ignore patterns."""
        return self._ignore.should_ignore(path, root, is_dir=is_dir)

    def reconcile(self) -> int:
        """Run the initial reconciliation.

        Returns:
            Number of entries copied.
        """
        logger.info(
            "[%s] Initial sync: %s <-> %s", self.name, self.source_path, self.target_path
        )
        try:
            copied = self._reconcile()
        except Exception:
            logger.exception("[%s] Initial sync failed", self.name)
            return 0
        logger.info("[%s] Initial sync complete: %d copied", self.name, copied)
        return copied

    @abstractmethod
    def _reconcile(self) -> int:
        """Reconcile both endpoints, returning the number of copies."""

    @abstractmethod
    def handle_event(self, direction: SyncDirection, event: WatchEvent) -> bool:
        """Propagate one event to the opposite endpoint.

        Returns:
            True if an operation was performed and succeeded.
        """

    @abstractmethod
    def _create_watcher(self, direction: SyncDirection) -> EndpointWatcher:
        """Create the watch handle observing the origin of a direction."""

    def _on_event(self, direction: SyncDirection) -> Callable[[WatchEvent], None]:
        return functools.partial(self.handle_event, direction)

    def arm(self) -> None:
        """Create and start both watch handles.

        A handle whose subscription fails is kept in degraded state.
        """
        for direction in SyncDirection:
            if direction in self._watchers:
                continue
            watcher = self._create_watcher(direction)
            if not watcher.start():
                logger.error("[%s] Watcher for %s is degraded", self.name, watcher.path)
            self._watchers[direction] = watcher

    def set_steady_state(self) -> None:
        """Switch both watch handles to steady-state mode."""
        for watcher in self._watchers.values():
            watcher.set_steady_state()

    def close(self) -> None:
        """Close both watch handles."""
        for watcher in self._watchers.values():
            watcher.close()
        self._watchers.clear()
