"""File mode: one file mirrored onto another file."""

from __future__ import annotations

import functools
import logging

from pairsync.core.config import FileMapping
from pairsync.core.types import SyncDirection
from pairsync.sync.base import BaseSynchronizer
from pairsync.sync.operations import copy_file, ensure_dir, get_mtime_ns, remove_path
from pairsync.sync.watcher import EndpointWatcher, EventKind, WatchEvent

logger = logging.getLogger(__name__)


class PairSynchronizer(BaseSynchronizer):
    """Keeps a file mapping mirrored in both directions.

    Each direction has its own debounce window: a burst of events on one
    side (an editor's save sequence) results in a single propagation.
    """

    _mapping: FileMapping

    def _reconcile(self) -> int:
        source, target = self.source_path, self.target_path
        source_exists = source.is_file()
        target_exists = target.is_file()
        logger.debug(
            "[%s] Source exists: %s, target exists: %s", self.name, source_exists, target_exists
        )

        if source_exists and not target_exists:
            logger.info("[%s] Copying source to target", self.name)
            return int(self.copy(SyncDirection.SOURCE_TO_TARGET, source, target))
        if target_exists and not source_exists:
            logger.info("[%s] Copying target to source", self.name)
            return int(self.copy(SyncDirection.TARGET_TO_SOURCE, target, source))
        if not source_exists:
            logger.info("[%s] Neither file exists, nothing to sync", self.name)
            return 0

        source_mtime = get_mtime_ns(source)
        target_mtime = get_mtime_ns(target)
        if source_mtime is None or target_mtime is None:
            logger.error("[%s] Cannot read modification times", self.name)
            return 0
        if source_mtime > target_mtime:
            logger.info("[%s] Source is newer, copying to target", self.name)
            return int(self.copy(SyncDirection.SOURCE_TO_TARGET, source, target))
        if target_mtime > source_mtime:
            logger.info("[%s] Target is newer, copying to source", self.name)
            return int(self.copy(SyncDirection.TARGET_TO_SOURCE, target, source))

        logger.info("[%s] Files have the same modification time, nothing to sync", self.name)
        return 0

    def handle_event(self, direction: SyncDirection, event: WatchEvent) -> bool:
        origin, mirror = self.endpoints(direction)
        token = self.make_token(direction, origin, mirror)

        if event.kind in (EventKind.ADD, EventKind.CHANGE):
            operation = functools.partial(copy_file, event.path, mirror)
        elif event.kind is EventKind.UNLINK:
            operation = functools.partial(remove_path, mirror)
        else:
            return False

        logger.info("[%s] %s: %s", self.name, event.kind.value, event.path)
        result = self.run_operation(token, operation)
        if result is None:
            logger.debug("[%s] %s already in progress, skipping", self.name, token)
        return bool(result)

    def _create_watcher(self, direction: SyncDirection) -> EndpointWatcher:
        origin, _ = self.endpoints(direction)
        ensure_dir(origin.parent)
        return EndpointWatcher(
            origin,
            self._on_event(direction),
            recursive=False,
            options=self._options,
            ignore_initial=True,
            debounce_s=self._debounce_s,
            label=self.name,
        )
