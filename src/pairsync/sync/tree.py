"""Directory mode: one directory tree mirrored onto another, recursively.

Reconciliation walks source to target first, copying files that are missing
or strictly newer on the source side and, when the mapping's delete option
is set, pruning target entries that have no source counterpart. It then walks
target to source the same way, without pruning. Pruning happens per
directory during the first walk, so files removed from the source are gone
from the target before the reverse walk could copy them back.
"""

from __future__ import annotations

import functools
import logging
from pathlib import Path

from pairsync.core.config import TreeMapping
from pairsync.core.types import SyncDirection
from pairsync.sync.base import BaseSynchronizer
from pairsync.sync.operations import copy_file, ensure_dir, get_mtime_ns, remove_path
from pairsync.sync.watcher import EndpointWatcher, EventKind, WatchEvent

logger = logging.getLogger(__name__)


def _event_path_key(event: WatchEvent) -> Path:
    return event.path


class TreeSynchronizer(BaseSynchronizer):
    """Keeps a directory mapping mirrored in both directions."""

    _mapping: TreeMapping

    @property
    def delete_enabled(self) -> bool:
        """Check if target entries missing from the source are pruned."""
        return self._mapping.sync_options.delete

    def _reconcile(self) -> int:
        source_root, target_root = self.source_path, self.target_path
        ensure_dir(source_root)
        ensure_dir(target_root)

        copied = self._sync_dir(
            source_root, target_root, source_root, SyncDirection.SOURCE_TO_TARGET,
            prune=self.delete_enabled,
        )
        copied += self._sync_dir(
            target_root, source_root, target_root, SyncDirection.TARGET_TO_SOURCE,
            prune=False,
        )
        return copied

    def _sync_dir(
        self,
        from_dir: Path,
        to_dir: Path,
        from_root: Path,
        direction: SyncDirection,
        *,
        prune: bool,
    ) -> int:
        try:
            entries = sorted(from_dir.iterdir(), key=lambda entry: entry.name)
        except OSError as e:
            logger.error("[%s] Cannot list %s: %s", self.name, from_dir, e)
            return 0

        copied = 0
        seen: set[str] = set()
        for entry in entries:
            if entry.is_symlink():
                logger.debug("[%s] Skipping symlink %s", self.name, entry)
                seen.add(entry.name)
                continue
            is_dir = entry.is_dir()
            if self.is_ignored(entry, from_root, is_dir=is_dir):
                continue
            seen.add(entry.name)
            mirror = to_dir / entry.name

            if is_dir:
                if mirror.exists() and not mirror.is_dir():
                    logger.warning(
                        "[%s] %s is a directory but %s is not, skipping", self.name, entry, mirror
                    )
                    continue
                if not mirror.exists():
                    token = self.make_token(direction, entry, mirror)
                    if not self.run_operation(token, functools.partial(ensure_dir, mirror)):
                        continue
                copied += self._sync_dir(entry, mirror, from_root, direction, prune=prune)
            elif entry.is_file():
                if mirror.is_dir():
                    logger.warning(
                        "[%s] %s is a file but %s is a directory, skipping", self.name, entry, mirror
                    )
                    continue
                mirror_mtime = get_mtime_ns(mirror)
                entry_mtime = get_mtime_ns(entry)
                if mirror_mtime is None or (entry_mtime is not None and entry_mtime > mirror_mtime):
                    copied += int(self.copy(direction, entry, mirror))

        if prune:
            self._prune(from_dir, to_dir, seen, direction)
        return copied

    def _prune(
        self, from_dir: Path, to_dir: Path, keep: set[str], direction: SyncDirection
    ) -> None:
        _, mirror_root = self.endpoints(direction)
        try:
            extras = [entry for entry in to_dir.iterdir() if entry.name not in keep]
        except OSError as e:
            logger.error("[%s] Cannot list %s: %s", self.name, to_dir, e)
            return

        for extra in sorted(extras, key=lambda entry: entry.name):
            if extra.is_symlink() or self.is_ignored(extra, mirror_root):
                continue
            logger.info("[%s] %s no longer exists, removing %s", self.name, from_dir / extra.name, extra)
            token = self.make_token(direction, from_dir / extra.name, extra)
            self.run_operation(token, functools.partial(remove_path, extra))

    def handle_event(self, direction: SyncDirection, event: WatchEvent) -> bool:
        origin_root, mirror_root = self.endpoints(direction)
        try:
            relative = event.path.relative_to(origin_root)
        except ValueError:
            logger.warning(
                "[%s] Dropping event outside %s: %s", self.name, origin_root, event.path
            )
            return False
        if relative == Path("."):
            logger.debug("[%s] Ignoring %s on the mapping root", self.name, event.kind.value)
            return False

        mirror = mirror_root / relative
        token = self.make_token(direction, event.path, mirror)

        if event.kind in (EventKind.ADD, EventKind.CHANGE):
            operation = functools.partial(copy_file, event.path, mirror)
        elif event.kind is EventKind.ADD_DIR:
            operation = functools.partial(ensure_dir, mirror)
        elif event.kind in (EventKind.UNLINK, EventKind.UNLINK_DIR):
            operation = functools.partial(remove_path, mirror)
        else:
            return False

        logger.info("[%s] %s: %s", self.name, event.kind.value, relative)
        result = self.run_operation(token, operation)
        if result is None:
            logger.debug("[%s] %s already in progress, skipping", self.name, token)
        return bool(result)

    def _create_watcher(self, direction: SyncDirection) -> EndpointWatcher:
        origin, _ = self.endpoints(direction)
        ensure_dir(origin)
        return EndpointWatcher(
            origin,
            self._on_event(direction),
            recursive=True,
            options=self._options,
            ignore_initial=False,
            debounce_s=self._debounce_s,
            debounce_key=_event_path_key,
            label=self.name,
        )
