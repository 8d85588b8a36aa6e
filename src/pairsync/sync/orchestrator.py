"""Sync orchestrator: owns every active mapping of one configuration.

Lifecycle:
    stopped -> starting -> running -> stopping -> stopped
    running -> restarting -> running

start() builds one synchronizer per mapping, launches initial reconciliation
for all of them on a thread pool, and arms their watchers right away so
that changes made during a slow tree walk are not missed. Directory watchers
stay in deliver-everything mode, holding their events, until every
reconciliation has finished; only then are they switched to steady state.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any

from pairsync.core.config import (
    ConfigurationError,
    FileMapping,
    SyncConfig,
    SyncMapping,
    TreeMapping,
)
from pairsync.core.types import ServiceState
from pairsync.sync.base import BaseSynchronizer
from pairsync.sync.dedup import DEFAULT_COOLDOWN_S, OperationDeduplicator
from pairsync.sync.pair import PairSynchronizer
from pairsync.sync.paths import PathResolver
from pairsync.sync.status import SyncStatus
from pairsync.sync.tree import TreeSynchronizer
from pairsync.sync.watcher import DEFAULT_DEBOUNCE_S

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """Runs the synchronizers of one configuration.

    The deduplicator and the status record belong to the orchestrator and
    are handed to every synchronizer it builds, so independent orchestrators
    never share state.

    Usage:
        orchestrator = SyncOrchestrator(config_loader=lambda: load_config(path))
        orchestrator.start()
        orchestrator.wait_until_reconciled()
        ...
        orchestrator.stop()
    """

    def __init__(
        self,
        config: SyncConfig | None = None,
        config_loader: Callable[[], SyncConfig] | None = None,
        *,
        debounce_s: float = DEFAULT_DEBOUNCE_S,
        cooldown_s: float = DEFAULT_COOLDOWN_S,
        max_workers: int | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            config: Configuration to run. Loaded through config_loader when None.
            config_loader: Produces a fresh configuration; used on restart().
            debounce_s: Debounce window of every watch handle.
            cooldown_s: Delay before a finished operation's token is released.
            max_workers: Thread pool size for initial reconciliation.
        """
        self._config = config
        self._config_loader = config_loader
        self._debounce_s = debounce_s
        self._max_workers = max_workers

        self._dedup = OperationDeduplicator(cooldown_s)
        self._status = SyncStatus()
        self._synchronizers: list[BaseSynchronizer] = []

        self._lock = threading.RLock()
        self._executor: ThreadPoolExecutor | None = None
        self._generation = 0
        self._reconciled = threading.Event()

    @property
    def state(self) -> ServiceState:
        """Get the current lifecycle state."""
        return self._status.state

    @property
    def is_running(self) -> bool:
        """Check if the orchestrator is running."""
        return self._status.is_running

    @property
    def dedup(self) -> OperationDeduplicator:
        """Get the operation registry shared by this orchestrator's mappings."""
        return self._dedup

    @property
    def synchronizers(self) -> list[BaseSynchronizer]:
        """Get the active synchronizers."""
        with self._lock:
            return list(self._synchronizers)

    def _get_config(self, config: SyncConfig | None = None, reload: bool = False) -> SyncConfig:
        if config is not None:
            self._config = config
        elif self._config_loader is not None and (reload or self._config is None):
            self._config = self._config_loader()
        if self._config is None:
            raise ConfigurationError("No configuration to run")
        return self._config

    def _build(self, mapping: SyncMapping, config: SyncConfig, resolver: PathResolver) -> BaseSynchronizer:
        synchronizer_cls: type[BaseSynchronizer]
        if isinstance(mapping, FileMapping):
            synchronizer_cls = PairSynchronizer
        elif isinstance(mapping, TreeMapping):
            synchronizer_cls = TreeSynchronizer
        else:
            raise ConfigurationError(f"Unknown mapping type: {type(mapping).__name__}")
        return synchronizer_cls(
            mapping,
            resolver,
            self._dedup,
            self._status,
            options=config.watch_options,
            debounce_s=self._debounce_s,
        )

    def _build_all(self, config: SyncConfig) -> list[BaseSynchronizer]:
        resolver = PathResolver(config.base_dirs)
        synchronizers: list[BaseSynchronizer] = []
        for mapping in config.mappings:
            try:
                synchronizers.append(self._build(mapping, config, resolver))
            except (ConfigurationError, OSError) as e:
                logger.error("[%s] Skipping mapping: %s", mapping.display_name, e)
        return synchronizers

    def start(self, config: SyncConfig | None = None) -> dict[str, Any]:
        """Start syncing every mapping of the configuration.

        Does nothing if already running.

        Args:
            config: Configuration to run instead of the current one.

        Returns:
            The status snapshot.

        Raises:
            ConfigurationError: If there is no configuration or it cannot be loaded.
        """
        with self._lock:
            if self._status.is_running:
                return self.get_status()
            self._status.set_state(ServiceState.STARTING)
            try:
                current = self._get_config(config)
            except ConfigurationError:
                self._status.set_state(ServiceState.STOPPED)
                raise
            self._start_locked(current)
            return self.get_status()

    def _start_locked(self, config: SyncConfig) -> None:
        synchronizers = self._build_all(config)
        self._synchronizers = synchronizers
        self._status.mark_started([sync.summary() for sync in synchronizers])

        self._generation += 1
        generation = self._generation
        self._reconciled.clear()

        self._executor = ThreadPoolExecutor(
            max_workers=self._max_workers, thread_name_prefix="pairsync-reconcile"
        )
        futures = [self._executor.submit(sync.reconcile) for sync in synchronizers]

        armed: list[BaseSynchronizer] = []
        for sync in synchronizers:
            try:
                sync.arm()
                armed.append(sync)
            except (ConfigurationError, OSError, ValueError) as e:
                logger.error("[%s] Failed to set up watchers: %s", sync.name, e)
                sync.close()

        self._status.set_state(ServiceState.RUNNING)
        logger.info("Sync started for %d mapping(s)", len(synchronizers))

        self._when_all_done(futures, lambda: self._finish_reconciliation(generation, armed))

    def _when_all_done(self, futures: list[Future[int]], callback: Callable[[], None]) -> None:
        remaining = len(futures)
        counter_lock = threading.Lock()

        def on_done(_: Future[int]) -> None:
            nonlocal remaining
            with counter_lock:
                remaining -= 1
                finished = remaining == 0
            if finished:
                callback()

        if not futures:
            callback()
            return
        for future in futures:
            future.add_done_callback(on_done)

    def _finish_reconciliation(self, generation: int, armed: list[BaseSynchronizer]) -> None:
        with self._lock:
            if generation != self._generation or not self._status.is_running:
                return
            for sync in armed:
                sync.set_steady_state()
            self._reconciled.set()
        logger.info("Initial sync complete for all mappings")

    def wait_until_reconciled(self, timeout: float | None = None) -> bool:
        """Block until the current run's watchers reached steady state.

        Returns:
            True if reconciliation finished within the timeout.
        """
        return self._reconciled.wait(timeout)

    def reconcile(self, config: SyncConfig | None = None) -> dict[str, int]:
        """Reconcile every mapping once, without watching.

        Args:
            config: Configuration to use instead of the current one.

        Returns:
            Number of entries copied per mapping name.
        """
        current = self._get_config(config)
        synchronizers = self._build_all(current)
        with ThreadPoolExecutor(
            max_workers=self._max_workers, thread_name_prefix="pairsync-reconcile"
        ) as executor:
            futures = {sync.name: executor.submit(sync.reconcile) for sync in synchronizers}
            wait(list(futures.values()))
        return {name: future.result() for name, future in futures.items()}

    def stop(self) -> dict[str, Any]:
        """Close every watch handle and stop.

        Operations already running are left to complete. Does nothing if
        already stopped.

        Returns:
            The status snapshot.
        """
        with self._lock:
            if not self._status.is_running:
                return self.get_status()
            self._status.set_state(ServiceState.STOPPING)
            self._stop_locked()
            self._status.set_state(ServiceState.STOPPED)
            return self.get_status()

    def _stop_locked(self) -> None:
        self._generation += 1
        for sync in self._synchronizers:
            try:
                sync.close()
            except Exception:
                logger.exception("[%s] Failed to close watchers", sync.name)
        self._synchronizers = []
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
        self._status.mark_stopped()
        logger.info("Sync stopped")

    def restart(self) -> dict[str, Any]:
        """Stop, then start again with a freshly loaded configuration.

        Without a config loader the current configuration is reused. If the
        reload fails the previous configuration is kept.

        Returns:
            The status snapshot.
        """
        with self._lock:
            logger.info("Restarting sync")
            self._status.set_state(ServiceState.RESTARTING)
            if self._status.is_running:
                self._stop_locked()
            try:
                current = self._get_config(reload=True)
            except ConfigurationError as e:
                logger.error("Failed to reload configuration, keeping the previous one: %s", e)
                if self._config is None:
                    self._status.set_state(ServiceState.STOPPED)
                    raise
                current = self._config
            self._start_locked(current)
            return self.get_status()

    def get_status(self) -> dict[str, Any]:
        """Get a serializable snapshot of the status."""
        return self._status.snapshot()
