"""Synchronization engine.

Architecture:
    SyncOrchestrator → PairSynchronizer / TreeSynchronizer → EndpointWatcher

Components:
- **PathResolver**: Maps (base directory key, relative path) to absolute paths
- **copy_file / remove_path**: Non-raising single-entry primitives
- **OperationDeduplicator**: In-flight operation tokens with release cooldown
- **EndpointWatcher**: watchdog subscription with debounced dispatch
- **PairSynchronizer**: File-to-file mappings
- **TreeSynchronizer**: Directory-to-directory mappings
- **SyncStatus**: Serializable status record
- **SyncOrchestrator**: Lifecycle of all mappings of one configuration
"""

from pairsync.sync.base import BaseSynchronizer
from pairsync.sync.dedup import DEFAULT_COOLDOWN_S, OperationDeduplicator
from pairsync.sync.ignore import DEFAULT_IGNORE_PATTERNS, IgnorePatterns
from pairsync.sync.operations import copy_file, ensure_dir, get_mtime_ns, remove_path
from pairsync.sync.orchestrator import SyncOrchestrator
from pairsync.sync.pair import PairSynchronizer
from pairsync.sync.paths import PathResolver
from pairsync.sync.status import MappingSummary, SyncStatus
from pairsync.sync.tree import TreeSynchronizer
from pairsync.sync.watcher import (
    DEFAULT_DEBOUNCE_S,
    Debouncer,
    EndpointWatcher,
    EventKind,
    WatchEvent,
)

__all__ = [
    "DEFAULT_COOLDOWN_S",
    "DEFAULT_DEBOUNCE_S",
    "DEFAULT_IGNORE_PATTERNS",
    "BaseSynchronizer",
    "Debouncer",
    "EndpointWatcher",
    "EventKind",
    "IgnorePatterns",
    "MappingSummary",
    "OperationDeduplicator",
    "PairSynchronizer",
    "PathResolver",
    "SyncOrchestrator",
    "SyncStatus",
    "TreeSynchronizer",
    "WatchEvent",
    "copy_file",
    "ensure_dir",
    "get_mtime_ns",
    "remove_path",
]
