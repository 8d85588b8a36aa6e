"""Core module - Configuration, shared types and logging."""

from pairsync.core.config import (
    ConfigurationError,
    Endpoint,
    FileMapping,
    SyncConfig,
    SyncMapping,
    SyncOptions,
    TreeMapping,
    WatchOptions,
    load_config,
    parse_config,
    validate_config,
)
from pairsync.core.logs import LogBuffer, log_buffer, setup_logging
from pairsync.core.types import MappingKind, ServiceState, SyncDirection

__all__ = [
    # Config
    "ConfigurationError",
    "Endpoint",
    "FileMapping",
    "SyncConfig",
    "SyncMapping",
    "SyncOptions",
    "TreeMapping",
    "WatchOptions",
    "load_config",
    "parse_config",
    "validate_config",
    # Logging
    "LogBuffer",
    "log_buffer",
    "setup_logging",
    # Types
    "MappingKind",
    "ServiceState",
    "SyncDirection",
]
