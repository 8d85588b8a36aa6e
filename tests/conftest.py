"""Shared pytest fixtures."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from pairsync.sync.dedup import OperationDeduplicator
from pairsync.sync.paths import PathResolver
from pairsync.sync.status import SyncStatus


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    """Drop handlers installed on the pairsync logger by a test."""
    yield
    logger = logging.getLogger("pairsync")
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def base_dirs(tmp_path: Path) -> dict[str, Path]:
    """Create two base directories, "a" and "b"."""
    dirs = {"a": tmp_path / "a", "b": tmp_path / "b"}
    for directory in dirs.values():
        directory.mkdir()
    return dirs


@pytest.fixture
def resolver(base_dirs: dict[str, Path]) -> PathResolver:
    """Create a resolver over the two base directories."""
    return PathResolver({key: str(path) for key, path in base_dirs.items()})


@pytest.fixture
def dedup() -> Iterator[OperationDeduplicator]:
    """Create a deduplicator with a short cooldown."""
    registry = OperationDeduplicator(cooldown_s=0.3)
    yield registry
    registry.clear()


@pytest.fixture
def status() -> SyncStatus:
    """Create an empty status record."""
    return SyncStatus()


@pytest.fixture
def wait_for() -> Callable[..., bool]:
    """Poll a predicate until it holds or a timeout expires."""

    def _wait_for(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.05) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()

    return _wait_for
