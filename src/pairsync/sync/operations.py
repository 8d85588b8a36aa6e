"""Single-file copy and remove primitives.

None of these functions raise on I/O failure: they log the error and return
False, leaving it to a later event or reconciliation to try again.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)


def copy_file(source: Path, target: Path) -> bool:
    """Copy a file over its target, creating parent directories.

    The modification time is preserved so that both sides compare equal
    on the next reconciliation.

    Args:
        source: File to copy.
        target: Destination path, overwritten if it exists.

    Returns:
        True if the copy succeeded.
    """
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, target)
    except OSError as e:
        logger.error("Failed to copy %s -> %s: %s", source, target, e)
        return False

    logger.info("Copied %s -> %s", source, target)
    return True


def remove_path(path: Path) -> bool:
    """Remove a file or a directory tree.

    Args:
        path: Path to remove.

    Returns:
        True if something was removed, False if absent or on failure.
    """
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        elif path.exists() or path.is_symlink():
            path.unlink()
        else:
            return False
    except OSError as e:
        logger.error("Failed to remove %s: %s", path, e)
        return False

    logger.info("Removed %s", path)
    return True


def ensure_dir(path: Path) -> bool:
    """Create a directory and its parents if missing."""
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error("Failed to create directory %s: %s", path, e)
        return False
    return True


def get_mtime_ns(path: Path) -> int | None:
    """Get a path's modification time in nanoseconds, None if it cannot be read."""
    try:
        return path.stat().st_mtime_ns
    except OSError:
        return None
