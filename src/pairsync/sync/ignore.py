"""Ignore patterns for watched endpoints.

This module provides:
- IgnorePatterns: gitignore-style pattern matching against a watched root
- DEFAULT_IGNORE_PATTERNS: Editor and OS artifacts that are never mirrored
"""

from __future__ import annotations

import fnmatch
from pathlib import Path

DEFAULT_IGNORE_PATTERNS = [
    ".DS_Store",
    "Thumbs.db",
    "*.swp",
    "*.swo",
    "*~",
    ".#*",
]


class IgnorePatterns:
    """Handles ignore pattern matching for file paths."""

    def __init__(self, patterns: list[str] | None = None, use_defaults: bool = True) -> None:
        """Initialize with patterns.

        Args:
            patterns: List of gitignore-style patterns (watch option "ignored").
            use_defaults: Start from DEFAULT_IGNORE_PATTERNS.
        """
        self._patterns = list(DEFAULT_IGNORE_PATTERNS) if use_defaults else []
        if patterns:
            self._patterns.extend(patterns)

    @property
    def patterns(self) -> list[str]:
        """Get a copy of the active patterns."""
        return list(self._patterns)

    def add_pattern(self, pattern: str) -> None:
        """Add an ignore pattern."""
        self._patterns.append(pattern)

    def should_ignore(self, path: Path, base_path: Path, is_dir: bool | None = None) -> bool:
        """Check if a path should be ignored.

        Args:
            path: Absolute path to check.
            base_path: Root of the watched endpoint.
            is_dir: Whether the path is a directory. Looked up on disk when
                None, which is wrong for paths that were just deleted.

        Returns:
            True if the path should be ignored.
        """
        try:
            rel_path = path.relative_to(base_path)
        except ValueError:
            return False

        rel_str = str(rel_path).replace("\\", "/")
        if rel_str == ".":
            return False
        parts = rel_str.split("/")
        if is_dir is None:
            is_dir = path.is_dir()

        return any(_matches(pattern, parts, is_dir) for pattern in self._patterns)


def _matches(pattern: str, parts: list[str], is_dir: bool) -> bool:
    """Match one gitignore-style pattern against a relative path.

    A pattern names an entry; matching an ancestor directory of the path
    ignores the path too. Trailing "/" restricts the pattern to directories,
    a leading "/" or an inner "/" anchors it at the root, and a leading
    "**/" also matches at the root.
    """
    dir_only = pattern.endswith("/")
    body = pattern.rstrip("/")
    anchored = body.startswith("/")
    body = body.lstrip("/")
    if not body:
        return False

    # A directory-only pattern can name the path itself only if it is a directory
    count = len(parts) if is_dir or not dir_only else len(parts) - 1
    if anchored or "/" in body:
        candidates = [body]
        if body.startswith("**/"):
            candidates.append(body[3:])
        prefixes = ["/".join(parts[:i]) for i in range(1, count + 1)]
        return any(
            fnmatch.fnmatch(prefix, candidate) for prefix in prefixes for candidate in candidates
        )
    return any(fnmatch.fnmatch(part, body) for part in parts[:count])
