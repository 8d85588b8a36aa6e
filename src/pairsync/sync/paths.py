"""Resolution of (base directory key, relative path) pairs to absolute paths."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from pairsync.core.config import ConfigurationError, Endpoint


class PathResolver:
    """Maps endpoints onto the filesystem using the base directory table."""

    def __init__(self, base_dirs: Mapping[str, str | None]) -> None:
        self._base_dirs = dict(base_dirs)

    def resolve(self, base_key: str, relative_path: str) -> Path:
        """Resolve a relative path inside a named base directory.

        Args:
            base_key: Key in the base directory table.
            relative_path: Path relative to that base directory.

        Returns:
            Normalized absolute path.

        Raises:
            ConfigurationError: If the key is unknown or the path is empty.
        """
        base = self._base_dirs.get(base_key)
        if not base:
            raise ConfigurationError(f'Base directory "{base_key}" not found in configuration')

        relative = relative_path.lstrip("/\\")
        if not relative:
            raise ConfigurationError(f'Empty path for base directory "{base_key}"')

        joined = os.path.join(os.path.abspath(base), relative)
        return Path(os.path.normpath(joined))

    def resolve_endpoint(self, endpoint: Endpoint) -> Path:
        """Resolve a mapping endpoint."""
        return self.resolve(endpoint.base_dir, endpoint.path)
