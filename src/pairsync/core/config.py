"""Configuration models and loader for pairsync.

This module provides:
- Endpoint, FileMapping, TreeMapping, WatchOptions, SyncConfig: pydantic models
- SyncMapping: tagged union of the two mapping kinds
- load_config: YAML loading with ${VAR} environment substitution
- validate_config: cross-reference checks (base dirs exist, keys are known)
- ConfigurationError: raised for every configuration problem

File format:
    baseDirs:
      a: /data/a
    syncPairs:
      - name: notes
        source: {baseDir: a, path: notes.txt}
        target: {baseDir: b, path: notes.txt}
    syncDirs:
      - source: {baseDir: a, path: docs}
        target: {baseDir: b, path: docs}
        syncOptions: {delete: true}
    watchOptions:
      usePolling: false
      ignored: ["*.swp"]
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from pairsync.core.types import MappingKind

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config.yaml")
CONFIG_PATH_ENV = "CONFIG_PATH"

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}")


class ConfigurationError(Exception):
    """Invalid or unusable configuration.

    Attributes:
        errors: Every individual problem found (at least the message itself).
    """

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        self.errors = list(errors) if errors else [message]
        super().__init__(message)


class Endpoint(BaseModel):
    """One side of a mapping: a base directory key and a relative path."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    base_dir: str = Field(alias="baseDir")
    path: str

    @property
    def display(self) -> str:
        """Get the human-readable form used in status summaries."""
        return f"{self.base_dir}/{self.path}"


class SyncOptions(BaseModel):
    """Options of a directory mapping."""

    model_config = ConfigDict(frozen=True)

    delete: bool = False


class _MappingBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str | None = None
    source: Endpoint
    target: Endpoint

    @property
    def display_name(self) -> str:
        """Get the mapping name, or a name derived from its endpoints."""
        if self.name:
            return self.name
        return f"{self.source.display} <-> {self.target.display}"


class FileMapping(_MappingBase):
    """A file-to-file mapping."""

    kind: Literal["file"] = "file"

    @property
    def mapping_kind(self) -> MappingKind:
        return MappingKind.FILE


class TreeMapping(_MappingBase):
    """A directory-to-directory mapping, mirrored recursively."""

    kind: Literal["directory"] = "directory"
    sync_options: SyncOptions = Field(default_factory=SyncOptions, alias="syncOptions")

    @property
    def mapping_kind(self) -> MappingKind:
        return MappingKind.DIRECTORY


SyncMapping = FileMapping | TreeMapping


class WatchOptions(BaseModel):
    """Options for the filesystem watch subscriptions.

    Unknown keys are preserved so they reach the watcher unmodified.

    Attributes:
        use_polling: Use a polling observer instead of native OS events.
        interval: Polling interval in milliseconds.
        ignored: Gitignore-style patterns excluded from watching and walking.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="allow")

    use_polling: bool = Field(default=False, alias="usePolling")
    interval: int = 100
    ignored: list[str] = Field(default_factory=list)

    @field_validator("ignored", mode="before")
    @classmethod
    def _single_pattern(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value]
        return value

    @property
    def interval_s(self) -> float:
        """Get the polling interval in seconds."""
        return max(self.interval, 1) / 1000.0


class SyncConfig(BaseModel):
    """Normalized configuration consumed by the orchestrator."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    base_dirs: dict[str, str | None] = Field(default_factory=dict, alias="baseDirs")
    file_mappings: list[FileMapping] = Field(default_factory=list, alias="syncPairs")
    tree_mappings: list[TreeMapping] = Field(default_factory=list, alias="syncDirs")
    watch_options: WatchOptions = Field(default_factory=WatchOptions, alias="watchOptions")

    @property
    def mappings(self) -> list[SyncMapping]:
        """Get all mappings, file mappings first."""
        return [*self.file_mappings, *self.tree_mappings]


def get_config_path(path: str | Path | None = None) -> Path:
    """Get the configuration file path.

    Args:
        path: Explicit path. Falls back to $CONFIG_PATH, then ./config.yaml.

    Returns:
        Path to the configuration file.
    """
    if path:
        return Path(path)
    env_path = os.environ.get(CONFIG_PATH_ENV)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def _substitute_string(value: str, environ: Mapping[str, str]) -> str:
    names = [name.strip() for name in _ENV_VAR_RE.findall(value)]
    missing = [name for name in names if name not in environ]
    if missing:
        logger.warning(
            "Unknown environment variable(s) %s in %r, leaving value unchanged",
            ", ".join(missing),
            value,
        )
        return value
    return _ENV_VAR_RE.sub(lambda match: environ[match.group(1).strip()], value)


def substitute_env_vars(value: Any, environ: Mapping[str, str] | None = None) -> Any:
    """Replace ${VAR} references in every string of a parsed document.

    Args:
        value: Parsed YAML value (dict, list, scalar).
        environ: Variables to use. Defaults to os.environ.

    Returns:
        A copy of the value with references replaced.
    """
    env = os.environ if environ is None else environ
    if isinstance(value, str):
        return _substitute_string(value, env)
    if isinstance(value, dict):
        return {key: substitute_env_vars(item, env) for key, item in value.items()}
    if isinstance(value, list):
        return [substitute_env_vars(item, env) for item in value]
    return value


def validate_config(config: SyncConfig) -> list[str]:
    """Check a configuration for problems the models cannot express.

    Args:
        config: Parsed configuration.

    Returns:
        List of error messages, empty if the configuration is usable.
    """
    errors: list[str] = []

    if not config.base_dirs:
        errors.append("Missing baseDirs section")
    if not config.mappings:
        errors.append("No sync mappings defined (syncPairs or syncDirs)")

    for key, directory in config.base_dirs.items():
        if not directory:
            errors.append(f'Base directory "{key}" is not set')
        elif not Path(directory).is_dir():
            errors.append(f'Base directory "{key}" does not exist: {directory}')

    sections: list[tuple[str, list[FileMapping] | list[TreeMapping]]] = [
        ("syncPairs", config.file_mappings),
        ("syncDirs", config.tree_mappings),
    ]
    for section, mappings in sections:
        for index, mapping in enumerate(mappings, start=1):
            for side in ("source", "target"):
                endpoint: Endpoint = getattr(mapping, side)
                if not endpoint.base_dir or not endpoint.path:
                    errors.append(f"{section} #{index}: incomplete {side}")
                elif endpoint.base_dir not in config.base_dirs:
                    errors.append(
                        f"{section} #{index}: unknown {side} base directory: "
                        f"{endpoint.base_dir}"
                    )

    return errors


def parse_config(raw: Any, environ: Mapping[str, str] | None = None) -> SyncConfig:
    """Build a configuration from an already parsed document.

    Args:
        raw: Parsed YAML document.
        environ: Variables for ${VAR} substitution. Defaults to os.environ.

    Returns:
        The validated configuration.

    Raises:
        ConfigurationError: If the document is malformed or fails validation.
    """
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigurationError("Configuration must be a mapping at the top level")

    raw = substitute_env_vars(raw, environ)

    try:
        config = SyncConfig.model_validate(raw)
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        ]
        raise ConfigurationError("Invalid configuration", errors) from e

    errors = validate_config(config)
    if errors:
        raise ConfigurationError("Configuration validation failed", errors)
    return config


def load_config(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> SyncConfig:
    """Load, substitute and validate a YAML configuration file.

    Args:
        path: Configuration file. See get_config_path() for the fallbacks.
        environ: Variables for ${VAR} substitution. Defaults to os.environ.

    Returns:
        The validated configuration.

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid.
    """
    config_path = get_config_path(path)
    if not config_path.is_file():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read {config_path}: {e}") from e

    config = parse_config(raw, environ)
    logger.info(
        "Loaded configuration from %s: %d base dirs, %d file mappings, %d directory mappings",
        config_path,
        len(config.base_dirs),
        len(config.file_mappings),
        len(config.tree_mappings),
    )
    return config
