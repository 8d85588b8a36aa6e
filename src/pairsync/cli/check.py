"""Configuration and one-shot commands for pairsync CLI.

Commands:
- check: Validate the configuration and list what would be synced
- reconcile: Reconcile every mapping once and exit
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from pairsync.cli.run import echo_config_errors
from pairsync.core.config import (
    ConfigurationError,
    TreeMapping,
    get_config_path,
    load_config,
)
from pairsync.core.logs import setup_logging

config_argument = click.argument(
    "config_path", required=False, type=click.Path(dir_okay=False, path_type=Path)
)


@click.command()
@config_argument
def check(config_path: Path | None) -> None:
    """Validate the configuration file.

    CONFIG_PATH defaults to $CONFIG_PATH, then ./config.yaml.
    """
    resolved_path = get_config_path(config_path)
    try:
        config = load_config(resolved_path)
    except ConfigurationError as e:
        echo_config_errors(e)
        sys.exit(1)

    click.echo(f"Configuration OK: {resolved_path}")
    click.echo(f"Base directories: {len(config.base_dirs)}")
    for key, directory in config.base_dirs.items():
        click.echo(f"  {key}: {directory}")

    click.echo(f"Mappings: {len(config.mappings)}")
    for mapping in config.mappings:
        line = (
            f"  [{mapping.kind}] {mapping.display_name}: "
            f"{mapping.source.display} <-> {mapping.target.display}"
        )
        if isinstance(mapping, TreeMapping) and mapping.sync_options.delete:
            line += " (delete)"
        click.echo(line)


@click.command()
@config_argument
@click.option("--verbose", "-v", is_flag=True, help="Log every operation.")
def reconcile(config_path: Path | None, verbose: bool) -> None:
    """Reconcile every mapping once, without watching.

    Newer files win; with the delete option, directory targets are pruned.
    """
    from pairsync.sync.orchestrator import SyncOrchestrator

    setup_logging("INFO" if verbose else "WARNING")
    resolved_path = get_config_path(config_path)
    try:
        config = load_config(resolved_path)
    except ConfigurationError as e:
        echo_config_errors(e)
        sys.exit(1)

    results = SyncOrchestrator(config).reconcile()
    for name, copied in results.items():
        click.echo(f"  {name}: {copied} copied")

    total = sum(results.values())
    if total == 0:
        click.echo("Everything is up to date.")
    else:
        click.echo(f"\nReconcile complete: {total} copied across {len(results)} mapping(s)")
