"""Command-line interface for pairsync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- run: Keep the configured mappings mirrored until interrupted
- check: Validate the configuration file
- reconcile: Reconcile every mapping once and exit
"""

from __future__ import annotations

import click

from pairsync.cli.check import check, reconcile
from pairsync.cli.run import run


@click.group()
@click.version_option(package_name="pairsync")
def cli() -> None:
    """pairsync - Bidirectional mirroring of local files and directories."""


cli.add_command(run)
cli.add_command(check)
cli.add_command(reconcile)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = ["cli", "main"]
