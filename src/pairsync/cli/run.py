"""Run command for pairsync CLI.

Commands:
- run: Reconcile every mapping, then keep them mirrored until interrupted
"""

from __future__ import annotations

import signal
import sys
import threading
from pathlib import Path

import click

from pairsync.core.config import ConfigurationError, get_config_path, load_config
from pairsync.core.logs import setup_logging


def echo_config_errors(error: ConfigurationError) -> None:
    """Print a configuration error and each individual problem."""
    click.echo(f"Error: {error}", err=True)
    for problem in error.errors:
        if problem != str(error):
            click.echo(f"  - {problem}", err=True)


@click.command()
@click.argument("config_path", required=False, type=click.Path(dir_okay=False, path_type=Path))
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
    help="Minimum level of logged messages.",
)
@click.option(
    "--log-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory for daily log files.",
)
def run(config_path: Path | None, log_level: str, log_dir: Path | None) -> None:
    """Keep the configured files and directories mirrored.

    CONFIG_PATH defaults to $CONFIG_PATH, then ./config.yaml.
    Send SIGHUP to reload the configuration and restart.
    """
    from pairsync.sync.orchestrator import SyncOrchestrator

    setup_logging(log_level, log_dir)
    resolved_path = get_config_path(config_path)

    try:
        config = load_config(resolved_path)
    except ConfigurationError as e:
        echo_config_errors(e)
        sys.exit(1)

    orchestrator = SyncOrchestrator(config, config_loader=lambda: load_config(resolved_path))
    stop_event = threading.Event()

    def on_stop(signum: int, frame: object) -> None:
        click.echo("\nStopping...")
        stop_event.set()

    def on_reload(signum: int, frame: object) -> None:
        # Restart off the signal handler so the main loop keeps waiting
        threading.Thread(target=orchestrator.restart, name="pairsync-restart", daemon=True).start()

    signal.signal(signal.SIGINT, on_stop)
    signal.signal(signal.SIGTERM, on_stop)
    if hasattr(signal, "SIGHUP"):
        signal.signal(signal.SIGHUP, on_reload)

    status = orchestrator.start()
    click.echo(f"Syncing {len(status['syncPairs'])} mapping(s) from {resolved_path}")
    for mapping in status["syncPairs"]:
        click.echo(f"  - {mapping['name']}: {mapping['source']} <-> {mapping['target']}")
    click.echo("Watching for changes... (Ctrl+C to stop)")

    try:
        while not stop_event.is_set():
            stop_event.wait(timeout=0.5)
    finally:
        orchestrator.stop()
