"""Command-line interface for ModSync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- sync: Synchronize the installation with the server
- status: Show the local sync state and pending updates
- health: Check the installation the updater runs in
- server: Server administration commands
"""

from __future__ import annotations

import click

from modsync.client.cli.health import health
from modsync.client.cli.server import server
from modsync.client.cli.sync import status, sync
from modsync.core.constants import MODSYNC_VERSION


@click.group()
@click.version_option(version=MODSYNC_VERSION)
def cli() -> None:
    """ModSync - Keep mod files in step with an authoritative server."""


# Sync commands
cli.add_command(sync)
cli.add_command(status)

# Diagnostics
cli.add_command(health)

# Server admin commands
cli.add_command(server)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "cli",
    "main",
]
