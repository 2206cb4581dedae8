"""Health command for ModSync CLI.

Commands:
- health: Check the installation the updater runs in
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

STATUS_COLORS = {0: "green", 1: "yellow", 2: "red"}


@click.command()
@click.option(
    "--game-root",
    "-g",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Installation root (default: current directory).",
)
@click.option("--verbose", "-v", is_flag=True, help="Show the data of each check.")
def health(game_root: Path | None, verbose: bool) -> None:
    """Check the installation the updater runs in.

    Exits with status 1 when any check is unhealthy.
    """
    from modsync.updater.health import HealthStatus, check_all, overall_status

    root = (game_root or Path.cwd()).resolve()
    results = check_all(root)

    for name, result in results.items():
        label = click.style(result.status.name, fg=STATUS_COLORS[int(result.status)])
        click.echo(f"{name}: {label} - {result.description} ({result.duration * 1000:.0f}ms)")
        if verbose:
            for key, value in result.data.items():
                click.echo(f"    {key}: {value}")

    overall = overall_status(results)
    click.echo(f"\nOverall: {overall.name}")
    if overall == HealthStatus.UNHEALTHY:
        sys.exit(1)
