"""Server administration commands for ModSync CLI.

Commands:
- server run: Start the ModSync server
- server recheck: Scan the sync paths and record changes
- server prune-changes: Delete old changelog entries
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import click

from modsync.core.constants import CHANGELOG_RETENTION_DAYS

ROOT_OPTION_HELP = "Server root (default: MODSYNC_ROOT or current directory)."
DB_OPTION_HELP = "Path to database file (default: MODSYNC_DB_PATH or <root>/modsync.db)."


def _resolve_root(root: str | None) -> Path:
    return Path(root or os.environ.get("MODSYNC_ROOT", ".")).resolve()


def _resolve_db_path(root: Path, db_path: str | None) -> Path:
    path = Path(db_path or os.environ.get("MODSYNC_DB_PATH", "modsync.db"))
    return path if path.is_absolute() else root / path


@click.group()
def server() -> None:
    """Server management commands.

    These commands are for server administrators to run and maintain the
    ModSync server.
    """


@server.command("run")
@click.option("--host", default="0.0.0.0", show_default=True, help="Interface to bind.")
@click.option("--port", "-p", type=int, default=6969, show_default=True, help="Port to bind.")
@click.option("--root", type=click.Path(file_okay=False), default=None, help=ROOT_OPTION_HELP)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Sync config file (default: MODSYNC_CONFIG_PATH or <root>/modsync.yaml).",
)
@click.option("--db-path", type=click.Path(), default=None, help=DB_OPTION_HELP)
def run_cmd(
    host: str,
    port: int,
    root: str | None,
    config_path: str | None,
    db_path: str | None,
) -> None:
    """Start the ModSync server.

    Examples:

        # Serve the current directory on the default port
        modsync server run

        # Serve a game installation
        modsync server run --root /srv/spt --port 8080
    """
    import uvicorn

    # The app factory reads its settings from the environment
    if root:
        os.environ["MODSYNC_ROOT"] = str(Path(root).resolve())
    if config_path:
        os.environ["MODSYNC_CONFIG_PATH"] = str(Path(config_path).resolve())
    if db_path:
        os.environ["MODSYNC_DB_PATH"] = str(Path(db_path).resolve())

    uvicorn.run("modsync.server.app:app_factory", factory=True, host=host, port=port)


@server.command("recheck")
@click.option("--root", type=click.Path(file_okay=False), default=None, help=ROOT_OPTION_HELP)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Sync config file (default: MODSYNC_CONFIG_PATH or <root>/modsync.yaml).",
)
@click.option("--db-path", type=click.Path(), default=None, help=DB_OPTION_HELP)
def recheck_cmd(root: str | None, config_path: str | None, db_path: str | None) -> None:
    """Scan the sync paths and append detected changes to the changelog.

    Useful after updating mods while the server is stopped.
    """
    from modsync.core.config import load_sync_config
    from modsync.core.errors import ModSyncError
    from modsync.server.database import Database
    from modsync.server.sync_service import SyncService

    resolved_root = _resolve_root(root)
    config_file = Path(config_path or os.environ.get("MODSYNC_CONFIG_PATH", "modsync.yaml"))
    if not config_file.is_absolute():
        config_file = resolved_root / config_file

    try:
        config = load_sync_config(config_file, resolved_root)
    except ModSyncError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    db = Database(_resolve_db_path(resolved_root, db_path))
    try:
        changes = SyncService(resolved_root, config, db).recheck()
        click.echo(
            f"Detected {len(changes)} changes, now at sequence {db.get_current_sequence()}."
        )
    finally:
        db.close()


@server.command("prune-changes")
@click.option(
    "--older-than-days",
    "-d",
    type=int,
    default=CHANGELOG_RETENTION_DAYS,
    show_default=True,
    help="Delete changelog entries older than N days.",
)
@click.option("--root", type=click.Path(file_okay=False), default=None, help=ROOT_OPTION_HELP)
@click.option("--db-path", type=click.Path(), default=None, help=DB_OPTION_HELP)
def prune_changes_cmd(older_than_days: int, root: str | None, db_path: str | None) -> None:
    """Delete old changelog entries.

    Clients whose last sync predates the oldest remaining entry fall back to
    a full hash comparison.
    """
    from modsync.server.database import Database

    db_file = _resolve_db_path(_resolve_root(root), db_path)
    if not db_file.exists():
        click.echo(f"Error: Database not found: {db_file}", err=True)
        click.echo("Make sure the server has been run at least once.", err=True)
        sys.exit(1)

    click.echo(f"Database: {db_file}")
    click.echo(f"Pruning entries older than {older_than_days} days...")

    db = Database(db_file)
    try:
        deleted = db.prune_old_entries(older_than_days)
        if deleted > 0:
            click.echo(f"Pruned {deleted} changelog entries.")
        else:
            click.echo("No entries to prune.")
    finally:
        db.close()
