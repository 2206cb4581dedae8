"""Sync commands for ModSync CLI.

Commands:
- sync: Synchronize the installation with the server
- status: Show the local sync state and pending updates
"""

from __future__ import annotations

import json
import logging
import sys
import threading
from dataclasses import replace
from pathlib import Path

import click
import httpx

from modsync.client.config import (
    ClientConfig,
    load_client_config,
    save_client_config,
)
from modsync.core.constants import DATA_DIRECTORY_NAME


def _resolve_config(
    config_file: Path | None,
    server_url: str | None,
    game_root: str | None,
    headless: bool | None,
    delete_removed: bool | None,
) -> ClientConfig | None:
    """Merge command-line options into the stored configuration.

    The merged configuration is saved whenever an option was given.
    """
    config = load_client_config(config_file)
    if config is None:
        if not server_url:
            return None
        config = ClientConfig(server_url=server_url)

    changes: dict[str, object] = {}
    if server_url:
        changes["server_url"] = server_url
    if game_root:
        changes["game_root"] = Path(game_root).expanduser().resolve()
    if headless is not None:
        changes["headless"] = headless
    if delete_removed is not None:
        changes["delete_removed_files"] = delete_removed

    if changes:
        config = replace(config, **changes)
        save_client_config(config, config_file)
    return config


@click.command()
@click.option("--server-url", "-s", default=None, help="Server URL (saved for later runs).")
@click.option(
    "--game-root",
    "-g",
    type=click.Path(file_okay=False),
    default=None,
    help="Installation root (saved for later runs).",
)
@click.option(
    "--headless/--interactive",
    default=None,
    help="Apply every change silently.",
)
@click.option(
    "--delete-removed/--keep-removed",
    default=None,
    help="Delete local files the server no longer has.",
)
@click.option(
    "--config-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    hidden=True,
)
@click.option("--verbose", "-v", is_flag=True, help="Show log output.")
def sync(
    server_url: str | None,
    game_root: str | None,
    headless: bool | None,
    delete_removed: bool | None,
    config_file: Path | None,
    verbose: bool,
) -> None:
    """Synchronize the installation with the server.

    Files of sync paths that need no restart are updated in place. The rest
    are staged for modsync-updater, which applies them once the game exits.
    """
    from modsync.client.api import APIError, SyncClient
    from modsync.client.sync import run_synchronization_pass
    from modsync.core.errors import ModSyncError, OperationCancelled
    from modsync.core.log import setup_logging

    if verbose:
        setup_logging(None, logging.DEBUG)

    config = _resolve_config(config_file, server_url, game_root, headless, delete_removed)
    if config is None:
        click.echo("Error: No server configured. Run 'modsync sync --server-url URL'.", err=True)
        sys.exit(1)

    click.echo(f"Syncing with {config.server_url}...")
    click.echo(f"Game root: {config.game_root}\n")

    def on_progress(done: int, total: int) -> None:
        click.echo(f"\r  Downloading {done}/{total}", nl=done == total)

    cancel_event = threading.Event()
    try:
        with SyncClient(config.server_url, timeout=config.timeout) as client:
            if not client.health_check():
                click.echo(f"Error: Server unreachable: {config.server_url}", err=True)
                sys.exit(1)
            outcome = run_synchronization_pass(config, client, cancel_event, on_progress)
    except (KeyboardInterrupt, OperationCancelled):
        cancel_event.set()
        click.echo("\nSync cancelled.", err=True)
        sys.exit(1)
    except httpx.HTTPError as e:
        click.echo(f"Error: Server unreachable: {e}", err=True)
        sys.exit(1)
    except (APIError, ModSyncError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if not outcome.has_updates:
        click.echo("Everything is up to date.")
        return

    diff = outcome.diff
    click.echo(f"{outcome.update_count} changes: {diff.summary()}")
    for sync_path in diff.sync_paths:
        for file in diff.added.get(sync_path.path, []):
            click.echo(f"  + {file}")
        for file in diff.updated.get(sync_path.path, []):
            click.echo(f"  ~ {file}")
    for file in diff.files_to_delete(config.delete_removed_files):
        click.echo(f"  - {file}")

    if outcome.is_restart_required:
        click.echo(
            click.style(
                "\nRestart required: close the game, then run 'modsync-updater <PID>'.",
                fg="yellow",
            )
        )
    else:
        click.echo("\nAll changes applied.")


@click.command()
@click.option(
    "--game-root",
    "-g",
    type=click.Path(file_okay=False),
    default=None,
    help="Installation root (default: configured root).",
)
@click.option(
    "--config-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    hidden=True,
)
def status(game_root: str | None, config_file: Path | None) -> None:
    """Show the local sync state and pending updates."""
    from modsync.client.state import ClientState
    from modsync.core.errors import ModSyncError
    from modsync.updater.manifest import load_manifest

    config = load_client_config(config_file)
    if game_root:
        root = Path(game_root).expanduser().resolve()
    elif config is not None:
        root = config.game_root
    else:
        root = Path.cwd()

    state = ClientState(root / DATA_DIRECTORY_NAME)
    click.echo(f"Server: {config.server_url if config else '(not configured)'}")
    click.echo(f"Game root: {root}")

    sync_state = state.load_sync_state()
    if sync_state is None:
        click.echo("Last sync: never")
    else:
        click.echo(
            f"Last sync: {sync_state.last_sync_time:%Y-%m-%d %H:%M:%S} UTC "
            f"(sequence {sync_state.last_sequence})"
        )

    if state.has_pending_manifest():
        try:
            manifest = load_manifest(state.manifest_path)
            click.echo(f"Pending update: {len(manifest.operations)} operations")
        except ModSyncError as e:
            click.echo(f"Pending update: manifest unreadable ({e})", err=True)

    staged = state.pending_updates_dir
    if staged.is_dir():
        count = sum(1 for p in staged.rglob("*") if p.is_file())
        if count:
            click.echo(f"Staged files: {count}")

    if state.removed_files_path.exists():
        try:
            removed = json.loads(state.removed_files_path.read_text(encoding="utf-8"))
            click.echo(f"Files to remove after restart: {len(removed)}")
        except ValueError:
            click.echo("Files to remove after restart: list unreadable", err=True)
