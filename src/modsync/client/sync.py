"""Client synchronization pass.

This module provides:
- run_synchronization_pass: One full pass from server query to updater handoff
- SyncOutcome: What the pass found and whether the updater must run

A pass:
1. Fetches sync paths and exclusions from the server
2. Builds the remote map, incrementally from the changelog when possible
3. Fingerprints the local sync paths and diffs them against the remote map
4. Writes files of no-restart paths in place, stages the rest
5. Writes the update manifest and removed-files list for the updater
6. Records the new changelog position
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import httpx

from modsync.client.api import SyncClient
from modsync.client.config import ClientConfig
from modsync.client.differ import DiffResult, compare_file_maps
from modsync.client.scanner import hash_local_files
from modsync.client.state import ClientState, apply_incremental_changes
from modsync.core.constants import DATA_DIRECTORY_NAME
from modsync.core.errors import OperationCancelled
from modsync.core.retry import RetryPolicy
from modsync.core.types import SyncPath, SyncPathFileMap, strip_parent_prefix
from modsync.updater.manifest import CopyFile, CreateDirectory, UpdateManifest, UpdateOperation

logger = logging.getLogger(__name__)

# (completed, total)
ProgressCallback = Callable[[int, int], None]


@dataclass
class SyncOutcome:
    """Result of a synchronization pass.

    Attributes:
        update_count: Changes found across every active sync path.
        is_silent: Whether the changes can be applied without notifying the user.
        is_restart_required: Whether the updater must run after the host exits.
        diff: Per sync path classification.
        sequence: Server changelog position this pass synchronized to.
    """

    update_count: int
    is_silent: bool
    is_restart_required: bool
    diff: DiffResult
    sequence: int = 0

    @property
    def has_updates(self) -> bool:
        return self.update_count > 0


def _fetch_remote(
    client: SyncClient,
    state: ClientState,
    sync_paths: list[SyncPath],
) -> tuple[SyncPathFileMap, int]:
    """Build the remote map, replaying the changelog when the local state allows it."""
    current = client.get_current_sequence()
    sync_state = state.load_sync_state()
    previous = state.load_previous_sync()

    if (
        sync_state is not None
        and sync_state.last_sequence > 0
        and previous is not None
        and not state.has_pending_manifest()
        and all(sp.path in previous for sp in sync_paths)
        and sync_state.last_sequence <= current
    ):
        result = client.get_changes(sync_state.last_sequence)
        expected = sync_state.last_sequence + 1
        gap = (
            result.changes[0].sequence_number > expected
            if result.changes
            else result.current_sequence > sync_state.last_sequence
        )
        if not gap:
            logger.info(
                f"Incremental sync from sequence {sync_state.last_sequence} "
                f"to {result.current_sequence} ({len(result.changes)} changes)"
            )
            return (
                apply_incremental_changes(previous, result.changes, sync_paths),
                result.current_sequence,
            )
        logger.info("Changelog no longer covers the last sync, fetching full hashes")

    remote = client.get_remote_hashes([sp.path for sp in sync_paths])
    return remote, current


def _download_all(
    client: SyncClient,
    diff: DiffResult,
    base_path: Path,
    staging_dir: Path,
    retry: RetryPolicy,
    cancel_event: threading.Event,
    progress: ProgressCallback | None,
) -> None:
    downloads: list[tuple[str, Path]] = []
    for sync_path in diff.sync_paths:
        for file in diff.files_to_download(sync_path):
            if sync_path.restart_required:
                downloads.append((file, staging_dir / strip_parent_prefix(file)))
            else:
                downloads.append((file, base_path / file))

    total = len(downloads)
    for done, (file, destination) in enumerate(downloads, start=1):
        if cancel_event.is_set():
            raise OperationCancelled("Download cancelled")
        retry.execute(
            lambda f=file, d=destination: client.download_file(f, d),
            f"Download {file}",
        )
        if progress:
            progress(done, total)
    if total:
        logger.info(f"Downloaded {total} files")


def _apply_in_place(diff: DiffResult, base_path: Path, delete_removed_files: bool) -> None:
    """Create directories and delete files for paths that need no restart."""
    for sync_path in diff.sync_paths:
        if sync_path.restart_required:
            continue
        for directory in diff.created_directories.get(sync_path.path, []):
            (base_path / directory).mkdir(parents=True, exist_ok=True)
        if not diff.deletes_removed(sync_path, delete_removed_files):
            continue
        for file in diff.removed.get(sync_path.path, []):
            target = base_path / file
            try:
                target.unlink(missing_ok=True)
                logger.debug(f"Deleted file: {file}")
            except OSError as e:
                logger.error(f"Failed to delete file '{file}': {e}")


def build_update_manifest(diff: DiffResult, remote: SyncPathFileMap) -> UpdateManifest:
    """Operations for restart-required paths: directories first, then copies."""
    operations: list[UpdateOperation] = []
    restart_paths = [sp for sp in diff.sync_paths if sp.restart_required]
    for sync_path in restart_paths:
        for directory in diff.created_directories.get(sync_path.path, []):
            operations.append(CreateDirectory(destination=strip_parent_prefix(directory)))
    for sync_path in restart_paths:
        for file in diff.files_to_download(sync_path):
            normalized = strip_parent_prefix(file)
            operations.append(CopyFile(source=normalized, destination=normalized))
    return UpdateManifest(operations=operations, remote_sync_data=remote)


def _hand_off_to_updater(
    state: ClientState,
    diff: DiffResult,
    remote: SyncPathFileMap,
    delete_removed_files: bool,
) -> None:
    manifest = build_update_manifest(diff, remote)
    state.write_manifest(manifest)
    removed = [
        file
        for sp in diff.sync_paths
        if sp.restart_required and diff.deletes_removed(sp, delete_removed_files)
        for file in diff.removed.get(sp.path, [])
    ]
    if removed:
        state.write_removed_files(removed)
    logger.info(
        f"Update pending: {len(manifest.operations)} operations, "
        f"{len(removed)} files to remove after restart"
    )


def run_synchronization_pass(
    config: ClientConfig,
    client: SyncClient,
    cancel_event: threading.Event | None = None,
    progress: ProgressCallback | None = None,
) -> SyncOutcome:
    """Synchronize the installation with the server.

    Args:
        config: Client configuration.
        client: Connected API client.
        cancel_event: Set to abort between downloads.
        progress: Called with (completed, total) after each download.

    Returns:
        SyncOutcome describing the changes and whether the updater must run.

    Raises:
        OperationCancelled: If cancelled during download.
        APIError: If the server rejects a request.

    Staged files, the manifest and the removed-files list are discarded when
    the pass fails before the updater handoff is complete.
    """
    cancel_event = cancel_event or threading.Event()
    base_path = config.game_root.resolve()
    state = ClientState(base_path / DATA_DIRECTORY_NAME)

    sync_paths = [config.apply_overrides(sp) for sp in client.get_sync_paths()]
    active = [sp for sp in sync_paths if sp.is_active]
    exclusions = client.get_exclusions()
    logger.info(f"Syncing {len(active)} of {len(sync_paths)} sync paths")

    remote, sequence = _fetch_remote(client, state, active)
    local = hash_local_files(base_path, active, exclusions, config.local_exclusions)
    diff = compare_file_maps(base_path, active, local, remote)
    logger.info(f"File changes detected: {diff.summary()}")

    outcome = SyncOutcome(
        update_count=diff.update_count(config.delete_removed_files),
        is_silent=diff.is_silent(config.delete_removed_files, config.headless),
        is_restart_required=diff.is_restart_required(config.delete_removed_files),
        diff=diff,
        sequence=sequence,
    )

    try:
        if outcome.has_updates:
            retry = RetryPolicy(cancel_event=cancel_event)
            retry.add_retryable(httpx.TransportError)
            _download_all(
                client, diff, base_path, state.pending_updates_dir, retry, cancel_event, progress
            )
            _apply_in_place(diff, base_path, config.delete_removed_files)

        if outcome.is_restart_required:
            _hand_off_to_updater(state, diff, remote, config.delete_removed_files)
    except BaseException:
        # A partial staging directory must never reach the updater
        logger.warning("Synchronization pass did not complete, discarding staged updates")
        state.discard_pending_update()
        raise

    if not outcome.is_restart_required:
        state.save_previous_sync(remote)

    state.save_sync_state(sequence)
    return outcome
