"""Persisted client state in the ModSync data directory.

This module provides:
- SyncState: Last changelog sequence the client synchronized to
- ClientState: Reads and writes the files under ``ModSync_Data/``
- apply_incremental_changes: Replays changelog entries onto a previous remote map

Layout:
    ModSync_Data/
        PendingUpdates/       staged files for the updater
        PreviousSync.json     remote map at the last completed sync
        SyncState.json        {LastSequence, LastSyncTime}
        RemovedFiles.json     relative paths for the updater to delete
        UpdateManifest.json   operations for the updater
"""

from __future__ import annotations

import json
import logging
import shutil
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from modsync.core.constants import (
    PENDING_UPDATES_DIRECTORY,
    PREVIOUS_SYNC_FILE,
    REMOVED_FILES_FILE,
    SYNC_STATE_FILE,
    UPDATE_MANIFEST_FILE,
)
from modsync.core.types import (
    ChangeEntry,
    ChangeOperation,
    FileRecord,
    SyncPath,
    SyncPathFileMap,
    file_map_from_dict,
    file_map_to_dict,
    format_timestamp,
    parse_timestamp,
)
from modsync.updater.manifest import UpdateManifest, save_manifest

logger = logging.getLogger(__name__)


@dataclass
class SyncState:
    """Client-side tracking of the last applied changelog sequence."""

    last_sequence: int = 0
    last_sync_time: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "LastSequence": self.last_sequence,
            "LastSyncTime": format_timestamp(self.last_sync_time),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncState:
        return cls(
            last_sequence=int(data.get("LastSequence", 0)),
            last_sync_time=parse_timestamp(data.get("LastSyncTime")) or datetime.now(UTC),
        )


class ClientState:
    """Files under the client's data directory."""

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = data_dir

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    @property
    def pending_updates_dir(self) -> Path:
        return self._data_dir / PENDING_UPDATES_DIRECTORY

    @property
    def manifest_path(self) -> Path:
        return self._data_dir / UPDATE_MANIFEST_FILE

    @property
    def removed_files_path(self) -> Path:
        return self._data_dir / REMOVED_FILES_FILE

    def _write_json(self, path: Path, data: Any) -> None:
        self._data_dir.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    # === Previous sync ===

    def load_previous_sync(self) -> SyncPathFileMap | None:
        """Load the remote map recorded at the last completed sync."""
        path = self._data_dir / PREVIOUS_SYNC_FILE
        if not path.exists():
            return None
        try:
            return file_map_from_dict(json.loads(path.read_text(encoding="utf-8")))
        except (ValueError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable {PREVIOUS_SYNC_FILE}: {e}")
            return None

    def save_previous_sync(self, remote: SyncPathFileMap) -> None:
        self._write_json(self._data_dir / PREVIOUS_SYNC_FILE, file_map_to_dict(remote))

    # === Sync state ===

    def load_sync_state(self) -> SyncState | None:
        """Load the last known changelog position."""
        path = self._data_dir / SYNC_STATE_FILE
        if not path.exists():
            return None
        try:
            return SyncState.from_dict(json.loads(path.read_text(encoding="utf-8")))
        except (ValueError, AttributeError) as e:
            logger.warning(f"Failed to load sync state: {e}")
            return None

    def save_sync_state(self, sequence: int) -> SyncState:
        """Record the changelog position the client is now synchronized to."""
        state = SyncState(last_sequence=sequence)
        self._write_json(self._data_dir / SYNC_STATE_FILE, state.to_dict())
        logger.debug(f"Saved sync state at sequence {sequence}")
        return state

    # === Updater handoff ===

    def has_pending_manifest(self) -> bool:
        return self.manifest_path.exists()

    def write_manifest(self, manifest: UpdateManifest) -> None:
        save_manifest(manifest, self.manifest_path)

    def write_removed_files(self, removed: list[str]) -> None:
        """Write the list of relative paths for the updater to delete."""
        self._write_json(self.removed_files_path, removed)
        logger.debug(f"Wrote {len(removed)} removed files")

    def discard_pending_update(self) -> None:
        """Remove the staging directory, manifest and removed-files list.

        Failures are logged so that the error which triggered the discard is
        the one that propagates.
        """
        try:
            if self.pending_updates_dir.exists():
                shutil.rmtree(self.pending_updates_dir)
            self.manifest_path.unlink(missing_ok=True)
            self.removed_files_path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Failed to discard pending update: {e}")
            return
        logger.info("Discarded pending update")


def _match_sync_path(file_path: str, sync_paths: list[SyncPath]) -> SyncPath | None:
    # Longest prefix wins
    candidates = [sp for sp in sync_paths if sp.contains(file_path)]
    return max(candidates, key=lambda sp: len(sp.path), default=None)


def apply_incremental_changes(
    previous: SyncPathFileMap,
    changes: list[ChangeEntry],
    sync_paths: list[SyncPath],
) -> SyncPathFileMap:
    """Replay changelog entries onto the previous remote map.

    Args:
        previous: Remote map recorded at the last completed sync.
        changes: Entries after the recorded sequence.
        sync_paths: Active sync paths; each change is filed under the longest
            one containing it.

    Returns:
        A new map reflecting the server's current state.
    """
    result: SyncPathFileMap = {sp.path: dict(previous.get(sp.path, {})) for sp in sync_paths}
    applied = 0
    for change in sorted(changes, key=lambda c: c.sequence_number):
        sync_path = _match_sync_path(change.file_path, sync_paths)
        if sync_path is None:
            logger.debug(f"No sync path for change '{change.file_path}', skipping")
            continue

        files = result[sync_path.path]
        existing = next(
            (key for key in files if key.casefold() == change.file_path.casefold()), None
        )
        if existing is not None:
            del files[existing]
        if change.operation != ChangeOperation.DELETE:
            files[change.file_path] = FileRecord(
                fingerprint=change.fingerprint,
                size=change.file_size,
                last_modified=change.last_modified,
            )
        applied += 1

    logger.info(f"Applied {applied} incremental changes from server")
    return result
