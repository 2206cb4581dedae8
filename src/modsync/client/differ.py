"""Snapshot comparison between the local installation and the server.

This module provides:
- added_files / updated_files / removed_files / created_directories:
  Per-sync-path classification of differences
- compare_file_maps: Runs the classification for every active sync path
- DiffResult: Per-path results plus the aggregates used to decide how an
  update is presented (count, silent, restart required)

Classification rules (keys compared case-insensitively):
| Set                | Contents                                              |
|--------------------|-------------------------------------------------------|
| added              | remote files missing locally                          |
| updated            | files on both sides whose fingerprints differ         |
| removed            | local files missing remotely (directories excluded)   |
| created_directories| remote directories missing locally and on disk        |
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from modsync.core.types import FileRecord, SyncPath, SyncPathFileMap

FileMap = dict[str, FileRecord]
# sync path -> relative paths
SyncPathFileList = dict[str, list[str]]


def _folded(files: FileMap) -> dict[str, FileRecord]:
    return {path.casefold(): record for path, record in files.items()}


def added_files(local: FileMap, remote: FileMap) -> list[str]:
    """Remote files that do not exist locally."""
    local_keys = _folded(local)
    return sorted(
        path
        for path, record in remote.items()
        if not record.is_directory and path.casefold() not in local_keys
    )


def updated_files(local: FileMap, remote: FileMap) -> list[str]:
    """Files present on both sides with a different fingerprint."""
    local_keys = _folded(local)
    result = []
    for path, record in remote.items():
        local_record = local_keys.get(path.casefold())
        if local_record is None or record.is_directory or local_record.is_directory:
            continue
        if local_record.fingerprint != record.fingerprint:
            result.append(path)
    return sorted(result)


def removed_files(local: FileMap, remote: FileMap) -> list[str]:
    """Local files that no longer exist on the server."""
    remote_keys = _folded(remote)
    return sorted(
        path
        for path, record in local.items()
        if not record.is_directory and path.casefold() not in remote_keys
    )


def created_directories(base_path: Path, local: FileMap, remote: FileMap) -> list[str]:
    """Remote directories that are neither tracked locally nor present on disk."""
    local_keys = _folded(local)
    return sorted(
        path
        for path, record in remote.items()
        if record.is_directory
        and path.casefold() not in local_keys
        and not (base_path / path).is_dir()
    )


@dataclass
class DiffResult:
    """Differences between local and remote file maps, per sync path."""

    sync_paths: list[SyncPath]
    added: SyncPathFileList = field(default_factory=dict)
    updated: SyncPathFileList = field(default_factory=dict)
    removed: SyncPathFileList = field(default_factory=dict)
    created_directories: SyncPathFileList = field(default_factory=dict)

    def deletes_removed(self, sync_path: SyncPath, delete_removed_files: bool) -> bool:
        """Whether removed files under this path are actually deleted."""
        return delete_removed_files or sync_path.enforced

    def change_count(self, sync_path: SyncPath, delete_removed_files: bool) -> int:
        """Number of changes that will be applied under one sync path."""
        key = sync_path.path
        count = (
            len(self.added.get(key, []))
            + len(self.updated.get(key, []))
            + len(self.created_directories.get(key, []))
        )
        if self.deletes_removed(sync_path, delete_removed_files):
            count += len(self.removed.get(key, []))
        return count

    def touched_paths(self, delete_removed_files: bool) -> list[SyncPath]:
        """Sync paths with at least one change to apply."""
        return [
            sp for sp in self.sync_paths if self.change_count(sp, delete_removed_files) > 0
        ]

    def update_count(self, delete_removed_files: bool) -> int:
        """Total changes across every sync path."""
        return sum(self.change_count(sp, delete_removed_files) for sp in self.sync_paths)

    def is_silent(self, delete_removed_files: bool, headless: bool = False) -> bool:
        """Whether the update can be applied without notifying the user."""
        if headless:
            return True
        return all(sp.silent for sp in self.touched_paths(delete_removed_files))

    def is_restart_required(self, delete_removed_files: bool) -> bool:
        """Whether any touched path needs the host application to restart."""
        return any(sp.restart_required for sp in self.touched_paths(delete_removed_files))

    def files_to_download(self, sync_path: SyncPath) -> list[str]:
        """Added and updated files under one sync path."""
        key = sync_path.path
        return self.added.get(key, []) + self.updated.get(key, [])

    def files_to_delete(self, delete_removed_files: bool) -> list[str]:
        """Removed files that will actually be deleted, across all paths."""
        return [
            path
            for sp in self.sync_paths
            if self.deletes_removed(sp, delete_removed_files)
            for path in self.removed.get(sp.path, [])
        ]

    def summary(self) -> str:
        def total(lists: SyncPathFileList) -> int:
            return sum(len(v) for v in lists.values())

        return (
            f"{total(self.added)} added, {total(self.updated)} updated, "
            f"{total(self.removed)} removed, "
            f"{total(self.created_directories)} directories"
        )


def compare_file_maps(
    base_path: Path,
    sync_paths: Iterable[SyncPath],
    local: SyncPathFileMap,
    remote: SyncPathFileMap,
) -> DiffResult:
    """Classify differences for every active sync path.

    Args:
        base_path: Installation root used to check for existing directories.
        sync_paths: Configured sync paths (inactive ones are skipped).
        local: Local fingerprints per sync path.
        remote: Server fingerprints per sync path.

    Returns:
        DiffResult with one entry per active sync path.
    """
    active = [sp for sp in sync_paths if sp.is_active]
    result = DiffResult(sync_paths=active)
    for sync_path in active:
        local_files = local.get(sync_path.path, {})
        remote_files = remote.get(sync_path.path, {})
        result.added[sync_path.path] = added_files(local_files, remote_files)
        result.updated[sync_path.path] = updated_files(local_files, remote_files)
        result.removed[sync_path.path] = removed_files(local_files, remote_files)
        result.created_directories[sync_path.path] = created_directories(
            base_path, local_files, remote_files
        )
    return result
