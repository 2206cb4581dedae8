"""Authority-side scanning, hashing and change detection.

This module provides:
- SyncService: Hashes the configured sync paths, detects changes against the
  stored snapshot and appends them to the changelog
- PathNotAllowedError: Raised when a download path is outside every sync path

Change detection compares size and modification time first and only hashes
files that are new or whose size/mtime moved. A Modify entry is recorded only
when the fingerprint actually changed.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime
from pathlib import Path

from modsync.core.config import SyncConfig
from modsync.core.constants import CHANGELOG_RETENTION_DAYS
from modsync.core.fingerprint import fingerprint_file
from modsync.core.glob import ExclusionPatterns
from modsync.core.scan import relative_key, walk_sync_path
from modsync.core.types import (
    ChangeEntry,
    ChangeOperation,
    FileRecord,
    FileSystemSnapshot,
    SyncPath,
    SyncPathFileMap,
    to_posix,
)
from modsync.server.database import Database

logger = logging.getLogger(__name__)

DEFAULT_HASH_WORKERS = 4


class PathNotAllowedError(Exception):
    """Requested path is not inside any active sync path."""


class SyncService:
    """Scans sync paths under a root directory and maintains the changelog."""

    def __init__(
        self,
        root: Path,
        config: SyncConfig,
        db: Database,
        hash_workers: int = DEFAULT_HASH_WORKERS,
    ) -> None:
        """Initialize the service.

        Args:
            root: Server root that sync paths are relative to.
            config: Loaded sync configuration.
            db: Database holding the changelog and snapshot.
            hash_workers: Threads used to fingerprint files.
        """
        self._root = Path(root).resolve()
        self._config = config
        self._db = db
        self._exclusions = ExclusionPatterns(config.exclusions)
        self._hash_workers = hash_workers
        self._recheck_lock = threading.Lock()

    @property
    def root(self) -> Path:
        return self._root

    @property
    def config(self) -> SyncConfig:
        return self._config

    def _is_excluded(self, path: Path) -> bool:
        return self._exclusions.is_excluded(relative_key(path, self._root))

    def list_entries(self, sync_path: SyncPath) -> dict[str, bool]:
        """List files and empty directories under a sync path (after exclusions)."""
        if not (self._root / sync_path.path).exists():
            logger.warning("Sync path '%s' does not exist", sync_path.path)
            return {}
        return walk_sync_path(self._root, sync_path.path, self._exclusions)

    def _fingerprint(self, relative_path: str) -> str:
        path = self._root / relative_path
        if not path.is_file():
            return ""
        return fingerprint_file(path)

    def _fingerprint_many(self, relative_paths: list[str]) -> dict[str, str]:
        if not relative_paths:
            return {}
        with ThreadPoolExecutor(max_workers=self._hash_workers) as pool:
            hashes = pool.map(self._fingerprint, relative_paths)
            return dict(zip(relative_paths, hashes, strict=True))

    # === Hashing ===

    def hash_sync_paths(self, requested: list[str] | None = None) -> SyncPathFileMap:
        """Fingerprint every file under the active sync paths.

        A file reachable from several sync paths is reported once, under the
        first (longest) path that contains it.

        Args:
            requested: Optional sync path strings to restrict hashing to.

        Returns:
            Mapping of sync path -> relative path -> FileRecord.
        """
        start = time.monotonic()
        paths = self._config.active_paths
        if requested:
            wanted = {to_posix(p) for p in requested}
            paths = [sp for sp in paths if sp.path in wanted]

        seen: set[str] = set()
        result: SyncPathFileMap = {}
        for sync_path in paths:
            entries = {
                rel: is_dir
                for rel, is_dir in self.list_entries(sync_path).items()
                if rel not in seen
            }
            seen.update(entries)
            hashes = self._fingerprint_many([rel for rel, is_dir in entries.items() if not is_dir])
            result[sync_path.path] = {
                rel: FileRecord.directory() if is_dir else FileRecord(fingerprint=hashes[rel])
                for rel, is_dir in entries.items()
            }

        logger.debug(
            "Hashed %d entries in %.0fms", len(seen), (time.monotonic() - start) * 1000
        )
        return result

    # === Change detection ===

    def build_snapshot(self, sequence_number: int) -> FileSystemSnapshot:
        """Scan active sync paths recording size and mtime (no hashing)."""
        files: dict[str, FileRecord] = {}
        for sync_path in self._config.active_paths:
            for rel, is_dir in self.list_entries(sync_path).items():
                if is_dir:
                    files[rel] = FileRecord.directory()
                    continue
                stat = (self._root / rel).stat()
                files[rel] = FileRecord(
                    fingerprint="",
                    size=stat.st_size,
                    last_modified=datetime.fromtimestamp(stat.st_mtime, UTC),
                )
        return FileSystemSnapshot(files=files, sequence_number=sequence_number)

    def detect_changes(
        self,
        old: FileSystemSnapshot | None,
        new: FileSystemSnapshot,
        start_sequence: int,
    ) -> list[ChangeEntry]:
        """Compare two snapshots and produce changelog entries.

        Fingerprints are filled into ``new`` for every file: carried over from
        ``old`` when size and mtime are unchanged, computed otherwise.

        Args:
            old: Previously stored snapshot (None on first run).
            new: Freshly built snapshot.
            start_sequence: Current changelog sequence.

        Returns:
            New entries numbered from start_sequence + 1.
        """
        old_files = old.files if old else {}
        now = datetime.now(UTC)
        sequence = start_sequence
        changes: list[ChangeEntry] = []

        to_hash: list[str] = []
        for path, record in new.files.items():
            if record.is_directory:
                continue
            previous = old_files.get(path)
            if (
                previous is not None
                and not previous.is_directory
                and previous.size == record.size
                and previous.last_modified == record.last_modified
            ):
                record.fingerprint = previous.fingerprint
            else:
                to_hash.append(path)

        hashes = self._fingerprint_many(to_hash)
        for path in to_hash:
            record = new.files[path]
            record.fingerprint = hashes[path]
            previous = old_files.get(path)
            if previous is None or previous.is_directory:
                operation = ChangeOperation.ADD
            elif record.fingerprint != previous.fingerprint:
                operation = ChangeOperation.MODIFY
            else:
                continue
            sequence += 1
            changes.append(
                ChangeEntry(
                    sequence_number=sequence,
                    operation=operation,
                    file_path=path,
                    fingerprint=record.fingerprint,
                    timestamp=now,
                    file_size=record.size,
                    last_modified=record.last_modified,
                )
            )

        for path, previous in old_files.items():
            if previous.is_directory or path in new.files:
                continue
            sequence += 1
            changes.append(
                ChangeEntry(
                    sequence_number=sequence,
                    operation=ChangeOperation.DELETE,
                    file_path=path,
                    fingerprint="",
                    timestamp=now,
                )
            )

        return changes

    def recheck(self) -> list[ChangeEntry]:
        """Scan the sync paths, append detected changes and store the snapshot.

        Rechecks are serialized so that only one writer numbers changelog
        entries at a time.

        Returns:
            Entries appended by this recheck.
        """
        changes, _ = self._recheck()
        return changes

    def _recheck(self) -> tuple[list[ChangeEntry], FileSystemSnapshot]:
        with self._recheck_lock:
            return self._recheck_locked()

    def _recheck_locked(self) -> tuple[list[ChangeEntry], FileSystemSnapshot]:
        # Caller holds _recheck_lock
        start = time.monotonic()
        current = self._db.get_current_sequence()
        snapshot = self.build_snapshot(current)
        changes = self.detect_changes(self._db.load_snapshot(), snapshot, current)

        if changes:
            current = self._db.append_changes(changes)
            counts = {op: sum(1 for c in changes if c.operation == op) for op in ChangeOperation}
            logger.info(
                "Changes: %d added, %d modified, %d deleted",
                counts[ChangeOperation.ADD],
                counts[ChangeOperation.MODIFY],
                counts[ChangeOperation.DELETE],
            )

        snapshot.sequence_number = current
        snapshot.timestamp = datetime.now(UTC)
        self._db.save_snapshot(snapshot)
        self._db.prune_old_entries(CHANGELOG_RETENTION_DAYS)

        logger.info(
            "Recheck completed in %.0fms (detected %d changes)",
            (time.monotonic() - start) * 1000,
            len(changes),
        )
        return changes, snapshot

    def get_full_snapshot(self) -> FileSystemSnapshot:
        """Return the stored snapshot, scanning first if none exists."""
        snapshot = self._db.load_snapshot()
        if snapshot is None:
            _, snapshot = self._recheck()
        return snapshot

    # === Downloads ===

    def sanitize_download_path(self, file_path: str) -> Path:
        """Resolve a requested relative path, requiring it to lie in a sync path.

        Args:
            file_path: Path relative to the server root.

        Returns:
            Absolute resolved path.

        Raises:
            PathNotAllowedError: If the path is outside every active sync path.
        """
        target = (self._root / to_posix(file_path)).resolve()
        for sync_path in self._config.active_paths:
            base = (self._root / sync_path.path).resolve()
            if target == base or target.is_relative_to(base):
                if not self._is_excluded(target):
                    return target
        raise PathNotAllowedError("Path must match one of the configured sync paths")
