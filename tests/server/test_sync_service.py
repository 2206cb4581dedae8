"""Tests for SyncService hashing and change detection."""

from __future__ import annotations

import os
import threading
import time
from pathlib import Path
from unittest.mock import patch

import pytest

from modsync.core.config import SyncConfig
from modsync.core.fingerprint import fingerprint_file
from modsync.core.types import ChangeOperation, FileRecord, SyncPath
from modsync.server.database import Database
from modsync.server.sync_service import PathNotAllowedError, SyncService


def bump_mtime(path: Path, seconds: int = 10) -> None:
    stat = path.stat()
    os.utime(path, (stat.st_atime, stat.st_mtime + seconds))


class TestHashSyncPaths:
    """Tests for hash_sync_paths."""

    def test_hashes_active_paths(self, service: SyncService, root: Path) -> None:
        """Active paths are hashed, disabled and excluded entries are not."""
        hashes = service.hash_sync_paths()

        assert set(hashes) == {"BepInEx/plugins", "BepInEx/config"}
        plugins = hashes["BepInEx/plugins"]
        dll = root / "BepInEx" / "plugins" / "ModA" / "ModA.dll"
        assert plugins["BepInEx/plugins/ModA/ModA.dll"] == FileRecord(fingerprint_file(dll))
        assert plugins["BepInEx/plugins/Empty"] == FileRecord.directory()
        assert "BepInEx/plugins/skip.nosync" not in plugins

    def test_requested_paths(self, service: SyncService) -> None:
        """Only requested sync paths should be hashed."""
        hashes = service.hash_sync_paths(["BepInEx\\config"])
        assert list(hashes) == ["BepInEx/config"]

    def test_overlapping_paths_deduplicated(self, root: Path, db: Database) -> None:
        """A file under nested sync paths is reported under the longest one."""
        config = SyncConfig(sync_paths=[SyncPath(path="BepInEx/plugins"), SyncPath(path="BepInEx")])
        service = SyncService(root, config, db)

        hashes = service.hash_sync_paths()

        assert "BepInEx/plugins/ModA/ModA.dll" in hashes["BepInEx/plugins"]
        assert "BepInEx/plugins/ModA/ModA.dll" not in hashes["BepInEx"]
        assert "BepInEx/config/a.cfg" in hashes["BepInEx"]

    def test_missing_sync_path(self, root: Path, db: Database) -> None:
        """A configured path that does not exist hashes to nothing."""
        service = SyncService(root, SyncConfig(sync_paths=[SyncPath(path="missing")]), db)
        assert service.hash_sync_paths() == {"missing": {}}


class TestRecheck:
    """Tests for change detection."""

    def test_first_recheck_adds_everything(self, service: SyncService, db: Database) -> None:
        """Every file is an Add on the first scan."""
        changes = service.recheck()

        assert {c.file_path for c in changes} == {
            "BepInEx/plugins/ModA/ModA.dll",
            "BepInEx/config/a.cfg",
        }
        assert all(c.operation == ChangeOperation.ADD for c in changes)
        assert [c.sequence_number for c in changes] == [1, 2]
        assert db.get_current_sequence() == 2
        snapshot = db.load_snapshot()
        assert snapshot is not None
        assert snapshot.sequence_number == 2
        assert snapshot.files["BepInEx/config/a.cfg"].fingerprint

    def test_unchanged_tree(self, service: SyncService, db: Database) -> None:
        """A second scan of an unchanged tree records nothing."""
        service.recheck()
        assert service.recheck() == []
        assert db.get_current_sequence() == 2

    def test_modify_and_delete(self, service: SyncService, db: Database, root: Path) -> None:
        """Content changes become Modify, vanished files become Delete."""
        service.recheck()
        cfg = root / "BepInEx" / "config" / "a.cfg"
        cfg.write_text("setting=2")
        bump_mtime(cfg)
        (root / "BepInEx" / "plugins" / "ModA" / "ModA.dll").unlink()

        changes = service.recheck()

        by_path = {c.file_path: c for c in changes}
        assert by_path["BepInEx/config/a.cfg"].operation == ChangeOperation.MODIFY
        assert by_path["BepInEx/config/a.cfg"].fingerprint == fingerprint_file(cfg)
        deleted = by_path["BepInEx/plugins/ModA/ModA.dll"]
        assert deleted.operation == ChangeOperation.DELETE
        assert deleted.fingerprint == ""
        assert [c.sequence_number for c in changes] == [3, 4]

    def test_touch_without_content_change(
        self, service: SyncService, db: Database, root: Path
    ) -> None:
        """A new mtime with identical content is not a Modify."""
        service.recheck()
        bump_mtime(root / "BepInEx" / "config" / "a.cfg")

        assert service.recheck() == []

    def test_full_snapshot_scans_once(self, service: SyncService, db: Database) -> None:
        """get_full_snapshot should scan when nothing is stored yet."""
        snapshot = service.get_full_snapshot()

        assert "BepInEx/config/a.cfg" in snapshot.files
        assert db.get_current_sequence() == 2

    def test_full_snapshot_uses_recheck_result(self, service: SyncService, db: Database) -> None:
        """The snapshot produced by the recheck is returned without a reload."""
        with patch.object(db, "load_snapshot", return_value=None):
            snapshot = service.get_full_snapshot()

        assert snapshot.sequence_number == 2
        assert "BepInEx/plugins/ModA/ModA.dll" in snapshot.files

    def test_concurrent_rechecks_are_serialized(self, service: SyncService, db: Database) -> None:
        """Two rechecks started together never detect changes at the same time."""
        original = service.detect_changes
        guard = threading.Lock()
        active = 0
        overlapped = False

        def slow_detect(*args, **kwargs):
            nonlocal active, overlapped
            with guard:
                active += 1
                overlapped = overlapped or active > 1
            try:
                time.sleep(0.05)
                return original(*args, **kwargs)
            finally:
                with guard:
                    active -= 1

        barrier = threading.Barrier(2)
        results = []

        def run() -> None:
            barrier.wait(timeout=5)
            results.append(service.recheck())

        with patch.object(service, "detect_changes", side_effect=slow_detect):
            threads = [threading.Thread(target=run) for _ in range(2)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join(timeout=10)

        assert not overlapped
        assert sorted(len(changes) for changes in results) == [0, 2]
        assert db.get_current_sequence() == 2
        assert [c.sequence_number for c in db.get_changes_since(0)] == [1, 2]


class TestSanitizeDownloadPath:
    """Tests for download path sanitization."""

    def test_allowed(self, service: SyncService, root: Path) -> None:
        """Paths inside an active sync path resolve."""
        target = service.sanitize_download_path("BepInEx/plugins/ModA/ModA.dll")
        assert target == (root / "BepInEx" / "plugins" / "ModA" / "ModA.dll").resolve()

    @pytest.mark.parametrize(
        "path",
        [
            "user/mods/server.js",
            "BepInEx/plugins/../../secret.txt",
            "../outside.txt",
            "BepInEx/plugins/skip.nosync",
            "BepInEx/other.dll",
        ],
        ids=["disabled", "traversal", "outside-root", "excluded", "no-sync-path"],
    )
    def test_rejected(self, service: SyncService, path: str) -> None:
        """Paths outside the active sync paths are rejected."""
        with pytest.raises(PathNotAllowedError):
            service.sanitize_download_path(path)
