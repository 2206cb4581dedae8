"""Tests for local/remote snapshot comparison."""

from __future__ import annotations

from pathlib import Path

import pytest

from modsync.client.differ import (
    DiffResult,
    added_files,
    compare_file_maps,
    created_directories,
    removed_files,
    updated_files,
)
from modsync.core.types import FileRecord, SyncPath

PLUGINS = "BepInEx/plugins"


def f(fingerprint: str) -> FileRecord:
    return FileRecord(fingerprint=fingerprint)


class TestClassification:
    """Tests for the per-path set functions."""

    def test_empty_local(self, tmp_path: Path) -> None:
        """Remote files are added and remote directories are created."""
        remote = {
            "file.dll": f("1"),
            "Scripts": FileRecord.directory(),
            "another.dll": f("2"),
        }

        assert added_files({}, remote) == ["another.dll", "file.dll"]
        assert created_directories(tmp_path, {}, remote) == ["Scripts"]
        assert updated_files({}, remote) == []
        assert removed_files({}, remote) == []

    def test_updated_requires_different_fingerprint(self) -> None:
        """Only files with a changed fingerprint are updated."""
        local = {"a.dll": f("1"), "b.dll": f("2")}
        remote = {"a.dll": f("1"), "b.dll": f("3")}

        assert updated_files(local, remote) == ["b.dll"]

    def test_removed_excludes_directories(self) -> None:
        """Local directories missing remotely are not removed."""
        local = {"gone.dll": f("1"), "OldDir": FileRecord.directory()}

        assert removed_files(local, {}) == ["gone.dll"]

    def test_case_insensitive_keys(self) -> None:
        """Keys differing only in case refer to the same file."""
        local = {"BepInEx/Plugins/Mod.dll": f("1")}
        remote = {"BepInEx/plugins/mod.dll": f("2")}

        assert added_files(local, remote) == []
        assert removed_files(local, remote) == []
        assert updated_files(local, remote) == ["BepInEx/plugins/mod.dll"]

    def test_existing_directory_not_created(self, tmp_path: Path) -> None:
        """A directory already on disk is not reported as created."""
        (tmp_path / "Scripts").mkdir()

        assert created_directories(tmp_path, {}, {"Scripts": FileRecord.directory()}) == []

    def test_file_replaced_by_directory(self) -> None:
        """A key that is a file on one side and a directory on the other is not updated."""
        local = {"Data": f("1")}
        remote = {"Data": FileRecord.directory()}

        assert updated_files(local, remote) == []


class TestCompareFileMaps:
    """Tests for compare_file_maps and the aggregates."""

    @pytest.mark.parametrize(
        ("enabled", "enforced", "included"),
        [
            (False, False, False),
            (False, True, True),
            (True, False, True),
            (True, True, True),
        ],
    )
    def test_active_paths_only(
        self, tmp_path: Path, enabled: bool, enforced: bool, included: bool
    ) -> None:
        """Only enabled or enforced paths are compared."""
        sync_path = SyncPath(path=PLUGINS, enabled=enabled, enforced=enforced)
        remote = {PLUGINS: {f"{PLUGINS}/a.dll": f("1")}}

        diff = compare_file_maps(tmp_path, [sync_path], {}, remote)

        assert (PLUGINS in diff.added) is included
        assert diff.update_count(True) == (1 if included else 0)

    def test_update_count(self, tmp_path: Path) -> None:
        """2 added + 1 updated + 1 removed + 1 created directory = 5."""
        sync_path = SyncPath(path=PLUGINS)
        local = {PLUGINS: {"p/changed.dll": f("old"), "p/gone.dll": f("x")}}
        remote = {
            PLUGINS: {
                "p/new1.dll": f("1"),
                "p/new2.dll": f("2"),
                "p/changed.dll": f("new"),
                "p/NewDir": FileRecord.directory(),
            }
        }

        diff = compare_file_maps(tmp_path, [sync_path], local, remote)

        assert diff.update_count(delete_removed_files=True) == 5
        assert diff.update_count(delete_removed_files=False) == 4
        assert diff.summary() == "2 added, 1 updated, 1 removed, 1 directories"

    def test_enforced_path_always_deletes(self, tmp_path: Path) -> None:
        """Removed files under an enforced path count even when deletion is off."""
        sync_path = SyncPath(path=PLUGINS, enforced=True)
        diff = compare_file_maps(tmp_path, [sync_path], {PLUGINS: {"p/gone.dll": f("x")}}, {})

        assert diff.update_count(delete_removed_files=False) == 1
        assert diff.files_to_delete(False) == ["p/gone.dll"]

    def test_files_to_download(self, tmp_path: Path) -> None:
        """Added and updated files are downloaded."""
        sync_path = SyncPath(path=PLUGINS)
        diff = compare_file_maps(
            tmp_path,
            [sync_path],
            {PLUGINS: {"p/a.dll": f("1")}},
            {PLUGINS: {"p/a.dll": f("2"), "p/b.dll": f("3")}},
        )

        assert diff.files_to_download(sync_path) == ["p/b.dll", "p/a.dll"]


class TestAggregates:
    """Tests for is_silent and is_restart_required."""

    def make_diff(self, *sync_paths: SyncPath) -> DiffResult:
        diff = DiffResult(sync_paths=list(sync_paths))
        for sp in sync_paths:
            diff.added[sp.path] = [f"{sp.path}/new.dll"]
        return diff

    def test_no_changes_is_silent(self) -> None:
        """With nothing touched the update is silent and needs no restart."""
        diff = DiffResult(sync_paths=[SyncPath(path=PLUGINS)])

        assert diff.is_silent(True)
        assert not diff.is_restart_required(True)
        assert diff.touched_paths(True) == []

    def test_silent_requires_every_touched_path_silent(self) -> None:
        """One non-silent touched path makes the update visible."""
        silent = SyncPath(path="a", silent=True)
        loud = SyncPath(path="b")

        assert self.make_diff(silent).is_silent(True)
        assert not self.make_diff(silent, loud).is_silent(True)

    def test_headless_is_always_silent(self) -> None:
        """Headless runs never notify."""
        assert self.make_diff(SyncPath(path="b")).is_silent(True, headless=True)

    def test_untouched_paths_ignored(self) -> None:
        """Flags of paths without changes do not matter."""
        touched = SyncPath(path="a", silent=True, restart_required=False)
        untouched = SyncPath(path="b", silent=False, restart_required=True)
        diff = self.make_diff(touched)
        diff.sync_paths.append(untouched)

        assert diff.is_silent(True)
        assert not diff.is_restart_required(True)

    def test_restart_required(self) -> None:
        """Any touched path requiring a restart requires one overall."""
        diff = self.make_diff(
            SyncPath(path="a", restart_required=False), SyncPath(path="b", restart_required=True)
        )
        assert diff.is_restart_required(True)

    def test_directories_carry_path_flags(self, tmp_path: Path) -> None:
        """A directory-only change still uses its path's flags."""
        sync_path = SyncPath(path=PLUGINS, silent=False, restart_required=True)
        diff = compare_file_maps(
            tmp_path, [sync_path], {}, {PLUGINS: {"p/NewDir": FileRecord.directory()}}
        )

        assert diff.update_count(True) == 1
        assert not diff.is_silent(True)
        assert diff.is_restart_required(True)
