"""Tests for persisted client state and incremental replay."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

import pytest

from modsync.client.state import ClientState, SyncState, apply_incremental_changes
from modsync.core.types import ChangeEntry, ChangeOperation, FileRecord, SyncPath
from modsync.updater.manifest import CopyFile, UpdateManifest, load_manifest


@pytest.fixture
def state(tmp_path: Path) -> ClientState:
    return ClientState(tmp_path / "ModSync_Data")


class TestSyncState:
    """Tests for SyncState."""

    def test_to_dict(self) -> None:
        """Keys are PascalCase."""
        when = datetime(2024, 5, 1, tzinfo=UTC)
        data = SyncState(last_sequence=7, last_sync_time=when).to_dict()

        assert data == {"LastSequence": 7, "LastSyncTime": when.isoformat()}
        assert SyncState.from_dict(data).last_sync_time == when


class TestClientState:
    """Tests for ClientState persistence."""

    def test_missing_files(self, state: ClientState) -> None:
        """Nothing is loaded from an empty data directory."""
        assert state.load_sync_state() is None
        assert state.load_previous_sync() is None
        assert not state.has_pending_manifest()

    def test_sync_state_roundtrip(self, state: ClientState) -> None:
        """A saved sequence is loaded back."""
        state.save_sync_state(12)

        loaded = state.load_sync_state()

        assert loaded is not None
        assert loaded.last_sequence == 12

    def test_corrupt_sync_state(self, state: ClientState) -> None:
        """A corrupt sync state file is ignored."""
        state.data_dir.mkdir(parents=True)
        (state.data_dir / "SyncState.json").write_text("{not json")

        assert state.load_sync_state() is None

    def test_previous_sync(self, state: ClientState) -> None:
        """The previous remote map persists with PascalCase records."""
        remote = {"BepInEx/plugins": {"BepInEx/plugins/a.dll": FileRecord("ab")}}

        state.save_previous_sync(remote)

        raw = json.loads((state.data_dir / "PreviousSync.json").read_text())
        assert raw["BepInEx/plugins"]["BepInEx/plugins/a.dll"]["Hash"] == "ab"
        assert state.load_previous_sync() == remote

    def test_manifest_and_removed_files(self, state: ClientState) -> None:
        """The updater handoff files are written to the data directory."""
        manifest = UpdateManifest(operations=[CopyFile(source="a.dll", destination="a.dll")])

        state.write_manifest(manifest)
        state.write_removed_files(["old.dll"])

        assert state.has_pending_manifest()
        assert load_manifest(state.manifest_path).operations == manifest.operations
        assert json.loads(state.removed_files_path.read_text()) == ["old.dll"]


def change(
    sequence: int, operation: ChangeOperation, path: str, fingerprint: str = ""
) -> ChangeEntry:
    return ChangeEntry(sequence, operation, path, fingerprint)


class TestApplyIncrementalChanges:
    """Tests for apply_incremental_changes."""

    def test_add_modify_delete(self) -> None:
        """Changes are replayed in sequence order onto a copy of the map."""
        plugins = SyncPath(path="BepInEx/plugins")
        previous = {
            "BepInEx/plugins": {
                "BepInEx/plugins/a.dll": FileRecord("1"),
                "BepInEx/plugins/b.dll": FileRecord("2"),
            }
        }
        changes = [
            change(6, ChangeOperation.DELETE, "BepInEx/plugins/b.dll"),
            change(5, ChangeOperation.MODIFY, "BepInEx/plugins/a.dll", "1b"),
            change(7, ChangeOperation.ADD, "BepInEx/plugins/c.dll", "3"),
        ]

        result = apply_incremental_changes(previous, changes, [plugins])

        files = result["BepInEx/plugins"]
        assert files["BepInEx/plugins/a.dll"].fingerprint == "1b"
        assert files["BepInEx/plugins/c.dll"].fingerprint == "3"
        assert "BepInEx/plugins/b.dll" not in files
        assert "BepInEx/plugins/b.dll" in previous["BepInEx/plugins"]

    def test_longest_prefix_wins(self) -> None:
        """A change is filed under the most specific sync path."""
        paths = [SyncPath(path="BepInEx"), SyncPath(path="BepInEx/plugins")]

        result = apply_incremental_changes(
            {}, [change(1, ChangeOperation.ADD, "BepInEx/plugins/x.dll", "9")], paths
        )

        assert "BepInEx/plugins/x.dll" in result["BepInEx/plugins"]
        assert result["BepInEx"] == {}

    def test_case_insensitive_replace(self) -> None:
        """A change replaces an existing key that differs only in case."""
        plugins = SyncPath(path="BepInEx/plugins")
        previous = {"BepInEx/plugins": {"BepInEx/Plugins/A.dll": FileRecord("1")}}

        result = apply_incremental_changes(
            previous, [change(2, ChangeOperation.MODIFY, "BepInEx/plugins/a.dll", "2")], [plugins]
        )

        assert result["BepInEx/plugins"] == {"BepInEx/plugins/a.dll": FileRecord("2")}

    def test_unmatched_change_skipped(self) -> None:
        """Changes outside every sync path are ignored."""
        plugins = SyncPath(path="BepInEx/plugins")

        result = apply_incremental_changes(
            {}, [change(1, ChangeOperation.ADD, "user/mods/x.js", "1")], [plugins]
        )

        assert result == {"BepInEx/plugins": {}}
