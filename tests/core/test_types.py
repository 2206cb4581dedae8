"""Tests for shared types."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from modsync.core.types import (
    ChangeEntry,
    ChangeOperation,
    FileRecord,
    FileSystemSnapshot,
    SyncPath,
    active_sync_paths,
    file_map_from_dict,
    file_map_to_dict,
    strip_parent_prefix,
    to_posix,
)


class TestSyncPath:
    """Tests for SyncPath."""

    def test_defaults(self) -> None:
        """A bare path should use the documented defaults."""
        sp = SyncPath(path="BepInEx/plugins")

        assert sp.name == "BepInEx/plugins"
        assert sp.enabled is True
        assert sp.enforced is False
        assert sp.silent is False
        assert sp.restart_required is True

    def test_backslashes_normalized(self) -> None:
        """Windows separators should be converted."""
        assert SyncPath(path="BepInEx\\plugins").path == "BepInEx/plugins"

    @pytest.mark.parametrize(
        ("enabled", "enforced", "active"),
        [
            (False, False, False),
            (False, True, True),
            (True, False, True),
            (True, True, True),
        ],
    )
    def test_is_active(self, enabled: bool, enforced: bool, active: bool) -> None:
        """A path is active iff enabled or enforced."""
        sp = SyncPath(path="p", enabled=enabled, enforced=enforced)
        assert sp.is_active is active
        assert (sp in active_sync_paths([sp])) is active

    def test_contains(self) -> None:
        """contains should match the root and descendants, ignoring case."""
        sp = SyncPath(path="BepInEx/plugins")

        assert sp.contains("BepInEx/plugins")
        assert sp.contains("bepinex/PLUGINS/mod.dll")
        assert not sp.contains("BepInEx/plugins2/mod.dll")
        assert not sp.contains("BepInEx/config/x.cfg")

    def test_from_dict(self) -> None:
        """PascalCase dictionaries should parse."""
        sp = SyncPath.from_dict(
            {"Path": "user/mods", "Name": "Server mods", "Enabled": False, "RestartRequired": False}
        )

        assert sp.path == "user/mods"
        assert sp.name == "Server mods"
        assert sp.enabled is False
        assert sp.restart_required is False
        assert sp.to_dict()["Path"] == "user/mods"


class TestPathHelpers:
    """Tests for path helpers."""

    def test_to_posix(self) -> None:
        """Backslashes become slashes."""
        assert to_posix("a\\b\\c.dll") == "a/b/c.dll"

    def test_strip_parent_prefix(self) -> None:
        """Only one leading '../' should be removed."""
        assert strip_parent_prefix("../BepInEx/plugins/a.dll") == "BepInEx/plugins/a.dll"
        assert strip_parent_prefix("..\\BepInEx\\a.dll") == "BepInEx/a.dll"
        assert strip_parent_prefix("BepInEx/a.dll") == "BepInEx/a.dll"
        assert strip_parent_prefix("../../a.dll") == "../a.dll"


class TestFileRecord:
    """Tests for FileRecord serialization."""

    def test_directory(self) -> None:
        """Directories carry the empty fingerprint."""
        record = FileRecord.directory()

        assert record.fingerprint == ""
        assert record.is_directory is True
        assert record.to_dict() == {"Hash": "", "IsDirectory": True}

    def test_file_map_keys_normalized(self) -> None:
        """Loaded file maps should use forward slashes."""
        loaded = file_map_from_dict(
            {"BepInEx\\plugins": {"BepInEx\\plugins\\a.dll": {"Hash": "ab", "IsDirectory": False}}}
        )

        assert loaded == {"BepInEx/plugins": {"BepInEx/plugins/a.dll": FileRecord("ab")}}
        assert file_map_to_dict(loaded)["BepInEx/plugins"]["BepInEx/plugins/a.dll"]["Hash"] == "ab"


class TestChangeEntry:
    """Tests for ChangeEntry."""

    def test_from_dict(self) -> None:
        """API dictionaries should parse, including a Z timestamp."""
        entry = ChangeEntry.from_dict(
            {
                "SequenceNumber": 7,
                "Operation": "Modify",
                "FilePath": "BepInEx\\plugins\\a.dll",
                "Hash": "abc",
                "Timestamp": "2024-05-01T12:00:00Z",
                "FileSize": 10,
            }
        )

        assert entry.sequence_number == 7
        assert entry.operation == ChangeOperation.MODIFY
        assert entry.file_path == "BepInEx/plugins/a.dll"
        assert entry.timestamp == datetime(2024, 5, 1, 12, tzinfo=UTC)
        assert entry.last_modified is None


class TestFileSystemSnapshot:
    """Tests for FileSystemSnapshot."""

    def test_to_dict(self) -> None:
        """Snapshots serialize with PascalCase keys."""
        snapshot = FileSystemSnapshot(files={"a.dll": FileRecord("ff", size=3)}, sequence_number=4)

        data = snapshot.to_dict()

        assert data["SequenceNumber"] == 4
        assert data["Files"]["a.dll"] == {"Hash": "ff", "IsDirectory": False, "Size": 3}
        assert FileSystemSnapshot.from_dict(data).files == snapshot.files
