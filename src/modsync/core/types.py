"""Shared types for modsync.

This module defines the data model used by the client, server and updater:
- SyncPath: A configured directory participating in synchronization
- FileRecord: Fingerprint and metadata of one file or directory
- FileSystemSnapshot: A full map of relative paths to FileRecords
- ChangeOperation / ChangeEntry: Entries of the authority's changelog

JSON produced by these types uses PascalCase keys.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

# sync path -> relative file path -> record
SyncPathFileMap = dict[str, dict[str, "FileRecord"]]


def to_posix(path: str) -> str:
    """Convert a relative path to canonical forward-slash form."""
    return path.replace("\\", "/")


def strip_parent_prefix(path: str) -> str:
    """Drop one leading ``../`` so the path is relative to the installation root."""
    posix = to_posix(path)
    return posix[3:] if posix.startswith("../") else posix


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO 8601 timestamp, accepting a trailing Z."""
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def format_timestamp(value: datetime | None) -> str | None:
    """Format a timestamp as ISO 8601, or None."""
    return value.isoformat() if value else None


@dataclass(frozen=True)
class SyncPath:
    """A directory (or file) root kept in sync with the authority.

    Attributes:
        path: Relative path from the installation root, may contain ``..``.
        name: Human-readable label, defaults to the path.
        enabled: User preference to synchronize this path.
        enforced: Always synchronized regardless of user preference.
        silent: Suppress interactive notification for changes under this path.
        restart_required: Changes require the host application to restart.
    """

    path: str
    name: str = ""
    enabled: bool = True
    enforced: bool = False
    silent: bool = False
    restart_required: bool = True

    def __post_init__(self) -> None:
        """Normalize path separators and default the name."""
        object.__setattr__(self, "path", to_posix(self.path))
        if not self.name:
            object.__setattr__(self, "name", self.path)

    @property
    def is_active(self) -> bool:
        """Whether this path participates in synchronization."""
        return self.enabled or self.enforced

    def contains(self, relative_path: str) -> bool:
        """Check whether a relative path lies under this sync path (case-insensitive)."""
        candidate = to_posix(relative_path).casefold()
        root = self.path.rstrip("/").casefold()
        return candidate == root or candidate.startswith(root + "/")

    def to_dict(self) -> dict[str, Any]:
        return {
            "Name": self.name,
            "Path": self.path,
            "Enabled": self.enabled,
            "Enforced": self.enforced,
            "Silent": self.silent,
            "RestartRequired": self.restart_required,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncPath:
        """Create from a PascalCase dictionary."""
        return cls(
            path=data["Path"],
            name=data.get("Name") or "",
            enabled=data.get("Enabled", True),
            enforced=data.get("Enforced", False),
            silent=data.get("Silent", False),
            restart_required=data.get("RestartRequired", True),
        )


def active_sync_paths(sync_paths: list[SyncPath]) -> list[SyncPath]:
    """Filter sync paths to those that are enabled or enforced."""
    return [sp for sp in sync_paths if sp.is_active]


@dataclass
class FileRecord:
    """Fingerprint and metadata of a file or directory.

    Directories carry an empty fingerprint.
    """

    fingerprint: str
    is_directory: bool = False
    size: int = 0
    last_modified: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"Hash": self.fingerprint, "IsDirectory": self.is_directory}
        if self.size:
            data["Size"] = self.size
        if self.last_modified:
            data["LastModified"] = format_timestamp(self.last_modified)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FileRecord:
        return cls(
            fingerprint=data.get("Hash", ""),
            is_directory=data.get("IsDirectory", False),
            size=data.get("Size", 0),
            last_modified=parse_timestamp(data.get("LastModified")),
        )

    @classmethod
    def directory(cls) -> FileRecord:
        """Record for a directory entry."""
        return cls(fingerprint="", is_directory=True)


def file_map_to_dict(file_map: SyncPathFileMap) -> dict[str, dict[str, dict[str, Any]]]:
    """Serialize a per-sync-path file map."""
    return {
        sync_path: {path: record.to_dict() for path, record in files.items()}
        for sync_path, files in file_map.items()
    }


def file_map_from_dict(data: dict[str, dict[str, dict[str, Any]]]) -> SyncPathFileMap:
    """Deserialize a per-sync-path file map."""
    return {
        to_posix(sync_path): {
            to_posix(path): FileRecord.from_dict(record) for path, record in files.items()
        }
        for sync_path, files in data.items()
    }


@dataclass
class FileSystemSnapshot:
    """All files under the active sync paths at one point in the changelog."""

    files: dict[str, FileRecord] = field(default_factory=dict)
    sequence_number: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "Files": {path: record.to_dict() for path, record in self.files.items()},
            "SequenceNumber": self.sequence_number,
            "Timestamp": format_timestamp(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FileSystemSnapshot:
        return cls(
            files={
                to_posix(path): FileRecord.from_dict(record)
                for path, record in data.get("Files", {}).items()
            },
            sequence_number=data.get("SequenceNumber", 0),
            timestamp=parse_timestamp(data.get("Timestamp")) or datetime.now(UTC),
        )


class ChangeOperation(str, Enum):
    """Kind of change recorded in the changelog."""

    ADD = "Add"
    MODIFY = "Modify"
    DELETE = "Delete"


@dataclass
class ChangeEntry:
    """One entry of the authority's changelog."""

    sequence_number: int
    operation: ChangeOperation
    file_path: str
    fingerprint: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    file_size: int = 0
    last_modified: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "SequenceNumber": self.sequence_number,
            "Operation": self.operation.value,
            "FilePath": self.file_path,
            "Hash": self.fingerprint,
            "Timestamp": format_timestamp(self.timestamp),
            "FileSize": self.file_size,
            "LastModified": format_timestamp(self.last_modified),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChangeEntry:
        """Create from API response dictionary."""
        return cls(
            sequence_number=data["SequenceNumber"],
            operation=ChangeOperation(data["Operation"]),
            file_path=to_posix(data["FilePath"]),
            fingerprint=data.get("Hash", ""),
            timestamp=parse_timestamp(data.get("Timestamp")) or datetime.now(UTC),
            file_size=data.get("FileSize", 0),
            last_modified=parse_timestamp(data.get("LastModified")),
        )
