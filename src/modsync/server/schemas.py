"""Pydantic schemas for API request/response validation.

Field names are snake_case in Python and PascalCase on the wire.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from modsync.core.types import ChangeEntry, FileRecord, FileSystemSnapshot, SyncPath


class WireModel(BaseModel):
    """Base model serializing with PascalCase aliases."""

    model_config = ConfigDict(populate_by_name=True)


# === Health schemas ===


class HealthResponse(BaseModel):
    """Response for health check endpoint."""

    status: str


# === Sync configuration schemas ===


class SyncPathResponse(WireModel):
    """Sync path data in responses."""

    name: str = Field(alias="Name")
    path: str = Field(alias="Path")
    enabled: bool = Field(alias="Enabled")
    enforced: bool = Field(alias="Enforced")
    silent: bool = Field(alias="Silent")
    restart_required: bool = Field(alias="RestartRequired")


def sync_path_to_response(sync_path: SyncPath) -> SyncPathResponse:
    """Convert SyncPath to response model."""
    return SyncPathResponse(
        name=sync_path.name,
        path=sync_path.path,
        enabled=sync_path.enabled,
        enforced=sync_path.enforced,
        silent=sync_path.silent,
        restart_required=sync_path.restart_required,
    )


class FileRecordResponse(WireModel):
    """Fingerprint of one file or directory."""

    hash: str = Field(alias="Hash")
    is_directory: bool = Field(alias="IsDirectory")


def record_to_response(record: FileRecord) -> FileRecordResponse:
    """Convert FileRecord to response model."""
    return FileRecordResponse(hash=record.fingerprint, is_directory=record.is_directory)


# === Change log schemas ===


class ChangeResponse(WireModel):
    """Single change entry in response."""

    sequence_number: int = Field(alias="SequenceNumber")
    operation: str = Field(alias="Operation")  # Add, Modify, Delete
    file_path: str = Field(alias="FilePath")
    hash: str = Field(alias="Hash")
    timestamp: str = Field(alias="Timestamp")
    file_size: int = Field(alias="FileSize")
    last_modified: str | None = Field(default=None, alias="LastModified")


def change_to_response(change: ChangeEntry) -> ChangeResponse:
    """Convert ChangeEntry to response model."""
    return ChangeResponse(
        sequence_number=change.sequence_number,
        operation=change.operation.value,
        file_path=change.file_path,
        hash=change.fingerprint,
        timestamp=change.timestamp.isoformat(),
        file_size=change.file_size,
        last_modified=change.last_modified.isoformat() if change.last_modified else None,
    )


class ChangesResponse(WireModel):
    """Response for /modsync/changes endpoint."""

    current_sequence: int = Field(alias="CurrentSequence")
    changes: list[ChangeResponse] = Field(alias="Changes")


class SequenceResponse(WireModel):
    """Response for /modsync/sequence endpoint."""

    current_sequence: int = Field(alias="CurrentSequence")


class RecheckResponse(WireModel):
    """Response for /modsync/recheck endpoint."""

    before_sequence: int = Field(alias="BeforeSequence")
    after_sequence: int = Field(alias="AfterSequence")
    changes: list[ChangeResponse] = Field(alias="Changes")


class SnapshotFileResponse(WireModel):
    """One snapshot entry."""

    hash: str = Field(alias="Hash")
    is_directory: bool = Field(alias="IsDirectory")
    size: int = Field(alias="Size")
    last_modified: str | None = Field(default=None, alias="LastModified")


class SnapshotResponse(WireModel):
    """Response for /modsync/snapshot endpoint."""

    files: dict[str, SnapshotFileResponse] = Field(alias="Files")
    sequence_number: int = Field(alias="SequenceNumber")
    timestamp: str = Field(alias="Timestamp")


def snapshot_to_response(snapshot: FileSystemSnapshot) -> SnapshotResponse:
    """Convert FileSystemSnapshot to response model."""
    return SnapshotResponse(
        files={
            path: SnapshotFileResponse(
                hash=record.fingerprint,
                is_directory=record.is_directory,
                size=record.size,
                last_modified=record.last_modified.isoformat() if record.last_modified else None,
            )
            for path, record in snapshot.files.items()
        },
        sequence_number=snapshot.sequence_number,
        timestamp=snapshot.timestamp.isoformat(),
    )
