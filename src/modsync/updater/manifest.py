"""Deferred file operations applied by the updater.

This module provides:
- CopyFile, CreateDirectory, DeleteFile, MoveFile, ExtractArchive, DecryptFile:
  One frozen dataclass per operation kind
- UpdateOperation: Union of the operation kinds
- UpdateManifest: Ordered operations plus the remote map to persist afterwards
- load_manifest / save_manifest: JSON persistence

JSON form of an operation::

    {"Type": "CopyFile", "Source": "...", "Destination": "...", "Parameters": {}}
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar

from modsync.core.errors import ErrorKind, ModSyncError
from modsync.core.types import SyncPathFileMap, file_map_from_dict, file_map_to_dict

logger = logging.getLogger(__name__)


# === Operation kinds ===


@dataclass(frozen=True)
class CopyFile:
    """Copy a staged file (relative to staging) to the target."""

    type_name: ClassVar[str] = "CopyFile"

    source: str
    destination: str
    parameters: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class CreateDirectory:
    """Create a directory in the target."""

    type_name: ClassVar[str] = "CreateDirectory"

    destination: str
    parameters: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DeleteFile:
    """Delete a file from the target."""

    type_name: ClassVar[str] = "DeleteFile"

    destination: str
    parameters: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class MoveFile:
    """Move a file within the target."""

    type_name: ClassVar[str] = "MoveFile"

    source: str
    destination: str
    parameters: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ExtractArchive:
    """Unpack a staged zip or tar archive into a target directory."""

    type_name: ClassVar[str] = "ExtractArchive"

    source: str
    destination: str
    parameters: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DecryptFile:
    """Decrypt a staged file into the target."""

    type_name: ClassVar[str] = "DecryptFile"

    source: str
    destination: str
    parameters: dict[str, str] = field(default_factory=dict)


UpdateOperation = (
    CopyFile | CreateDirectory | DeleteFile | MoveFile | ExtractArchive | DecryptFile
)

OPERATION_TYPES: dict[str, type[UpdateOperation]] = {
    cls.type_name: cls
    for cls in (CopyFile, CreateDirectory, DeleteFile, MoveFile, ExtractArchive, DecryptFile)
}

_SOURCE_KINDS = (CopyFile, MoveFile, ExtractArchive, DecryptFile)


# === Serialization ===


def _required(data: dict[str, Any], key: str, index: int, kind: str) -> str:
    value = data.get(key)
    if not value or not isinstance(value, str):
        raise ModSyncError(
            ErrorKind.CONFIGURATION_INVALID,
            f"{kind} operation requires '{key}'",
            config_key=f"Operations[{index}].{key}",
        )
    return value


def operation_to_dict(operation: UpdateOperation) -> dict[str, Any]:
    """Serialize an operation to its PascalCase JSON form."""
    return {
        "Type": operation.type_name,
        "Source": getattr(operation, "source", None),
        "Destination": operation.destination,
        "Parameters": dict(operation.parameters),
    }


def operation_from_dict(data: dict[str, Any], index: int = 0) -> UpdateOperation:
    """Parse one operation.

    Args:
        data: JSON object of the operation.
        index: Position in the manifest, used in error context.

    Raises:
        ModSyncError: CONFIGURATION_INVALID for an unknown type or a missing field.
    """
    kind = data.get("Type")
    cls = OPERATION_TYPES.get(kind) if isinstance(kind, str) else None
    if cls is None:
        raise ModSyncError(
            ErrorKind.CONFIGURATION_INVALID,
            f"Unknown operation type: {kind!r}",
            config_key=f"Operations[{index}].Type",
        )

    parameters = {str(k): str(v) for k, v in (data.get("Parameters") or {}).items()}
    destination = _required(data, "Destination", index, cls.type_name)
    if issubclass(cls, _SOURCE_KINDS):
        source = _required(data, "Source", index, cls.type_name)
        return cls(source=source, destination=destination, parameters=parameters)
    return cls(destination=destination, parameters=parameters)


@dataclass
class UpdateManifest:
    """Operations for the updater to perform, in order."""

    operations: list[UpdateOperation] = field(default_factory=list)
    remote_sync_data: SyncPathFileMap | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "Operations": [operation_to_dict(op) for op in self.operations],
            "RemoteSyncData": (
                file_map_to_dict(self.remote_sync_data)
                if self.remote_sync_data is not None
                else None
            ),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UpdateManifest:
        """Create from the manifest's JSON object."""
        operations = data.get("Operations") or []
        if not isinstance(operations, list):
            raise ModSyncError(
                ErrorKind.CONFIGURATION_INVALID,
                "Manifest 'Operations' must be a list",
                config_key="Operations",
            )
        remote = data.get("RemoteSyncData")
        return cls(
            operations=[operation_from_dict(op, i) for i, op in enumerate(operations)],
            remote_sync_data=file_map_from_dict(remote) if remote is not None else None,
        )


def load_manifest(path: Path) -> UpdateManifest:
    """Read a manifest file.

    Raises:
        ModSyncError: CONFIGURATION_INVALID if the file is not valid JSON or
            an operation is malformed.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ModSyncError(
            ErrorKind.CONFIGURATION_INVALID,
            f"Update manifest is not valid JSON: {e}",
            path=str(path),
        ) from e
    if not isinstance(data, dict):
        raise ModSyncError(
            ErrorKind.CONFIGURATION_INVALID,
            "Update manifest must be a JSON object",
            path=str(path),
        )
    return UpdateManifest.from_dict(data)


def save_manifest(manifest: UpdateManifest, path: Path) -> None:
    """Write a manifest file, creating the parent directory."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(manifest.to_dict(), indent=2), encoding="utf-8")
    logger.debug(f"Wrote update manifest with {len(manifest.operations)} operations")
