"""Applies staged updates to the installation.

This module provides:
- FileUpdateService: Runs the update manifest (or copies the staging directory
  when there is none) and deletes the files listed in RemovedFiles.json

Every file-system step runs under a RetryPolicy so that files still locked by
the exiting host are retried. Once retries are exhausted the failure surfaces
as ModSyncError(FILE_OPERATION_FAILED) with the path attached.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tarfile
import threading
import zipfile
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

from modsync.core.constants import (
    DATA_DIRECTORY_NAME,
    PENDING_UPDATES_DIRECTORY,
    PREVIOUS_SYNC_FILE,
    REMOVED_FILES_FILE,
    UPDATE_MANIFEST_FILE,
)
from modsync.core.errors import ErrorKind, ModSyncError, OperationCancelled
from modsync.core.retry import RetryPolicy
from modsync.core.types import file_map_to_dict, strip_parent_prefix, to_posix
from modsync.updater.manifest import (
    CopyFile,
    CreateDirectory,
    DecryptFile,
    DeleteFile,
    ExtractArchive,
    MoveFile,
    UpdateManifest,
    UpdateOperation,
    load_manifest,
)
from modsync.updater.telemetry import Telemetry

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FileUpdateService:
    """Moves staged files into place and removes obsolete ones."""

    def __init__(
        self,
        target_dir: Path,
        retry: RetryPolicy | None = None,
        telemetry: Telemetry | None = None,
        data_dir: Path | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            target_dir: Installation root receiving the updates.
            retry: Policy wrapping each file-system step.
            telemetry: Collector for operation counts and timings.
            data_dir: ModSync data directory. Defaults to ``target_dir/ModSync_Data``.
        """
        self._target_dir = Path(target_dir).resolve()
        self._data_dir = data_dir or self._target_dir / DATA_DIRECTORY_NAME
        self._retry = retry or RetryPolicy()
        self._telemetry = telemetry or Telemetry()

    @property
    def staging_dir(self) -> Path:
        return self._data_dir / PENDING_UPDATES_DIRECTORY

    @property
    def manifest_path(self) -> Path:
        return self._data_dir / UPDATE_MANIFEST_FILE

    @property
    def removed_files_path(self) -> Path:
        return self._data_dir / REMOVED_FILES_FILE

    @property
    def previous_sync_path(self) -> Path:
        return self._data_dir / PREVIOUS_SYNC_FILE

    # === Pending detection ===

    def pending_files(self) -> list[str]:
        """Staged files relative to the staging directory."""
        if not self.staging_dir.is_dir():
            return []
        return sorted(
            to_posix(os.path.relpath(p, self.staging_dir))
            for p in self.staging_dir.rglob("*")
            if p.is_file()
        )

    def has_pending_updates(self) -> bool:
        """Whether a manifest exists or the staging directory holds any file."""
        if self.manifest_path.is_file():
            return True
        return self.staging_dir.is_dir() and any(
            p.is_file() for p in self.staging_dir.rglob("*")
        )

    # === Helpers ===

    def _resolve(self, base: Path, relative_path: str) -> Path:
        """Resolve a relative path under base, refusing anything that escapes it."""
        if Path(relative_path).is_absolute():
            raise ModSyncError(
                ErrorKind.CONFIGURATION_INVALID,
                "Path must be relative",
                path=relative_path,
            )
        resolved = (base / relative_path).resolve()
        if resolved != base and not resolved.is_relative_to(base):
            raise ModSyncError(
                ErrorKind.CONFIGURATION_INVALID,
                "Path is outside the target directory",
                path=relative_path,
            )
        return resolved

    def _target(self, relative_path: str) -> Path:
        return self._resolve(self._target_dir, strip_parent_prefix(relative_path))

    def _staged(self, relative_path: str) -> Path:
        return self._resolve(self.staging_dir.resolve(), strip_parent_prefix(relative_path))

    def _run(self, description: str, path: Path, action: Callable[[], T]) -> T:
        try:
            return self._retry.execute(action, description)
        except OSError as e:
            raise ModSyncError(
                ErrorKind.FILE_OPERATION_FAILED,
                f"{description} failed: {e}",
                path=str(path),
            ) from e

    def _copy(self, source: Path, destination: Path) -> None:
        def copy() -> None:
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, destination)

        self._run(f"Copy {source.name}", destination, copy)

    # === Manifest application ===

    def apply_pending_updates(self, cancel_event: threading.Event | None = None) -> int:
        """Apply the manifest, or copy the staging directory when there is none.

        Args:
            cancel_event: Checked between operations.

        Returns:
            Number of operations (or legacy files) applied.

        Raises:
            OperationCancelled: If cancelled between operations.
            ModSyncError: On an invalid manifest or a failed file operation.
        """
        cancel_event = cancel_event or threading.Event()
        if self.manifest_path.is_file():
            return self._apply_manifest(cancel_event)
        return self._apply_staging(cancel_event)

    def _apply_manifest(self, cancel_event: threading.Event) -> int:
        manifest = load_manifest(self.manifest_path)
        logger.info(f"Applying {len(manifest.operations)} operations from manifest")

        for index, operation in enumerate(manifest.operations):
            if cancel_event.is_set():
                raise OperationCancelled(
                    f"Cancelled after {index} of {len(manifest.operations)} operations"
                )
            with self._telemetry.operation(operation.type_name):
                self.apply_operation(operation)

        self._write_previous_sync(manifest)
        self._cleanup_staging()
        self._run("Delete manifest", self.manifest_path, self.manifest_path.unlink)
        logger.info("All manifest operations completed")
        return len(manifest.operations)

    def _apply_staging(self, cancel_event: threading.Event) -> int:
        files = self.pending_files()
        if not files:
            logger.debug("No pending updates in staging directory")
            return 0
        logger.info(f"Found {len(files)} staged files to update")

        for index, relative in enumerate(files):
            if cancel_event.is_set():
                raise OperationCancelled(f"Cancelled after {index} of {len(files)} files")
            with self._telemetry.operation("CopyFile"):
                self._copy(self._staged(relative), self._target(relative))
            logger.debug(f"File updated: {relative}")

        self._cleanup_staging()
        return len(files)

    def apply_operation(self, operation: UpdateOperation) -> None:
        """Perform one manifest operation."""
        if isinstance(operation, CopyFile):
            self._copy(self._staged(operation.source), self._target(operation.destination))
            logger.debug(f"Copied {operation.source} -> {operation.destination}")

        elif isinstance(operation, MoveFile):
            src = self._target(operation.source)
            dst = self._target(operation.destination)

            def move() -> None:
                dst.parent.mkdir(parents=True, exist_ok=True)
                shutil.move(src, dst)

            self._run(f"Move {operation.source}", dst, move)
            logger.debug(f"Moved {operation.source} -> {operation.destination}")

        elif isinstance(operation, CreateDirectory):
            target = self._target(operation.destination)
            self._run(
                f"Create directory {operation.destination}",
                target,
                lambda: target.mkdir(parents=True, exist_ok=True),
            )

        elif isinstance(operation, DeleteFile):
            target = self._target(operation.destination)
            if not target.exists():
                logger.warning(f"File already removed: {operation.destination}")
                return
            self._run(f"Delete {operation.destination}", target, target.unlink)
            logger.debug(f"Deleted {operation.destination}")

        elif isinstance(operation, ExtractArchive):
            archive = self._staged(operation.source)
            target = self._target(operation.destination)
            self._run(
                f"Extract {operation.source}", target, lambda: self._extract(archive, target)
            )
            logger.debug(f"Extracted {operation.source} -> {operation.destination}")

        elif isinstance(operation, DecryptFile):
            raise ModSyncError(
                ErrorKind.CONFIGURATION_INVALID,
                "DecryptFile operations are not supported",
                path=operation.destination,
            )

    def _extract(self, archive: Path, destination: Path) -> None:
        destination.mkdir(parents=True, exist_ok=True)
        if zipfile.is_zipfile(archive):
            with zipfile.ZipFile(archive) as zf:
                for name in zf.namelist():
                    self._resolve(destination, name)
                zf.extractall(destination)
        elif tarfile.is_tarfile(archive):
            with tarfile.open(archive) as tf:
                for member in tf.getmembers():
                    self._resolve(destination, member.name)
                tf.extractall(destination, filter="data")
        else:
            raise ModSyncError(
                ErrorKind.CONFIGURATION_INVALID,
                "Unsupported archive format",
                path=str(archive),
            )

    def _write_previous_sync(self, manifest: UpdateManifest) -> None:
        if manifest.remote_sync_data is None:
            logger.warning("No RemoteSyncData found in manifest")
            return
        try:
            self.previous_sync_path.write_text(
                json.dumps(file_map_to_dict(manifest.remote_sync_data)), encoding="utf-8"
            )
            logger.debug(f"{PREVIOUS_SYNC_FILE} updated")
        except OSError as e:
            logger.warning(f"Failed to update {PREVIOUS_SYNC_FILE}: {e}")

    def _cleanup_staging(self) -> None:
        if self.staging_dir.exists():
            self._run(
                "Clean staging directory", self.staging_dir, lambda: shutil.rmtree(self.staging_dir)
            )

    # === Removed files ===

    def delete_removed_files(self, cancel_event: threading.Event | None = None) -> int:
        """Delete every file listed in RemovedFiles.json, then the list itself.

        A file that cannot be deleted is logged and skipped.

        Returns:
            Number of files deleted.

        Raises:
            OperationCancelled: If cancelled between files.
            ModSyncError: If the list is not a JSON array of strings.
        """
        cancel_event = cancel_event or threading.Event()
        if not self.removed_files_path.is_file():
            logger.debug("No removed files list found")
            return 0

        try:
            removed = json.loads(self.removed_files_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ModSyncError(
                ErrorKind.CONFIGURATION_INVALID,
                f"Removed files list is not valid JSON: {e}",
                path=str(self.removed_files_path),
            ) from e
        if not isinstance(removed, list) or not all(isinstance(p, str) for p in removed):
            raise ModSyncError(
                ErrorKind.CONFIGURATION_INVALID,
                "Removed files list must be an array of paths",
                path=str(self.removed_files_path),
            )

        logger.info(f"Deleting {len(removed)} removed files")
        deleted = 0
        for relative in removed:
            if cancel_event.is_set():
                raise OperationCancelled("Cancelled while deleting removed files")
            try:
                if self._delete_one(relative):
                    deleted += 1
            except (ModSyncError, OSError) as e:
                logger.error(f"Failed to delete file '{relative}': {e}")

        self._run(
            "Delete removed files list", self.removed_files_path, self.removed_files_path.unlink
        )
        return deleted

    def _delete_one(self, relative_path: str) -> bool:
        target = self._target(relative_path)
        if not target.is_file():
            logger.warning(f"File already removed: {relative_path}")
            return False

        with self._telemetry.operation("DeleteFile"):
            self._run(f"Delete {relative_path}", target, target.unlink)
        logger.debug(f"File deleted: {relative_path}")

        parent = target.parent
        if parent != self._target_dir and parent.is_dir() and not any(parent.iterdir()):
            logger.debug(f"Deleting empty directory: {parent}")
            parent.rmdir()
        return True
