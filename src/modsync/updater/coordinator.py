"""Orchestrates one updater run.

Sequence:
1. Validate the environment (host marker and data directory)
2. Return early when nothing is pending
3. Wait for the host process to exit
4. Apply the update manifest (or the legacy staging directory)
5. Delete the files listed in RemovedFiles.json

Every outcome maps to an ExitCode.
"""

from __future__ import annotations

import logging
import threading
from enum import IntEnum
from pathlib import Path

from modsync.core.config import host_marker_file
from modsync.core.constants import DATA_DIRECTORY_NAME
from modsync.core.errors import OperationCancelled
from modsync.updater.config import UpdaterOptions
from modsync.updater.file_update import FileUpdateService
from modsync.updater.health import HealthStatus, check_pending_updates
from modsync.updater.process_monitor import ProcessMonitor
from modsync.updater.telemetry import Telemetry
from modsync.updater.ui import ProgressReporter, UserInterface

logger = logging.getLogger(__name__)


class ExitCode(IntEnum):
    """Process exit status of the updater."""

    SUCCESS = 0
    INVALID_ARGUMENTS = 1
    ENVIRONMENT_VALIDATION_FAILED = 2
    UPDATE_FAILED = 3
    USER_CANCELLED = 4
    UNEXPECTED_ERROR = 99


class UpdateCoordinator:
    """Runs the updater state machine."""

    def __init__(
        self,
        options: UpdaterOptions,
        working_dir: Path,
        file_service: FileUpdateService,
        process_monitor: ProcessMonitor,
        ui: UserInterface,
        telemetry: Telemetry,
        cancel_event: threading.Event | None = None,
        marker_file: str | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            options: Parsed command-line options.
            working_dir: Installation root the updater runs in.
            file_service: Applies staged updates.
            process_monitor: Waits for the host to exit.
            ui: Front end for interactive runs.
            telemetry: Collector shared with the file service.
            cancel_event: Set to cancel the run.
            marker_file: Host executable expected in working_dir.
        """
        self._options = options
        self._working_dir = working_dir
        self._files = file_service
        self._monitor = process_monitor
        self._ui = ui
        self._telemetry = telemetry
        self._cancel_event = cancel_event or threading.Event()
        self._marker_file = marker_file or host_marker_file()

    def execute(self) -> ExitCode:
        """Run the update and return the exit status."""
        try:
            logger.info("Starting ModSync updater")
            logger.info(f"Mode: {'silent' if self._options.silent else 'interactive'}")
            logger.info(f"Waiting on process: {self._options.process_id}")

            if not self._validate_environment():
                return ExitCode.ENVIRONMENT_VALIDATION_FAILED

            if not self._files.has_pending_updates():
                logger.info("No pending updates, nothing to do")
                return ExitCode.SUCCESS

            self._log_pending_health()
            if self._options.silent:
                return self._execute_silent()
            return self._execute_interactive()
        except Exception:
            logger.exception("Unexpected error while updating")
            return ExitCode.UNEXPECTED_ERROR

    def _fail_validation(self, message: str) -> bool:
        logger.error(message)
        if not self._options.silent:
            self._ui.show_error(message, "Environment Validation Failed")
        return False

    def _validate_environment(self) -> bool:
        if not (self._working_dir / self._marker_file).is_file():
            return self._fail_validation(
                f"{self._marker_file} not found in {self._working_dir}. "
                "The updater must run from the game directory."
            )
        if not (self._working_dir / DATA_DIRECTORY_NAME).is_dir():
            return self._fail_validation(
                f"{DATA_DIRECTORY_NAME} directory not found in {self._working_dir}."
            )
        logger.info("Environment validated")
        return True

    def _log_pending_health(self) -> None:
        result = check_pending_updates(self._files.staging_dir)
        if result.status != HealthStatus.HEALTHY:
            logger.warning(f"Pending updates: {result.description}")
        else:
            logger.info(f"Pending updates: {result.description}")

    def _run_update(self, report: ProgressReporter | None = None) -> None:
        pid = self._options.process_id

        def on_iteration(iteration: int) -> None:
            if report:
                report(f"Waiting for the game to close ({iteration}s)...")

        with self._telemetry.operation("WaitForExit"):
            self._monitor.wait_for_exit(pid, self._cancel_event, on_iteration)

        if report:
            report("Applying updates...")
        with self._telemetry.operation("ApplyUpdates"):
            applied = self._files.apply_pending_updates(self._cancel_event)
        self._telemetry.record_metric("operations_applied", applied)

        if report:
            report("Removing deleted files...")
        with self._telemetry.operation("DeleteRemovedFiles"):
            deleted = self._files.delete_removed_files(self._cancel_event)
        self._telemetry.record_metric("files_deleted", deleted)

        logger.info(f"Update complete: {applied} operations applied, {deleted} files removed")
        if report:
            report("Update complete.")

    def _execute_silent(self) -> ExitCode:
        try:
            self._run_update()
            return ExitCode.SUCCESS
        except Exception:
            logger.exception("Silent update failed")
            return ExitCode.UPDATE_FAILED

    def _execute_interactive(self) -> ExitCode:
        try:
            self._ui.run_with_progress(self._run_update, self._cancel_event)
            return ExitCode.SUCCESS
        except OperationCancelled as e:
            logger.warning(f"Update cancelled by user: {e}")
            return ExitCode.USER_CANCELLED
        except Exception as e:
            logger.exception("Update failed")
            self._ui.show_error(str(e), "Update Failed")
            return ExitCode.UPDATE_FAILED
