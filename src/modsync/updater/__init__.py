"""Updater - Applies staged updates once the host process has exited."""

from modsync.updater.config import UpdaterOptions, parse_arguments
from modsync.updater.coordinator import ExitCode, UpdateCoordinator
from modsync.updater.file_update import FileUpdateService
from modsync.updater.health import (
    HealthCheckResult,
    HealthStatus,
    check_all,
    check_environment,
    check_pending_updates,
    overall_status,
)
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
    save_manifest,
)
from modsync.updater.process_monitor import ProcessMonitor
from modsync.updater.telemetry import Telemetry

__all__ = [
    # Options
    "UpdaterOptions",
    "parse_arguments",
    # Coordinator
    "ExitCode",
    "UpdateCoordinator",
    "FileUpdateService",
    "ProcessMonitor",
    "Telemetry",
    # Health
    "HealthCheckResult",
    "HealthStatus",
    "check_all",
    "check_environment",
    "check_pending_updates",
    "overall_status",
    # Manifest
    "CopyFile",
    "CreateDirectory",
    "DecryptFile",
    "DeleteFile",
    "ExtractArchive",
    "MoveFile",
    "UpdateManifest",
    "UpdateOperation",
    "load_manifest",
    "save_manifest",
]
