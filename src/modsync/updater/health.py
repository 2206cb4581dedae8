"""Environment and pending-payload health checks.

This module provides:
- HealthStatus: Healthy < Degraded < Unhealthy
- HealthCheckResult: Status, description and data of one check
- check_environment: Host marker, data directory, disk space and write access
- check_pending_updates: Staged file count, size and executable payloads
- check_all / overall_status: Runs every check concurrently and combines them
"""

from __future__ import annotations

import contextlib
import logging
import time
import uuid
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Any

import psutil

from modsync.core.config import host_marker_file
from modsync.core.constants import DATA_DIRECTORY_NAME, PENDING_UPDATES_DIRECTORY

logger = logging.getLogger(__name__)

MIN_FREE_DISK_BYTES = 1024 * 1024 * 1024  # 1 GiB
SUSPICIOUS_EXTENSIONS = frozenset({".exe", ".dll", ".bat", ".cmd", ".ps1"})


class HealthStatus(IntEnum):
    """Health of a check, ordered from best to worst."""

    HEALTHY = 0
    DEGRADED = 1
    UNHEALTHY = 2


@dataclass
class HealthCheckResult:
    """Outcome of one health check."""

    status: HealthStatus
    description: str
    data: dict[str, Any] = field(default_factory=dict)
    duration: float = 0.0  # seconds
    error: Exception | None = None

    @property
    def is_healthy(self) -> bool:
        return self.status == HealthStatus.HEALTHY


def _write_probe(directory: Path) -> bool:
    probe = directory / f".modsync_write_test_{uuid.uuid4().hex}.tmp"
    try:
        probe.write_text("test")
    except OSError:
        return False
    finally:
        # Best effort, the probe may not exist
        with contextlib.suppress(OSError):
            probe.unlink(missing_ok=True)
    return True


def check_environment(
    working_dir: Path,
    marker_file: str | None = None,
) -> HealthCheckResult:
    """Check that the updater can run in a directory.

    Args:
        working_dir: Installation root the updater runs in.
        marker_file: Host executable expected there. Defaults to the configured marker.

    Returns:
        Unhealthy if the marker, data directory or write access is missing,
        Degraded on low disk space, Healthy otherwise.
    """
    start = time.monotonic()
    marker_file = marker_file or host_marker_file()
    data: dict[str, Any] = {"working_directory": str(working_dir)}

    def result(status: HealthStatus, description: str) -> HealthCheckResult:
        return HealthCheckResult(status, description, data, time.monotonic() - start)

    marker_exists = (working_dir / marker_file).is_file()
    data["host_marker_exists"] = marker_exists
    if not marker_exists:
        return result(HealthStatus.UNHEALTHY, f"{marker_file} not found in {working_dir}")

    data_dir_exists = (working_dir / DATA_DIRECTORY_NAME).is_dir()
    data["data_directory_exists"] = data_dir_exists
    if not data_dir_exists:
        return result(HealthStatus.UNHEALTHY, f"{DATA_DIRECTORY_NAME} directory not found")

    available = psutil.disk_usage(str(working_dir)).free
    data["available_disk_space_bytes"] = available
    if available < MIN_FREE_DISK_BYTES:
        return result(
            HealthStatus.DEGRADED,
            f"Low disk space: {available / (1024 ** 3):.2f} GB available",
        )

    writable = _write_probe(working_dir)
    data["has_write_permission"] = writable
    if not writable:
        return result(HealthStatus.UNHEALTHY, "No write permission in working directory")

    return result(HealthStatus.HEALTHY, "Environment is ready for updates")


def check_pending_updates(update_dir: Path) -> HealthCheckResult:
    """Inspect the staged payload.

    Args:
        update_dir: Staging directory.

    Returns:
        Degraded if any staged file is executable, Healthy otherwise.
    """
    start = time.monotonic()
    data: dict[str, Any] = {"update_directory": str(update_dir), "file_count": 0}

    def result(status: HealthStatus, description: str) -> HealthCheckResult:
        return HealthCheckResult(status, description, data, time.monotonic() - start)

    if not update_dir.is_dir():
        return result(HealthStatus.HEALTHY, "No pending updates")

    files = [p for p in update_dir.rglob("*") if p.is_file()]
    data["file_count"] = len(files)
    if not files:
        return result(HealthStatus.HEALTHY, "No pending updates")

    total_size = sum(p.stat().st_size for p in files)
    data["total_size_bytes"] = total_size

    suspicious = sorted(p.name for p in files if p.suffix.lower() in SUSPICIOUS_EXTENSIONS)
    data["suspicious_file_count"] = len(suspicious)
    if suspicious:
        data["suspicious_files"] = suspicious
        return result(
            HealthStatus.DEGRADED,
            f"Found {len(suspicious)} potentially executable files in update",
        )

    return result(
        HealthStatus.HEALTHY,
        f"{len(files)} files ready for update ({total_size / (1024 ** 2):.2f} MB)",
    )


def _guarded(
    name: str, check: Callable[..., HealthCheckResult], *args: Any
) -> HealthCheckResult:
    start = time.monotonic()
    try:
        return check(*args)
    except OSError as e:
        logger.exception(f"Health check '{name}' failed")
        return HealthCheckResult(
            HealthStatus.UNHEALTHY,
            f"{name} check failed: {e}",
            duration=time.monotonic() - start,
            error=e,
        )


def check_all(working_dir: Path, marker_file: str | None = None) -> dict[str, HealthCheckResult]:
    """Run every health check concurrently.

    Returns:
        Mapping of check name to result.
    """
    update_dir = working_dir / DATA_DIRECTORY_NAME / PENDING_UPDATES_DIRECTORY
    with ThreadPoolExecutor(max_workers=2) as pool:
        environment = pool.submit(
            _guarded, "Environment", check_environment, working_dir, marker_file
        )
        pending = pool.submit(_guarded, "PendingUpdates", check_pending_updates, update_dir)
        return {"Environment": environment.result(), "PendingUpdates": pending.result()}


def overall_status(results: dict[str, HealthCheckResult]) -> HealthStatus:
    """Worst status among the results."""
    return max((r.status for r in results.values()), default=HealthStatus.HEALTHY)
