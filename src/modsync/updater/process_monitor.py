"""Host process liveness polling."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

import psutil

from modsync.core.errors import OperationCancelled

logger = logging.getLogger(__name__)

POLL_INTERVAL = 1.0  # seconds


class ProcessMonitor:
    """Watches a process until it exits."""

    def __init__(self, poll_interval: float = POLL_INTERVAL) -> None:
        self._poll_interval = poll_interval

    def is_alive(self, pid: int) -> bool:
        """Check whether a process is running.

        Missing processes, zombies and non-positive pids count as not running.
        """
        if pid <= 0:
            return False
        try:
            process = psutil.Process(pid)
            return process.is_running() and process.status() != psutil.STATUS_ZOMBIE
        except (psutil.NoSuchProcess, psutil.ZombieProcess):
            return False
        except psutil.AccessDenied:
            # Exists but belongs to another user
            return True

    def wait_for_exit(
        self,
        pid: int,
        cancel_event: threading.Event,
        on_iteration: Callable[[int], None] | None = None,
    ) -> int:
        """Block until a process exits.

        Args:
            pid: Process to watch.
            cancel_event: Set to stop waiting.
            on_iteration: Called with the poll count while the process is alive.

        Returns:
            Number of polls that found the process alive.

        Raises:
            OperationCancelled: If cancel_event is set before the process exits.
        """
        logger.info(f"Waiting for process {pid} to exit...")
        iteration = 0
        while True:
            if cancel_event.is_set():
                logger.warning(f"Stopped waiting for process {pid} before it exited")
                raise OperationCancelled(f"Wait for process {pid} cancelled")
            if not self.is_alive(pid):
                logger.info(f"Process {pid} has exited")
                return iteration

            iteration += 1
            logger.info(f"Process {pid} still running (check #{iteration})")
            if on_iteration:
                on_iteration(iteration)
            if cancel_event.wait(self._poll_interval):
                logger.warning(f"Stopped waiting for process {pid} before it exited")
                raise OperationCancelled(f"Wait for process {pid} cancelled")
