"""Tests for host process monitoring."""

from __future__ import annotations

import os
import threading
from unittest.mock import patch

import psutil
import pytest

from modsync.core.errors import OperationCancelled
from modsync.updater.process_monitor import ProcessMonitor

# Above the Linux pid_max ceiling, so never a live process
MISSING_PID = 999_999_999


class TestIsAlive:
    """Tests for ProcessMonitor.is_alive."""

    def test_current_process(self) -> None:
        """The test process itself is alive."""
        assert ProcessMonitor().is_alive(os.getpid())

    @pytest.mark.parametrize("pid", [0, -1])
    def test_non_positive_pid(self, pid: int) -> None:
        """Non-positive pids are never alive."""
        assert not ProcessMonitor().is_alive(pid)

    def test_missing_process(self) -> None:
        """A pid with no process is not alive."""
        assert not ProcessMonitor().is_alive(MISSING_PID)

    def test_access_denied_counts_as_alive(self) -> None:
        """A process owned by another user still exists."""
        with patch(
            "modsync.updater.process_monitor.psutil.Process",
            side_effect=psutil.AccessDenied(1234),
        ):
            assert ProcessMonitor().is_alive(1234)


class TestWaitForExit:
    """Tests for ProcessMonitor.wait_for_exit."""

    def test_already_exited(self) -> None:
        """Waiting on a missing process returns without polling."""
        assert ProcessMonitor().wait_for_exit(MISSING_PID, threading.Event()) == 0

    def test_polls_until_exit(self) -> None:
        """Each poll that finds the process alive is reported."""
        monitor = ProcessMonitor(poll_interval=0.01)
        seen: list[int] = []

        with patch.object(ProcessMonitor, "is_alive", side_effect=[True, True, False]):
            polls = monitor.wait_for_exit(1234, threading.Event(), seen.append)

        assert polls == 2
        assert seen == [1, 2]

    def test_cancel_before_start(self) -> None:
        """A set event stops the wait immediately."""
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(OperationCancelled):
            ProcessMonitor().wait_for_exit(os.getpid(), cancel)

    def test_cancel_while_waiting(self) -> None:
        """Setting the event during a poll interval aborts the wait."""
        monitor = ProcessMonitor(poll_interval=5.0)
        cancel = threading.Event()

        with (
            patch.object(ProcessMonitor, "is_alive", return_value=True),
            pytest.raises(OperationCancelled),
        ):
            monitor.wait_for_exit(1234, cancel, lambda _: cancel.set())
