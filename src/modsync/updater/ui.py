"""User-facing output for interactive updater runs.

This module provides:
- UserInterface: Abstract interface used by the coordinator
- ConsoleUserInterface: click-based terminal implementation where Ctrl+C
  requests cancellation
"""

from __future__ import annotations

import signal
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from types import FrameType

import click

# Receives human-readable progress messages
ProgressReporter = Callable[[str], None]


class UserInterface(ABC):
    """What the coordinator needs from a front end."""

    @abstractmethod
    def show_error(self, message: str, title: str = "Error") -> None:
        """Show an error to the user."""

    @abstractmethod
    def show_warning(self, message: str, title: str = "Warning") -> None:
        """Show a warning to the user."""

    @abstractmethod
    def run_with_progress(
        self,
        task: Callable[[ProgressReporter], None],
        cancel_event: threading.Event,
    ) -> None:
        """Run the update task while displaying its progress.

        The implementation sets ``cancel_event`` when the user asks to cancel.
        Exceptions raised by the task propagate to the caller.
        """


class ConsoleUserInterface(UserInterface):
    """Terminal front end."""

    def show_error(self, message: str, title: str = "Error") -> None:
        click.echo(click.style(f"{title}: ", fg="red", bold=True) + message, err=True)

    def show_warning(self, message: str, title: str = "Warning") -> None:
        click.echo(click.style(f"{title}: ", fg="yellow", bold=True) + message, err=True)

    def report(self, message: str) -> None:
        click.echo(message)

    def run_with_progress(
        self,
        task: Callable[[ProgressReporter], None],
        cancel_event: threading.Event,
    ) -> None:
        def on_interrupt(signum: int, frame: FrameType | None) -> None:
            click.echo("\nCancelling update...", err=True)
            cancel_event.set()

        # Signal handlers can only be installed from the main thread
        in_main_thread = threading.current_thread() is threading.main_thread()
        previous = signal.signal(signal.SIGINT, on_interrupt) if in_main_thread else None
        try:
            click.echo("Press Ctrl+C to cancel.")
            task(self.report)
        finally:
            if in_main_thread:
                signal.signal(signal.SIGINT, previous)
