"""Command-line entry point of the updater.

Usage:
    modsync-updater [--silent] <Process ID>

Run from the installation root after the host has written an update
manifest. The process exit status is an ExitCode.
"""

from __future__ import annotations

import logging
import sys
import threading
from pathlib import Path

import click

from modsync.core.constants import DATA_DIRECTORY_NAME, UPDATER_LOG_FILE
from modsync.core.log import setup_logging
from modsync.core.retry import RetryPolicy
from modsync.updater.config import (
    USAGE,
    InvalidArgumentsError,
    is_silent_requested,
    parse_arguments,
)
from modsync.updater.coordinator import ExitCode, UpdateCoordinator
from modsync.updater.file_update import FileUpdateService
from modsync.updater.process_monitor import ProcessMonitor
from modsync.updater.telemetry import Telemetry
from modsync.updater.ui import ConsoleUserInterface

logger = logging.getLogger(__name__)


def run_updater(args: tuple[str, ...], working_dir: Path) -> ExitCode:
    """Parse arguments, wire the components and run the coordinator."""
    ui = ConsoleUserInterface()
    try:
        options = parse_arguments(args)
    except InvalidArgumentsError as e:
        click.echo(f"Invalid arguments: {e}\n")
        click.echo(USAGE)
        if not is_silent_requested(args):
            ui.show_warning(str(e), "Invalid Arguments")
        return ExitCode.INVALID_ARGUMENTS

    data_dir = working_dir / DATA_DIRECTORY_NAME
    # Do not create the data directory just to hold the log
    setup_logging(data_dir / UPDATER_LOG_FILE if data_dir.is_dir() else None)

    cancel_event = threading.Event()
    telemetry = Telemetry()
    coordinator = UpdateCoordinator(
        options=options,
        working_dir=working_dir,
        file_service=FileUpdateService(
            working_dir, RetryPolicy(cancel_event=cancel_event), telemetry
        ),
        process_monitor=ProcessMonitor(),
        ui=ui,
        telemetry=telemetry,
        cancel_event=cancel_event,
    )
    exit_code = coordinator.execute()
    logger.info(str(telemetry.summary()))
    logger.info(f"Updater exiting with {exit_code.name} ({exit_code.value})")
    return exit_code


@click.command(
    context_settings={"ignore_unknown_options": True, "help_option_names": []},
)
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
def updater(args: tuple[str, ...]) -> None:
    """Apply pending ModSync updates once the game has exited."""
    sys.exit(int(run_updater(args, Path.cwd())))


def main() -> None:
    """Entry point for the modsync-updater script."""
    updater()
