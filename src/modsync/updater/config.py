"""Updater command-line options."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

UPDATER_NAME = "modsync-updater"

USAGE = (
    f"Usage: {UPDATER_NAME} [--silent] <Process ID>\n"
    "\n"
    "Arguments:\n"
    "  <Process ID>    The process ID to wait for before applying updates\n"
    "\n"
    "Options:\n"
    "  --silent        Run without prompts, console output only"
)


class InvalidArgumentsError(ValueError):
    """Command-line arguments could not be parsed."""


@dataclass(frozen=True)
class UpdaterOptions:
    """Parsed updater arguments.

    Attributes:
        process_id: Host process to wait for.
        silent: Run without interactive output.
    """

    process_id: int
    silent: bool = False

    def __post_init__(self) -> None:
        if self.process_id <= 0:
            raise InvalidArgumentsError(
                f"Invalid process ID: {self.process_id}. Must be a positive integer."
            )

    def __str__(self) -> str:
        return f"ProcessId={self.process_id}, Silent={self.silent}"


def is_silent_requested(args: Sequence[str]) -> bool:
    """Whether ``--silent`` appears among the arguments (case-insensitive)."""
    return any(arg.lower() == "--silent" for arg in args)


def parse_arguments(args: Sequence[str]) -> UpdaterOptions:
    """Parse ``[--silent] <pid>``.

    Unknown ``--`` options are ignored and the last positional argument is the pid.

    Raises:
        InvalidArgumentsError: If no positional argument is given or the pid is
            not a positive integer.
    """
    if not args:
        raise InvalidArgumentsError("No arguments provided.")

    positional = [arg for arg in args if not arg.startswith("--")]
    if not positional:
        raise InvalidArgumentsError("Missing required process ID argument.")

    raw_pid = positional[-1]
    try:
        process_id = int(raw_pid)
    except ValueError:
        raise InvalidArgumentsError(
            f"Invalid process ID: '{raw_pid}'. Must be a valid integer."
        ) from None

    return UpdaterOptions(process_id=process_id, silent=is_silent_requested(args))
