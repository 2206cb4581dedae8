"""Logging setup shared by the server and the updater."""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(
    log_path: Path | None,
    level: int = logging.INFO,
    capture: Iterable[str] = (),
) -> None:
    """Configure logging to output to stdout and, optionally, a file.

    Args:
        log_path: Path to the log file, or None for stdout only.
        level: Level for the modsync logger.
        capture: Other logger names whose records also go to the file.
    """
    formatter = logging.Formatter(LOG_FORMAT)

    # Root logger for modsync
    root_logger = logging.getLogger("modsync")
    root_logger.setLevel(level)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    if log_path is None:
        return

    log_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    for name in capture:
        logging.getLogger(name).addHandler(file_handler)
