"""Directory walking shared by the client scanner and the server.

Entries are keyed by their path relative to the installation root in
forward-slash form. Empty directories are reported as directory entries so
they can be recreated on the other side.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from modsync.core.glob import ExclusionPatterns
from modsync.core.types import to_posix

logger = logging.getLogger(__name__)


def relative_key(path: Path, root: Path) -> str:
    """Key of an absolute path relative to root, in forward-slash form."""
    return to_posix(os.path.relpath(path, root))


def walk_sync_path(
    root: Path,
    sync_path: str,
    exclusions: ExclusionPatterns,
) -> dict[str, bool]:
    """List files and empty directories under a sync path.

    Excluded directories are not descended into.

    Args:
        root: Installation root the sync path is relative to.
        sync_path: Sync path string (may contain ``..``).
        exclusions: Patterns matched against root-relative keys.

    Returns:
        Mapping of root-relative key to is_directory.
    """
    base = root / sync_path
    if base.is_file():
        key = relative_key(base, root)
        return {} if exclusions.is_excluded(key) else {key: False}
    if not base.is_dir():
        logger.debug("Sync path '%s' does not exist under %s", sync_path, root)
        return {}

    entries: dict[str, bool] = {}
    for dirpath, dirnames, filenames in os.walk(base):
        current = Path(dirpath)
        is_empty = not dirnames and not filenames
        # Prune in place so os.walk skips excluded directories
        dirnames[:] = sorted(
            d for d in dirnames if not exclusions.is_excluded(relative_key(current / d, root))
        )
        kept_files = [
            f for f in sorted(filenames)
            if not exclusions.is_excluded(relative_key(current / f, root))
        ]
        for name in kept_files:
            entries[relative_key(current / name, root)] = False
        if current != base and is_empty:
            entries[relative_key(current, root)] = True
    return entries
