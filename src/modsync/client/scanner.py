"""Local fingerprinting of the sync paths under the installation root."""

from __future__ import annotations

import logging
import time
from pathlib import Path

from modsync.core.fingerprint import fingerprint_file
from modsync.core.glob import ExclusionPatterns
from modsync.core.scan import walk_sync_path
from modsync.core.types import FileRecord, SyncPath, SyncPathFileMap

logger = logging.getLogger(__name__)


def hash_local_files(
    base_path: Path,
    sync_paths: list[SyncPath],
    remote_exclusions: list[str],
    local_exclusions: list[str] | None = None,
) -> SyncPathFileMap:
    """Fingerprint every local file under the active sync paths.

    Local exclusions never apply to enforced paths. A file reachable from
    several sync paths is reported once, under the first path listed.

    Args:
        base_path: Installation root.
        sync_paths: Sync paths in server order (longest first).
        remote_exclusions: Patterns from the server.
        local_exclusions: Additional user patterns.

    Returns:
        Mapping of sync path -> relative path -> FileRecord.
    """
    start = time.monotonic()
    shared = ExclusionPatterns(remote_exclusions)
    with_local = ExclusionPatterns([*remote_exclusions, *(local_exclusions or [])])

    seen: set[str] = set()
    result: SyncPathFileMap = {}
    for sync_path in sync_paths:
        if not sync_path.is_active:
            continue
        exclusions = shared if sync_path.enforced else with_local
        files: dict[str, FileRecord] = {}
        for rel, is_dir in walk_sync_path(base_path, sync_path.path, exclusions).items():
            if rel in seen:
                continue
            seen.add(rel)
            if is_dir:
                files[rel] = FileRecord.directory()
            else:
                files[rel] = FileRecord(fingerprint=fingerprint_file(base_path / rel))
        result[sync_path.path] = files

    logger.debug(f"Hashed {len(seen)} local entries in {(time.monotonic() - start) * 1000:.0f}ms")
    return result
