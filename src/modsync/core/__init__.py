"""Core module - Shared fingerprinting, glob matching, types and config."""

from modsync.core.config import ServerConfig, SyncConfig, load_sync_config
from modsync.core.errors import ErrorKind, ModSyncError, OperationCancelled
from modsync.core.fingerprint import encode_uvarint, fingerprint_file
from modsync.core.glob import ExclusionPatterns, compile_glob, matches, matches_any
from modsync.core.retry import RetryPolicy
from modsync.core.types import (
    ChangeEntry,
    ChangeOperation,
    FileRecord,
    FileSystemSnapshot,
    SyncPath,
    SyncPathFileMap,
    active_sync_paths,
)

__all__ = [
    # Config
    "ServerConfig",
    "SyncConfig",
    "load_sync_config",
    # Errors
    "ErrorKind",
    "ModSyncError",
    "OperationCancelled",
    # Fingerprint
    "encode_uvarint",
    "fingerprint_file",
    # Glob
    "ExclusionPatterns",
    "compile_glob",
    "matches",
    "matches_any",
    # Retry
    "RetryPolicy",
    # Types
    "ChangeEntry",
    "ChangeOperation",
    "FileRecord",
    "FileSystemSnapshot",
    "SyncPath",
    "SyncPathFileMap",
    "active_sync_paths",
]
