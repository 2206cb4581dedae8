"""Fixed names and thresholds shared by the client, server and updater."""

from __future__ import annotations

# Data directory layout (relative to the working directory of the host)
DATA_DIRECTORY_NAME = "ModSync_Data"
PENDING_UPDATES_DIRECTORY = "PendingUpdates"
REMOVED_FILES_FILE = "RemovedFiles.json"
UPDATE_MANIFEST_FILE = "UpdateManifest.json"
PREVIOUS_SYNC_FILE = "PreviousSync.json"
SYNC_STATE_FILE = "SyncState.json"
UPDATER_LOG_FILE = "Updater.log"

# Built-in sync path that carries the updater itself
UPDATER_SYNC_PATH = f"{DATA_DIRECTORY_NAME}/Updater"

# Host application marker expected in the updater's working directory
DEFAULT_HOST_MARKER_FILE = "EscapeFromTarkov.exe"

# Fingerprint sampling
SAMPLE_THRESHOLD = 10 * 1024 * 1024  # 10 MiB
SAMPLE_SIZE = 32 * 1024  # 32 KiB

# Server changelog retention
CHANGELOG_RETENTION_DAYS = 30

MODSYNC_VERSION = "0.1.0"
