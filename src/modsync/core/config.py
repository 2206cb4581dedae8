"""Shared configuration classes for modsync.

This module provides:
- ServerConfig: Connection settings used by the HTTP client
- SyncConfig: Sync paths and exclusions served by the authority
- load_sync_config: Load and validate a YAML/JSON sync configuration
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from modsync.core.constants import DEFAULT_HOST_MARKER_FILE, UPDATER_SYNC_PATH
from modsync.core.errors import ErrorKind, ModSyncError
from modsync.core.types import SyncPath, active_sync_paths

logger = logging.getLogger(__name__)

CONFIG_FILE_NAMES = ("modsync.yaml", "modsync.yml", "modsync.json")

DEFAULT_YAML_CONFIG = """\
# ModSync configuration
# Sync paths define what files/folders are synchronized from server to client.

syncPaths:
  # Simple form (enabled=true, enforced=false, restartRequired=true)
  - BepInEx/plugins
  - BepInEx/patchers
  - BepInEx/config

  # Full form
  - name: "(Optional) Server mods"
    path: user/mods
    enabled: false           # Set to true to sync this path
    enforced: false          # If true, re-syncs files deleted/modified by client
    silent: false            # If true, updates without showing UI
    restartRequired: false   # If true, client must restart after update

# Glob patterns that are never synced
exclusions:
  - BepInEx/plugins/spt
  - "**/*.nosync"
  - "**/*.nosync.txt"
  - user/mods/**/.git
  - user/mods/**/node_modules
  - "**/*:Zone.Identifier"
"""

BUILTIN_SYNC_PATHS = [
    SyncPath(
        path=UPDATER_SYNC_PATH,
        name="(Builtin) ModSync Updater",
        enabled=True,
        enforced=True,
        silent=True,
        restart_required=False,
    ),
]


@dataclass
class ServerConfig:
    """Configuration for connecting to a ModSync server.

    Attributes:
        server_url: Base URL of the server (e.g., "http://127.0.0.1:6969").
        timeout: Request timeout in seconds.
        verify_ssl: Whether to verify SSL certificates (default True).
    """

    server_url: str
    timeout: float = 180.0
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Normalize server URL."""
        self.server_url = self.server_url.rstrip("/")

    @property
    def is_secure(self) -> bool:
        """Check if using HTTPS."""
        return self.server_url.startswith("https://")


@dataclass
class SyncConfig:
    """Sync paths and exclusions served by the authority.

    Attributes:
        sync_paths: All configured paths, longest path first.
        exclusions: Glob patterns excluded from synchronization.
    """

    sync_paths: list[SyncPath] = field(default_factory=list)
    exclusions: list[str] = field(default_factory=list)

    @property
    def active_paths(self) -> list[SyncPath]:
        """Sync paths that are enabled or enforced."""
        return active_sync_paths(self.sync_paths)


def find_config_file(directory: Path) -> Path | None:
    """Find the first existing config file in a directory."""
    for name in CONFIG_FILE_NAMES:
        candidate = directory / name
        if candidate.exists():
            return candidate
    return None


def _parse_sync_path(item: Any, index: int) -> SyncPath:
    if isinstance(item, str):
        return SyncPath(path=item)
    if isinstance(item, dict):
        path = item.get("path")
        if not path:
            raise ModSyncError(
                ErrorKind.CONFIGURATION_INVALID,
                "Sync path object is missing 'path'",
                config_key=f"syncPaths[{index}]",
            )
        return SyncPath(
            path=str(path),
            name=str(item.get("name") or path),
            enabled=bool(item.get("enabled", True)),
            enforced=bool(item.get("enforced", False)),
            silent=bool(item.get("silent", False)),
            restart_required=bool(item.get("restartRequired", True)),
        )
    raise ModSyncError(
        ErrorKind.CONFIGURATION_INVALID,
        f"Sync path entry must be a string or mapping, got {type(item).__name__}",
        config_key=f"syncPaths[{index}]",
    )


def parse_sync_config(raw: dict[str, Any] | None) -> SyncConfig:
    """Build a SyncConfig from a parsed YAML/JSON document (no validation)."""
    raw = raw or {}
    sync_paths_raw = raw.get("syncPaths") or []
    exclusions_raw = raw.get("exclusions") or []

    if not isinstance(sync_paths_raw, list):
        raise ModSyncError(
            ErrorKind.CONFIGURATION_INVALID,
            "'syncPaths' is not a list",
            config_key="syncPaths",
        )
    if not isinstance(exclusions_raw, list):
        raise ModSyncError(
            ErrorKind.CONFIGURATION_INVALID,
            "'exclusions' is not a list",
            config_key="exclusions",
        )

    return SyncConfig(
        sync_paths=[_parse_sync_path(item, i) for i, item in enumerate(sync_paths_raw)],
        exclusions=[str(pattern) for pattern in exclusions_raw],
    )


def validate_sync_config(config: SyncConfig, root: Path) -> None:
    """Validate user-configured sync paths.

    Args:
        config: Parsed configuration.
        root: Server root the sync paths are relative to.

    Raises:
        ModSyncError: CONFIGURATION_INVALID with the offending key.
    """
    root = root.resolve()
    seen: set[str] = set()

    for index, sync_path in enumerate(config.sync_paths):
        key = f"syncPaths[{index}]"
        path = sync_path.path
        if not path:
            raise ModSyncError(
                ErrorKind.CONFIGURATION_INVALID, "Sync path is empty", config_key=key
            )
        if Path(path).is_absolute() or path.startswith("/"):
            raise ModSyncError(
                ErrorKind.CONFIGURATION_INVALID,
                f"Sync paths must be relative to the server root: '{path}'",
                config_key=key,
            )
        full_path = (root / path).resolve()
        if not full_path.is_relative_to(root):
            raise ModSyncError(
                ErrorKind.CONFIGURATION_INVALID,
                f"Sync paths must be within the server root: '{path}'",
                config_key=key,
            )
        if path in seen:
            raise ModSyncError(
                ErrorKind.CONFIGURATION_INVALID,
                f"Sync paths must be unique: duplicate '{path}'",
                config_key=key,
            )
        seen.add(path)
        if path in config.exclusions:
            raise ModSyncError(
                ErrorKind.CONFIGURATION_INVALID,
                f"'{path}' is a sync path and also listed in exclusions",
                config_key=key,
            )


def load_sync_config(config_path: Path, root: Path | None = None) -> SyncConfig:
    """Load, validate and finalize the authority's sync configuration.

    A default YAML config is written when the file does not exist.
    Built-in sync paths are prepended and all paths are ordered longest first,
    so the most specific path claims a file.

    Args:
        config_path: Path to a .yaml/.yml/.json config file.
        root: Server root (defaults to the config file's directory).

    Returns:
        Validated SyncConfig.

    Raises:
        ModSyncError: If the file is malformed or fails validation.
    """
    config_path = Path(config_path)
    root = Path(root) if root else config_path.parent

    if not config_path.exists():
        logger.info("Config %s not found, writing defaults", config_path)
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(DEFAULT_YAML_CONFIG, encoding="utf-8")

    text = config_path.read_text(encoding="utf-8")
    suffix = config_path.suffix.lower()
    try:
        if suffix in (".yaml", ".yml"):
            raw = yaml.safe_load(text)
        elif suffix == ".json":
            raw = json.loads(text)
        else:
            raise ModSyncError(
                ErrorKind.CONFIGURATION_INVALID,
                f"Unsupported config format: {suffix}",
                path=str(config_path),
            )
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ModSyncError(
            ErrorKind.CONFIGURATION_INVALID,
            f"Cannot parse config: {e}",
            path=str(config_path),
        ) from e

    if raw is not None and not isinstance(raw, dict):
        raise ModSyncError(
            ErrorKind.CONFIGURATION_INVALID,
            "Config root must be a mapping",
            path=str(config_path),
        )

    config = parse_sync_config(raw)
    validate_sync_config(config, root)

    sync_paths = list(BUILTIN_SYNC_PATHS) + config.sync_paths
    sync_paths.sort(key=lambda sp: len(sp.path), reverse=True)

    logger.info(
        "Loaded %d sync paths (%d active) and %d exclusions from %s",
        len(sync_paths),
        len(active_sync_paths(sync_paths)),
        len(config.exclusions),
        config_path,
    )
    return SyncConfig(sync_paths=sync_paths, exclusions=config.exclusions)


def host_marker_file() -> str:
    """Host application marker expected in the updater's working directory."""
    return os.environ.get("MODSYNC_HOST_MARKER", DEFAULT_HOST_MARKER_FILE)
