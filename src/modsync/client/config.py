"""Client configuration.

This module provides:
- ClientConfig: Settings for a synchronization pass
- load_client_config / save_client_config: JSON persistence under ~/.modsync
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any

from modsync.core.types import SyncPath, to_posix

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 180.0


def get_config_dir() -> Path:
    """Get the configuration directory for ModSync.

    Returns:
        Path to ~/.modsync or equivalent.
    """
    return Path.home() / ".modsync"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


@dataclass
class ClientConfig:
    """Settings for synchronizing one installation.

    Attributes:
        server_url: Base URL of the server (e.g., "http://127.0.0.1:6969").
        game_root: Installation root the sync paths are relative to.
        delete_removed_files: Delete local files the server no longer has.
        headless: Never prompt, apply everything silently.
        timeout: HTTP timeout in seconds.
        local_exclusions: Extra glob patterns ignored locally (not for enforced paths).
        enabled_overrides: Per sync path user choice to enable or disable it.
    """

    server_url: str
    game_root: Path = field(default_factory=Path.cwd)
    delete_removed_files: bool = True
    headless: bool = False
    timeout: float = DEFAULT_TIMEOUT
    local_exclusions: list[str] = field(default_factory=list)
    enabled_overrides: dict[str, bool] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Normalize server URL and override keys."""
        self.server_url = self.server_url.rstrip("/")
        self.game_root = Path(self.game_root)
        self.enabled_overrides = {
            to_posix(path): enabled for path, enabled in self.enabled_overrides.items()
        }

    def apply_overrides(self, sync_path: SyncPath) -> SyncPath:
        """Apply the user's enabled choice to a server sync path.

        Enforced paths stay active regardless of the override.
        """
        enabled = self.enabled_overrides.get(sync_path.path)
        if enabled is None or enabled == sync_path.enabled:
            return sync_path
        return replace(sync_path, enabled=enabled)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["game_root"] = str(self.game_root)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClientConfig:
        """Create from a config file dictionary."""
        return cls(
            server_url=data["server_url"],
            game_root=Path(data.get("game_root") or Path.cwd()),
            delete_removed_files=data.get("delete_removed_files", True),
            headless=data.get("headless", False),
            timeout=data.get("timeout", DEFAULT_TIMEOUT),
            local_exclusions=list(data.get("local_exclusions", [])),
            enabled_overrides=dict(data.get("enabled_overrides", {})),
        )


def load_client_config(config_file: Path | None = None) -> ClientConfig | None:
    """Load configuration from config file.

    Returns:
        The stored configuration, or None if nothing is configured yet.
    """
    config_file = config_file or get_config_file()
    if not config_file.exists():
        return None
    data = json.loads(config_file.read_text())
    if not data.get("server_url"):
        return None
    return ClientConfig.from_dict(data)


def save_client_config(config: ClientConfig, config_file: Path | None = None) -> None:
    """Save configuration to config file."""
    config_file = config_file or get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config.to_dict(), indent=2))
    logger.debug(f"Saved client config to {config_file}")
