"""Shared fixtures: a server root with a small mod tree and its services."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from modsync.client.api import SyncClient
from modsync.core.config import SyncConfig
from modsync.core.constants import DEFAULT_HOST_MARKER_FILE
from modsync.core.types import SyncPath
from modsync.server.app import create_app
from modsync.server.database import Database
from modsync.server.sync_service import SyncService


@pytest.fixture
def root(tmp_path: Path) -> Path:
    """Server root with a small mod tree."""
    root = tmp_path / "root"
    plugins = root / "BepInEx" / "plugins"
    (plugins / "ModA").mkdir(parents=True)
    (plugins / "ModA" / "ModA.dll").write_bytes(b"mod a")
    (plugins / "Empty").mkdir()
    (plugins / "skip.nosync").write_text("ignored")
    (root / "BepInEx" / "config").mkdir()
    (root / "BepInEx" / "config" / "a.cfg").write_text("setting=1")
    (root / "user" / "mods").mkdir(parents=True)
    (root / "user" / "mods" / "server.js").write_text("x")
    return root


@pytest.fixture
def sync_config() -> SyncConfig:
    """Config with one disabled path, ordered longest first."""
    return SyncConfig(
        sync_paths=[
            SyncPath(path="BepInEx/plugins"),
            SyncPath(path="BepInEx/config", silent=True, restart_required=False),
            SyncPath(path="user/mods", enabled=False),
        ],
        exclusions=["**/*.nosync"],
    )


@pytest.fixture
def db(tmp_path: Path) -> Generator[Database, None, None]:
    """Create a test database."""
    database = Database(tmp_path / "test.db")
    yield database
    database.close()


@pytest.fixture
def service(root: Path, sync_config: SyncConfig, db: Database) -> SyncService:
    """Sync service over the test root."""
    return SyncService(root, sync_config, db, hash_workers=2)


@pytest.fixture
def game(tmp_path: Path) -> Path:
    """Client installation root with the host marker."""
    game = tmp_path / "game"
    game.mkdir()
    (game / DEFAULT_HOST_MARKER_FILE).write_bytes(b"MZ")
    return game


@pytest.fixture
def api_client(db: Database, service: SyncService) -> Generator[SyncClient, None, None]:
    """SyncClient talking to an in-process server; startup runs change detection."""
    app = create_app(db, service)
    with TestClient(app) as test_client:
        yield SyncClient("http://testserver", http_client=test_client)
