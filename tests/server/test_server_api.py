"""Tests for FastAPI server endpoints."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path
from urllib.parse import quote

import pytest
from fastapi.testclient import TestClient

from modsync.core.constants import MODSYNC_VERSION
from modsync.server.app import create_app
from modsync.server.database import Database
from modsync.server.sync_service import SyncService


@pytest.fixture
def client(db: Database, service: SyncService) -> Generator[TestClient, None, None]:
    """Create a test client; startup runs change detection."""
    app = create_app(db, service)
    with TestClient(app) as test_client:
        yield test_client


class TestHealthEndpoints:
    """Tests for health and version endpoints."""

    def test_health_check(self, client: TestClient) -> None:
        """Health endpoint should return OK."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_version(self, client: TestClient) -> None:
        """Version endpoint returns the server version string."""
        response = client.get("/modsync/version")
        assert response.status_code == 200
        assert response.json() == MODSYNC_VERSION


class TestSyncPathEndpoints:
    """Tests for sync path and exclusion endpoints."""

    def test_sync_paths(self, client: TestClient) -> None:
        """All sync paths are listed with PascalCase keys."""
        response = client.get("/modsync/syncpaths")

        assert response.status_code == 200
        paths = {sp["Path"]: sp for sp in response.json()}
        assert set(paths) == {"BepInEx/plugins", "BepInEx/config", "user/mods"}
        assert paths["BepInEx/config"]["Silent"] is True
        assert paths["BepInEx/config"]["RestartRequired"] is False
        assert paths["user/mods"]["Enabled"] is False

    def test_exclusions(self, client: TestClient) -> None:
        """Exclusions are returned as a list of patterns."""
        response = client.get("/modsync/exclusions")
        assert response.json() == ["**/*.nosync"]


class TestHashesEndpoint:
    """Tests for /modsync/hashes."""

    def test_all_active_paths(self, client: TestClient) -> None:
        """Without a filter every active path is hashed."""
        response = client.get("/modsync/hashes")

        assert response.status_code == 200
        data = response.json()
        assert set(data) == {"BepInEx/plugins", "BepInEx/config"}
        record = data["BepInEx/plugins"]["BepInEx/plugins/ModA/ModA.dll"]
        assert record["IsDirectory"] is False
        assert len(record["Hash"]) > 32
        assert data["BepInEx/plugins"]["BepInEx/plugins/Empty"] == {
            "Hash": "",
            "IsDirectory": True,
        }

    def test_filtered(self, client: TestClient) -> None:
        """Repeated path parameters restrict the result."""
        response = client.get("/modsync/hashes", params=[("path", "BepInEx/config")])
        assert list(response.json()) == ["BepInEx/config"]


class TestChangesEndpoints:
    """Tests for the changelog endpoints."""

    def test_startup_detection(self, client: TestClient) -> None:
        """Startup records the initial files."""
        response = client.get("/modsync/sequence")
        assert response.json() == {"CurrentSequence": 2}

    def test_changes_since(self, client: TestClient) -> None:
        """Only entries after 'since' are returned."""
        response = client.get("/modsync/changes", params={"since": 1})

        data = response.json()
        assert data["CurrentSequence"] == 2
        assert [c["SequenceNumber"] for c in data["Changes"]] == [2]
        assert data["Changes"][0]["Operation"] == "Add"

    def test_changes_since_required(self, client: TestClient) -> None:
        """'since' is required and non-negative."""
        assert client.get("/modsync/changes").status_code == 422
        assert client.get("/modsync/changes", params={"since": -1}).status_code == 422

    def test_recheck(self, client: TestClient, root: Path) -> None:
        """Recheck appends newly detected files."""
        (root / "BepInEx" / "plugins" / "new.dll").write_bytes(b"new")

        response = client.post("/modsync/recheck")

        data = response.json()
        assert data["BeforeSequence"] == 2
        assert data["AfterSequence"] == 3
        assert data["Changes"][0]["FilePath"] == "BepInEx/plugins/new.dll"

    def test_snapshot(self, client: TestClient) -> None:
        """The stored snapshot is returned."""
        data = client.get("/modsync/snapshot").json()

        assert data["SequenceNumber"] == 2
        assert data["Files"]["BepInEx/config/a.cfg"]["Size"] == len("setting=1")


class TestFetchEndpoint:
    """Tests for /modsync/fetch."""

    def test_fetch_encoded_path(self, client: TestClient) -> None:
        """A path encoded as one segment is served."""
        encoded = quote("BepInEx/plugins/ModA/ModA.dll", safe="")

        response = client.get(f"/modsync/fetch/{encoded}")

        assert response.status_code == 200
        assert response.content == b"mod a"

    def test_fetch_plain_path(self, client: TestClient) -> None:
        """Unencoded slashes work too."""
        response = client.get("/modsync/fetch/BepInEx/config/a.cfg")
        assert response.content == b"setting=1"

    def test_fetch_outside_sync_paths(self, client: TestClient) -> None:
        """Paths outside the active sync paths are a 400."""
        encoded = quote("user/mods/server.js", safe="")
        assert client.get(f"/modsync/fetch/{encoded}").status_code == 400

    def test_fetch_traversal(self, client: TestClient) -> None:
        """Parent traversal out of a sync path is a 400."""
        encoded = quote("BepInEx/plugins/../../../etc/passwd", safe="")
        assert client.get(f"/modsync/fetch/{encoded}").status_code == 400

    def test_fetch_missing(self, client: TestClient) -> None:
        """A missing file inside a sync path is a 404."""
        encoded = quote("BepInEx/plugins/missing.dll", safe="")
        response = client.get(f"/modsync/fetch/{encoded}")

        assert response.status_code == 404
        assert "non-existent" in response.json()["detail"]
