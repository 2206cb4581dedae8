"""Tests for the modsync command-line interface."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from modsync.client.api import SyncClient
from modsync.client.cli import cli
from modsync.client.config import load_client_config


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def patched_client(api_client: SyncClient) -> Iterator[MagicMock]:
    """Route the CLI's SyncClient to the in-process server."""
    with patch("modsync.client.api.SyncClient") as client_cls:
        client_cls.return_value.__enter__.return_value = api_client
        client_cls.return_value.__exit__.return_value = False
        yield client_cls


class TestSyncCommand:
    """Tests for 'modsync sync'."""

    def test_not_configured(self, runner: CliRunner, tmp_path: Path) -> None:
        """Without a server URL the command fails."""
        result = runner.invoke(cli, ["sync", "--config-file", str(tmp_path / "config.json")])

        assert result.exit_code == 1
        assert "No server configured" in result.output

    def test_sync_saves_config(
        self, runner: CliRunner, tmp_path: Path, game: Path, patched_client: MagicMock
    ) -> None:
        """Options are saved and the changes are listed."""
        config_file = tmp_path / "config.json"
        (game / "BepInEx" / "plugins").mkdir(parents=True)

        result = runner.invoke(
            cli,
            [
                "sync",
                "--server-url", "http://testserver",
                "--game-root", str(game),
                "--config-file", str(config_file),
            ],
        )

        assert result.exit_code == 0, result.output
        assert "+ BepInEx/plugins/ModA/ModA.dll" in result.output
        assert "+ BepInEx/config/a.cfg" in result.output
        assert "Restart required" in result.output
        config = load_client_config(config_file)
        assert config is not None
        assert config.server_url == "http://testserver"
        assert config.game_root == game.resolve()
        patched_client.assert_called_once_with("http://testserver", timeout=180.0)

    def test_up_to_date(
        self, runner: CliRunner, tmp_path: Path, game: Path, patched_client: MagicMock
    ) -> None:
        """A second run with nothing new reports that everything is current."""
        args = [
            "sync",
            "--server-url", "http://testserver",
            "--game-root", str(game),
            "--config-file", str(tmp_path / "config.json"),
        ]
        outcome = MagicMock(has_updates=False)
        with patch("modsync.client.sync.run_synchronization_pass", return_value=outcome):
            result = runner.invoke(cli, args)

        assert result.exit_code == 0, result.output
        assert "Everything is up to date." in result.output

    def test_server_unreachable(self, runner: CliRunner, tmp_path: Path) -> None:
        """A failed health check aborts the sync."""
        with patch("modsync.client.api.SyncClient") as client_cls:
            client_cls.return_value.__enter__.return_value.health_check.return_value = False
            client_cls.return_value.__exit__.return_value = False
            result = runner.invoke(
                cli,
                [
                    "sync",
                    "--server-url", "http://127.0.0.1:9",
                    "--config-file", str(tmp_path / "config.json"),
                ],
            )

        assert result.exit_code == 1
        assert "Server unreachable" in result.output


class TestStatusCommand:
    """Tests for 'modsync status'."""

    def test_never_synced(self, runner: CliRunner, tmp_path: Path, game: Path) -> None:
        """A fresh installation has no sync state."""
        result = runner.invoke(
            cli,
            ["status", "--game-root", str(game), "--config-file", str(tmp_path / "none.json")],
        )

        assert result.exit_code == 0
        assert "Server: (not configured)" in result.output
        assert "Last sync: never" in result.output

    def test_pending_update(
        self, runner: CliRunner, tmp_path: Path, game: Path, patched_client: MagicMock
    ) -> None:
        """A staged update is reported after a sync."""
        config_file = tmp_path / "config.json"
        plugins = game / "BepInEx" / "plugins"
        plugins.mkdir(parents=True)
        (plugins / "old.dll").write_bytes(b"old")
        runner.invoke(
            cli,
            [
                "sync",
                "--server-url", "http://testserver",
                "--game-root", str(game),
                "--config-file", str(config_file),
            ],
        )

        result = runner.invoke(cli, ["status", "--config-file", str(config_file)])

        assert result.exit_code == 0, result.output
        assert "Server: http://testserver" in result.output
        assert "(sequence 2)" in result.output
        assert "Pending update: 2 operations" in result.output
        assert "Staged files: 1" in result.output
        assert "Files to remove after restart: 1" in result.output


class TestHealthCommand:
    """Tests for 'modsync health'."""

    def test_unhealthy_without_data_directory(self, runner: CliRunner, game: Path) -> None:
        """A missing data directory is unhealthy."""
        result = runner.invoke(cli, ["health", "--game-root", str(game)])

        assert result.exit_code == 1
        assert "Overall: UNHEALTHY" in result.output

    def test_healthy(self, runner: CliRunner, game: Path) -> None:
        """A prepared installation with enough disk space is healthy."""
        (game / "ModSync_Data").mkdir()

        with patch("modsync.updater.health.psutil.disk_usage") as disk_usage:
            disk_usage.return_value.free = 50 * 1024**3
            result = runner.invoke(cli, ["health", "--game-root", str(game), "--verbose"])

        assert result.exit_code == 0, result.output
        assert "Overall: HEALTHY" in result.output
        assert "has_write_permission: True" in result.output


class TestServerCommands:
    """Tests for 'modsync server ...'."""

    def test_run(self, runner: CliRunner, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """run starts uvicorn with the app factory."""
        monkeypatch.setenv("MODSYNC_ROOT", str(tmp_path))
        with patch("uvicorn.run") as uvicorn_run:
            result = runner.invoke(
                cli, ["server", "run", "--port", "7000", "--root", str(tmp_path)]
            )

        assert result.exit_code == 0, result.output
        uvicorn_run.assert_called_once_with(
            "modsync.server.app:app_factory", factory=True, host="0.0.0.0", port=7000
        )

    def test_recheck(self, runner: CliRunner, root: Path) -> None:
        """recheck records the files under the configured sync paths."""
        (root / "modsync.yaml").write_text("syncPaths:\n  - BepInEx/config\n")

        result = runner.invoke(cli, ["server", "recheck", "--root", str(root)])

        assert result.exit_code == 0, result.output
        assert "Detected 1 changes, now at sequence 1." in result.output
        assert (root / "modsync.db").exists()

    def test_recheck_invalid_config(self, runner: CliRunner, root: Path) -> None:
        """An invalid config is reported."""
        (root / "modsync.yaml").write_text("syncPaths:\n  - /absolute\n")

        result = runner.invoke(cli, ["server", "recheck", "--root", str(root)])

        assert result.exit_code == 1
        assert "configuration_invalid" in result.output

    def test_prune_missing_database(self, runner: CliRunner, tmp_path: Path) -> None:
        """Pruning needs an existing database."""
        result = runner.invoke(
            cli, ["server", "prune-changes", "--db-path", str(tmp_path / "missing.db")]
        )

        assert result.exit_code == 1
        assert "Database not found" in result.output

    def test_prune(self, runner: CliRunner, root: Path) -> None:
        """Pruning an empty changelog deletes nothing."""
        (root / "modsync.yaml").write_text("syncPaths:\n  - BepInEx/config\n")
        runner.invoke(cli, ["server", "recheck", "--root", str(root)])

        result = runner.invoke(cli, ["server", "prune-changes", "--root", str(root)])

        assert result.exit_code == 0, result.output
        assert "No entries to prune." in result.output


class TestVersion:
    """Tests for --version."""

    def test_version(self, runner: CliRunner) -> None:
        """The version option prints the package version."""
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output
