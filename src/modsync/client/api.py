"""HTTP client for the ModSync server API.

This module provides:
- SyncClient: HTTP client for communicating with the server
- Sync path, exclusion and hash queries
- Changelog queries for incremental sync
- File download into a local directory
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import quote

import httpx

from modsync.core.types import (
    ChangeEntry,
    FileSystemSnapshot,
    SyncPath,
    SyncPathFileMap,
    file_map_from_dict,
    to_posix,
)

logger = logging.getLogger(__name__)

DOWNLOAD_CHUNK_SIZE = 64 * 1024


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(APIError):
    """Resource not found."""


@dataclass
class ChangesResult:
    """Result of get_changes API call."""

    current_sequence: int
    changes: list[ChangeEntry]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChangesResult:
        """Create from API response dictionary."""
        return cls(
            current_sequence=data["CurrentSequence"],
            changes=[ChangeEntry.from_dict(c) for c in data.get("Changes", [])],
        )


def encode_path(relative_path: str) -> str:
    """Percent-encode a relative path as a single URL segment.

    Separators become ``%2F`` so that ``..`` components survive URL
    normalization and reach the server unchanged.
    """
    return quote(to_posix(relative_path), safe="")


def _error_detail(response: httpx.Response, default: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or default
    if isinstance(body, dict):
        return str(body.get("detail", default))
    return default


class SyncClient:
    """HTTP client for the ModSync server API."""

    def __init__(
        self,
        server_url: str,
        timeout: float = 180.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        """Initialize the sync client.

        Args:
            server_url: Base URL of the server.
            timeout: Request timeout in seconds.
            http_client: Pre-configured client to use instead of creating one.
        """
        self._server_url = server_url.rstrip("/")
        self._timeout = timeout
        self._client = http_client or httpx.Client(
            base_url=self._server_url,
            timeout=timeout,
        )

    @property
    def server_url(self) -> str:
        return self._server_url

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> SyncClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions."""
        if response.status_code == 404:
            raise NotFoundError(_error_detail(response, "Resource not found"), 404)
        if response.status_code >= 400:
            raise APIError(_error_detail(response, "Unknown error"), response.status_code)
        return response

    # === Health check ===

    def health_check(self) -> bool:
        """Check if the server is healthy.

        Returns:
            True if server is healthy.
        """
        try:
            response = self._client.get("/health")
            return response.status_code == 200
        except httpx.RequestError:
            return False

    def get_version(self) -> str:
        """Get the server's ModSync version string."""
        response = self._handle_response(self._client.get("/modsync/version"))
        return str(response.json())

    # === Sync configuration ===

    def get_sync_paths(self) -> list[SyncPath]:
        """Get every sync path configured on the server."""
        response = self._handle_response(self._client.get("/modsync/syncpaths"))
        return [SyncPath.from_dict(sp) for sp in response.json()]

    def get_exclusions(self) -> list[str]:
        """Get the server's exclusion glob patterns."""
        response = self._handle_response(self._client.get("/modsync/exclusions"))
        return [str(p) for p in response.json()]

    def get_remote_hashes(self, paths: list[str] | None = None) -> SyncPathFileMap:
        """Get fingerprints of every file under the given sync paths.

        Args:
            paths: Sync path strings to restrict to. All active paths if omitted.

        Returns:
            Mapping of sync path -> relative path -> FileRecord.
        """
        params = [("path", p) for p in paths or []]
        response = self._handle_response(self._client.get("/modsync/hashes", params=params))
        return file_map_from_dict(response.json())

    # === Change log ===

    def get_changes(self, since: int) -> ChangesResult:
        """Get changelog entries after a sequence number.

        Args:
            since: Last sequence the client has applied.

        Returns:
            ChangesResult with the current sequence and ordered entries.
        """
        response = self._handle_response(
            self._client.get("/modsync/changes", params={"since": since})
        )
        return ChangesResult.from_dict(response.json())

    def get_current_sequence(self) -> int:
        """Get the server's current changelog sequence."""
        response = self._handle_response(self._client.get("/modsync/sequence"))
        return int(response.json()["CurrentSequence"])

    def get_snapshot(self) -> FileSystemSnapshot:
        """Get the server's full stored snapshot."""
        response = self._handle_response(self._client.get("/modsync/snapshot"))
        return FileSystemSnapshot.from_dict(response.json())

    def recheck(self) -> list[ChangeEntry]:
        """Ask the server to rescan now.

        Returns:
            Changes detected by the rescan.
        """
        response = self._handle_response(self._client.post("/modsync/recheck"))
        return [ChangeEntry.from_dict(c) for c in response.json().get("Changes", [])]

    # === Downloads ===

    def download_file(self, relative_path: str, destination: Path) -> int:
        """Download a file into ``destination``, creating parent directories.

        The file is streamed to a temporary sibling and moved into place once
        complete.

        Args:
            relative_path: Path relative to the server root.
            destination: Local file path to write.

        Returns:
            Number of bytes written.

        Raises:
            NotFoundError: If the file does not exist on the server.
            APIError: If the server rejects the path.
        """
        destination.parent.mkdir(parents=True, exist_ok=True)
        partial = destination.with_name(destination.name + ".part")
        written = 0
        url = f"/modsync/fetch/{encode_path(relative_path)}"
        with self._client.stream("GET", url) as response:
            if response.status_code >= 400:
                response.read()
                self._handle_response(response)
            try:
                with open(partial, "wb") as f:
                    for chunk in response.iter_bytes(DOWNLOAD_CHUNK_SIZE):
                        f.write(chunk)
                        written += len(chunk)
                partial.replace(destination)
            except BaseException:
                partial.unlink(missing_ok=True)
                raise
        logger.debug(f"Downloaded {relative_path} ({written} bytes)")
        return written
