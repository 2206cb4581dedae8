"""Sync path, hash and file download API routes."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import FileResponse

from modsync.server.api.deps import get_sync_service
from modsync.server.schemas import (
    FileRecordResponse,
    SyncPathResponse,
    record_to_response,
    sync_path_to_response,
)
from modsync.server.sync_service import PathNotAllowedError, SyncService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/modsync", tags=["files"])


@router.get("/syncpaths", response_model=list[SyncPathResponse])
def list_sync_paths(
    service: SyncService = Depends(get_sync_service),
) -> list[SyncPathResponse]:
    """List all configured sync paths (active or not)."""
    return [sync_path_to_response(sp) for sp in service.config.sync_paths]


@router.get("/exclusions")
def list_exclusions(
    service: SyncService = Depends(get_sync_service),
) -> list[str]:
    """List the glob patterns excluded from synchronization."""
    return list(service.config.exclusions)


@router.get("/hashes", response_model=dict[str, dict[str, FileRecordResponse]])
def get_hashes(
    path: list[str] | None = Query(
        default=None,
        description="Sync paths to hash. Defaults to every active sync path.",
    ),
    service: SyncService = Depends(get_sync_service),
) -> dict[str, dict[str, FileRecordResponse]]:
    """Fingerprint files under the active sync paths.

    Returns:
        Mapping of sync path -> relative file path -> fingerprint record.
    """
    if path:
        logger.debug("Client requested %d specific paths", len(path))
    hashes = service.hash_sync_paths(path)
    for sync_path, files in hashes.items():
        logger.debug("Path '%s' has %d entries", sync_path, len(files))
    return {
        sync_path: {rel: record_to_response(record) for rel, record in files.items()}
        for sync_path, files in hashes.items()
    }


@router.get("/fetch/{file_path:path}")
def fetch_file(
    file_path: str,
    request: Request,
    service: SyncService = Depends(get_sync_service),
) -> FileResponse:
    """Download a file that lies inside an active sync path.

    Raises:
        HTTPException: 400 if the path is outside the sync paths, 404 if missing.
    """
    try:
        target = service.sanitize_download_path(file_path)
    except PathNotAllowedError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    if not target.is_file():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Attempt to access non-existent path {file_path}",
        )

    client_host = request.client.host if request.client else "unknown"
    logger.info(
        "Serving file '%s' (%d bytes) to %s", file_path, target.stat().st_size, client_host
    )
    return FileResponse(target)
