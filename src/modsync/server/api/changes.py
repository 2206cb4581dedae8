"""Change log API routes for incremental sync.

Clients that know their last applied sequence poll ``/modsync/changes``
instead of re-hashing everything; clients without prior state use
``/modsync/hashes`` or ``/modsync/snapshot``.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from modsync.server.api.deps import get_db, get_sync_service
from modsync.server.database import Database
from modsync.server.schemas import (
    ChangesResponse,
    RecheckResponse,
    SequenceResponse,
    SnapshotResponse,
    change_to_response,
    snapshot_to_response,
)
from modsync.server.sync_service import SyncService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/modsync", tags=["changes"])


@router.get("/changes", response_model=ChangesResponse)
def get_changes(
    since: int = Query(
        ...,
        ge=0,
        description="Last sequence number the client has applied.",
    ),
    db: Database = Depends(get_db),
) -> ChangesResponse:
    """Get changes with a sequence number greater than ``since``.

    Returns:
        ChangesResponse with the current sequence and the ordered tail.
    """
    changes = db.get_changes_since(since)
    current = db.get_current_sequence()
    logger.debug(
        "Returned %d changes since %d (current sequence: %d)", len(changes), since, current
    )
    return ChangesResponse(
        current_sequence=current,
        changes=[change_to_response(c) for c in changes],
    )


@router.get("/sequence", response_model=SequenceResponse)
def get_current_sequence(db: Database = Depends(get_db)) -> SequenceResponse:
    """Get the last assigned changelog sequence number."""
    return SequenceResponse(current_sequence=db.get_current_sequence())


@router.get("/snapshot", response_model=SnapshotResponse)
def get_snapshot(service: SyncService = Depends(get_sync_service)) -> SnapshotResponse:
    """Get the full stored filesystem snapshot."""
    return snapshot_to_response(service.get_full_snapshot())


@router.post("/recheck", response_model=RecheckResponse)
def recheck(
    db: Database = Depends(get_db),
    service: SyncService = Depends(get_sync_service),
) -> RecheckResponse:
    """Rescan the sync paths now and append any detected changes."""
    before = db.get_current_sequence()
    changes = service.recheck()
    return RecheckResponse(
        before_sequence=before,
        after_sequence=db.get_current_sequence(),
        changes=[change_to_response(c) for c in changes],
    )
