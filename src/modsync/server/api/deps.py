"""FastAPI dependencies for API routes."""

from __future__ import annotations

from fastapi import Request

from modsync.server.database import Database
from modsync.server.sync_service import SyncService


def get_db(request: Request) -> Database:
    """Get database from app state."""
    db: Database = request.app.state.db
    return db


def get_sync_service(request: Request) -> SyncService:
    """Get sync service from app state."""
    service: SyncService = request.app.state.sync_service
    return service
