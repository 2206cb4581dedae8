"""Main API router that includes all sub-routers."""

from __future__ import annotations

from fastapi import APIRouter

from modsync.server.api import changes, files, health

router = APIRouter()

# Include all API routers
router.include_router(health.router)
router.include_router(files.router)
router.include_router(changes.router)
