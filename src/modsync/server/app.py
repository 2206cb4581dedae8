"""FastAPI application for the ModSync server.

This module creates and configures the FastAPI application with:
- Sync path, exclusion and hash endpoints
- Changelog endpoints for incremental sync
- File download endpoint

Usage:
    uvicorn modsync.server.app:app_factory --factory --host 0.0.0.0 --port 6969
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from modsync.core.config import load_sync_config
from modsync.core.constants import MODSYNC_VERSION
from modsync.core.log import setup_logging
from modsync.server.api.router import router as api_router
from modsync.server.database import Database
from modsync.server.scheduler import ChangeLogScheduler
from modsync.server.sync_service import SyncService

# Configuration from environment variables with defaults
ROOT_PATH = Path(os.environ.get("MODSYNC_ROOT", "."))
CONFIG_PATH = Path(os.environ.get("MODSYNC_CONFIG_PATH", "modsync.yaml"))
DB_PATH = Path(os.environ.get("MODSYNC_DB_PATH", "modsync.db"))
LOG_PATH = Path(os.environ.get("MODSYNC_LOG_PATH", "modsync-server.log"))
RECHECK_MINUTES = int(os.environ.get("MODSYNC_RECHECK_MINUTES", "0"))

# Also capture uvicorn logs to file
UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

logger = logging.getLogger(__name__)


def create_app(
    db: Database,
    sync_service: SyncService,
    scheduler: ChangeLogScheduler | None = None,
    detect_on_startup: bool = True,
) -> FastAPI:
    """Create FastAPI application with a database and sync service.

    Args:
        db: Database instance.
        sync_service: Service scanning the configured sync paths.
        scheduler: Optional maintenance scheduler started with the app.
        detect_on_startup: Run change detection when the app starts.

    Returns:
        Configured FastAPI application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup/shutdown."""
        logger.info("=" * 60)
        logger.info("ModSync Server Starting")
        logger.info("=" * 60)
        logger.info("  Root:       %s", sync_service.root)
        logger.info("  Database:   %s", db.path)
        logger.info("  Sync paths: %d (%d active)",
                    len(sync_service.config.sync_paths),
                    len(sync_service.config.active_paths))
        logger.info("=" * 60)

        if detect_on_startup:
            logger.info("Detecting file changes since last startup...")
            sync_service.recheck()
        if scheduler:
            scheduler.start()

        yield

        if scheduler:
            scheduler.stop()
        logger.info("ModSync Server shutting down")

    application = FastAPI(
        title="ModSync Server",
        description="Authoritative mod file sync server",
        version=MODSYNC_VERSION,
        lifespan=lifespan,
    )

    application.state.db = db
    application.state.sync_service = sync_service

    application.include_router(api_router)

    return application


def app_factory() -> FastAPI:
    """Factory function for uvicorn --factory mode."""
    setup_logging(LOG_PATH, capture=UVICORN_LOGGERS)
    root = ROOT_PATH.resolve()
    config_path = CONFIG_PATH if CONFIG_PATH.is_absolute() else root / CONFIG_PATH
    db = Database(DB_PATH if DB_PATH.is_absolute() else root / DB_PATH)
    sync_service = SyncService(root, load_sync_config(config_path, root), db)
    scheduler = ChangeLogScheduler(db, sync_service, recheck_minutes=RECHECK_MINUTES)
    return create_app(db, sync_service, scheduler)
