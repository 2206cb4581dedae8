"""Scheduler for automatic changelog maintenance.

This module provides:
- Automatic daily changelog prune at 3:30 AM
- Optional periodic recheck of the sync paths
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from modsync.core.constants import CHANGELOG_RETENTION_DAYS

if TYPE_CHECKING:
    from modsync.server.database import Database
    from modsync.server.sync_service import SyncService

logger = logging.getLogger(__name__)


class ChangeLogScheduler:
    """Scheduler for changelog maintenance.

    Runs:
    - Changelog prune daily
    - Sync path recheck every ``recheck_minutes`` (disabled when 0)
    """

    def __init__(
        self,
        db: Database,
        sync_service: SyncService,
        retention_days: int = CHANGELOG_RETENTION_DAYS,
        recheck_minutes: int = 0,
        hour: int = 3,
        minute: int = 30,
    ) -> None:
        """Initialize the scheduler.

        Args:
            db: Database instance.
            sync_service: Service used for periodic rechecks.
            retention_days: Number of days to retain changelog entries.
            recheck_minutes: Interval between automatic rechecks (0 disables).
            hour: Hour to run the prune job (0-23).
            minute: Minute to run the prune job (0-59).
        """
        self._db = db
        self._sync_service = sync_service
        self._retention_days = retention_days
        self._recheck_minutes = recheck_minutes
        self._hour = hour
        self._minute = minute
        self._scheduler: BackgroundScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    def _prune_job(self) -> None:
        """Job function for scheduled changelog prune."""
        logger.info(
            "Starting scheduled changelog prune (retention: %d days)", self._retention_days
        )
        try:
            deleted = self._db.prune_old_entries(self._retention_days)
            if deleted == 0:
                logger.debug(
                    "Changelog prune: no entries older than %d days", self._retention_days
                )
        except Exception:
            logger.exception("Error during scheduled changelog prune")

    def _recheck_job(self) -> None:
        """Job function for periodic recheck."""
        try:
            self._sync_service.recheck()
        except Exception:
            logger.exception("Error during scheduled recheck")

    def start(self) -> None:
        """Start the scheduler."""
        if self._scheduler is not None:
            return  # Already running

        self._scheduler = BackgroundScheduler()
        self._scheduler.add_job(
            self._prune_job,
            trigger=CronTrigger(hour=self._hour, minute=self._minute),
            id="change_log_prune",
            name="Daily changelog prune",
            replace_existing=True,
        )
        if self._recheck_minutes > 0:
            self._scheduler.add_job(
                self._recheck_job,
                trigger=IntervalTrigger(minutes=self._recheck_minutes),
                id="sync_path_recheck",
                name="Periodic sync path recheck",
                replace_existing=True,
            )

        self._scheduler.start()
        logger.info(
            "Changelog scheduler started (prune daily at %02d:%02d, retention: %d days, "
            "recheck every %s)",
            self._hour,
            self._minute,
            self._retention_days,
            f"{self._recheck_minutes} min" if self._recheck_minutes else "never",
        )

    def stop(self) -> None:
        """Stop the scheduler."""
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Changelog scheduler stopped")

    def prune_now(self) -> int:
        """Run the changelog prune immediately (manual trigger).

        Returns:
            Number of changelog entries deleted.
        """
        return self._db.prune_old_entries(self._retention_days)
