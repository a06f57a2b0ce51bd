"""
Analysis expiry scheduler.

Runs daily to reset AI analyses of reports that finished more than
``AI_ANALYSIS_RETENTION_DAYS`` ago back to pending, clearing the stored
description.
"""

import asyncio
import logging
from datetime import timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore
from apscheduler.triggers.cron import CronTrigger  # type: ignore

from core.config import AI_ANALYSIS_RETENTION_DAYS
from core.constants import ANALYSIS_CLEANUP_HOUR
from core.database import get_db_context
from services.report_service import ReportService

logger = logging.getLogger(__name__)

# Global singleton instance
_analysis_cleanup_scheduler: Optional['AnalysisCleanupScheduler'] = None


class AnalysisCleanupScheduler:
    """
    Scheduler for expiring old report analyses.

    Runs daily at 3 AM UTC. Database sessions are created fresh for each
    run to avoid stale session issues.
    """

    def __init__(self, retention_days: int = AI_ANALYSIS_RETENTION_DAYS):
        self.scheduler = AsyncIOScheduler(timezone=timezone.utc)
        self.retention_days = retention_days
        self._is_started = False

    async def start_scheduler(self) -> None:
        """Start the background scheduler. Called during application startup."""
        if self._is_started:
            logger.warning("Analysis cleanup scheduler is already started")
            return

        self.scheduler.add_job(  # type: ignore
            self._run_cleanup,
            CronTrigger(hour=ANALYSIS_CLEANUP_HOUR, minute=0),
            id="report_analysis_cleanup",
            name="Expire old report analyses",
            replace_existing=True,
            misfire_grace_time=3600,  # Allow 1 hour grace time if server was down
        )

        self.scheduler.start()
        self._is_started = True
        logger.info(f"Analysis cleanup scheduler started (runs daily at {ANALYSIS_CLEANUP_HOUR}:00 UTC)")

    async def stop_scheduler(self) -> None:
        """Stop the background scheduler. Called during application shutdown."""
        if self._is_started:
            self.scheduler.shutdown(wait=True)
            self._is_started = False
            logger.info("Analysis cleanup scheduler stopped")

    async def _run_cleanup(self) -> None:
        logger.info("Starting scheduled analysis cleanup...")
        # Blocking database work runs off the event loop
        await asyncio.to_thread(self.execute_cleanup)

    def execute_cleanup(self) -> int:
        """Reset expired analyses. Returns the number of reports reset."""
        try:
            with get_db_context() as db:
                count = ReportService.expire_old_analyses(db, self.retention_days)
        except Exception as e:
            logger.exception(f"Error during scheduled analysis cleanup: {e}")
            # Don't re-raise - allow scheduler to continue
            return 0
        logger.info(f"Reset {count} report analyses older than {self.retention_days} days")
        return count


def get_analysis_cleanup_scheduler() -> AnalysisCleanupScheduler:
    """Get the global analysis cleanup scheduler instance."""
    global _analysis_cleanup_scheduler
    if _analysis_cleanup_scheduler is None:
        _analysis_cleanup_scheduler = AnalysisCleanupScheduler()
    return _analysis_cleanup_scheduler


async def start_analysis_cleanup_scheduler() -> None:
    await get_analysis_cleanup_scheduler().start_scheduler()


async def stop_analysis_cleanup_scheduler() -> None:
    global _analysis_cleanup_scheduler
    if _analysis_cleanup_scheduler:
        await _analysis_cleanup_scheduler.stop_scheduler()
