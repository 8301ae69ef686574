"""Background scheduler for analytics retention."""
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from app.services.search_analytics import SearchAnalyticsStore

logger = logging.getLogger(__name__)

PRUNE_JOB_ID = "prune_search_analytics"


class BackgroundScheduler:
    """Runs periodic maintenance of the durable analytics log."""

    def __init__(self, store: SearchAnalyticsStore, retention_days: int):
        self.store = store
        self.retention_days = retention_days
        self._scheduler: Optional[AsyncIOScheduler] = None

    def initialize(self) -> AsyncIOScheduler:
        """Create the scheduler and register jobs (idempotent)."""
        if self._scheduler is not None:
            return self._scheduler

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self._prune_task,
            trigger=CronTrigger(hour=3, minute=0),
            id=PRUNE_JOB_ID,
            name="Prune search analytics past retention",
            replace_existing=True,
        )
        logger.info(f"✅ Scheduled: analytics pruning daily at 03:00 (retention={self.retention_days}d)")
        return self._scheduler

    def start(self) -> None:
        scheduler = self.initialize()
        if not scheduler.running:
            scheduler.start()
            logger.info("🔄 Background scheduler started")

    def shutdown(self) -> None:
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("🛑 Background scheduler stopped")

    async def _prune_task(self) -> None:
        try:
            await self.store.prune(self.retention_days)
        except Exception as e:
            logger.error(f"❌ Analytics pruning failed: {e}")
