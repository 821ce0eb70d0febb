"""
In-process scheduler for the cleanup cycle.

Optional: deployments with an external cron can leave
CLEANUP_INTERVAL_MINUTES at 0 and call POST /api/v1/cleanup instead. The
sweeper is idempotent, so both may run side by side.
"""

from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import get_settings
from app.core.logging import get_logger
from app.db.session import AsyncSessionLocal
from app.services.cleanup_service import run_cleanup

logger = get_logger(__name__)

CLEANUP_JOB_ID = "booking_cleanup"


async def run_scheduled_cleanup() -> dict:
    async with AsyncSessionLocal() as session:
        return await run_cleanup(session)


class CleanupScheduler:
    """Runs the cleanup cycle on a fixed interval."""

    def __init__(self, interval_minutes: int):
        self.interval_minutes = interval_minutes
        self.scheduler: Optional[AsyncIOScheduler] = None

    def start(self) -> None:
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.scheduler.add_job(
            run_scheduled_cleanup,
            IntervalTrigger(minutes=self.interval_minutes),
            id=CLEANUP_JOB_ID,
            name="Booking Cleanup",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info("cleanup_scheduler_started", interval_minutes=self.interval_minutes)

    def stop(self) -> None:
        if self.scheduler and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("cleanup_scheduler_stopped")
        self.scheduler = None


def create_cleanup_scheduler() -> Optional[CleanupScheduler]:
    interval = get_settings().CLEANUP_INTERVAL_MINUTES
    if interval <= 0:
        return None
    return CleanupScheduler(interval)
