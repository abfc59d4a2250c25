"""
Periodic sync scheduler for the NFL data service.

One APScheduler job runs a full sync every ``SYNC_INTERVAL_HOURS``, with the
first run fired immediately at start-up. ``max_instances=1`` and
``coalesce=True`` keep overlapping or missed runs from stacking up; the
orchestrator's run lock additionally rejects a scheduled run while an
HTTP-triggered one is in flight.

Scheduler: APScheduler (lightweight, FastAPI-compatible)
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from nfl_data_sync.services.sync.orchestrator import SyncAlreadyRunningError, SyncOrchestrator

logger = logging.getLogger(__name__)

FULL_SYNC_JOB_ID = "nfl_full_sync"


class SyncScheduler:
    """Runs the orchestrator's full sync on a fixed interval."""

    def __init__(self, orchestrator: SyncOrchestrator, interval_hours: float = 24.0):
        self.orchestrator = orchestrator
        self.interval_hours = interval_hours
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.running = False

    async def start(self):
        """Start the scheduler."""
        if self.running:
            logger.warning("Scheduler already running")
            return

        logger.info("Starting sync scheduler...")

        self.scheduler = AsyncIOScheduler(
            timezone="UTC",
            job_defaults={
                "coalesce": True,  # Combine missed runs into one
                "max_instances": 1,  # Only one instance of each job
                "misfire_grace_time": 3600,
            },
        )
        self.scheduler.add_job(
            self.run_full_sync,
            trigger=IntervalTrigger(hours=self.interval_hours),
            id=FULL_SYNC_JOB_ID,
            name="Full NFL data sync",
            next_run_time=datetime.now(timezone.utc),
            replace_existing=True,
        )
        self.scheduler.start()
        self.running = True

        logger.info(f"Scheduler started: full sync every {self.interval_hours}h, first run now")

    async def stop(self):
        """Stop the scheduler, letting an in-flight sync finish."""
        if not self.running:
            return

        logger.info("Stopping scheduler...")
        self.scheduler.shutdown(wait=False)
        if self.orchestrator.is_running:
            logger.info("Waiting for the in-flight sync to finish")
        await self.orchestrator.wait_until_idle()
        self.running = False
        logger.info("Scheduler stopped")

    async def run_full_sync(self):
        """Scheduled job: one full sync of the configured season."""
        if self.orchestrator.is_running:
            logger.warning("Scheduled sync skipped: a sync run is already in progress")
            return
        try:
            report = await self.orchestrator.sync_all()
        except SyncAlreadyRunningError:
            logger.warning("Scheduled sync skipped: a sync run is already in progress")
            return
        except Exception as e:
            logger.error(f"Scheduled sync failed: {e}", exc_info=True)
            return
        logger.info(
            f"Scheduled sync complete: {len(report.succeeded)} succeeded, "
            f"{len(report.failed)} failed, {len(report.skipped)} skipped"
        )

    def next_run_time(self) -> Optional[datetime]:
        if self.scheduler is None:
            return None
        job = self.scheduler.get_job(FULL_SYNC_JOB_ID)
        return job.next_run_time if job else None
