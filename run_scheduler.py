#!/usr/bin/env python3
"""
Background runner for the NFL data sync scheduler.

Runs the periodic full sync as a standalone service, separate from the HTTP
API. It can be run via systemd, supervisor, or directly.

Usage:
    python run_scheduler.py              # Run in foreground until SIGINT/SIGTERM
    python run_scheduler.py --once       # Run one full sync and exit
    python run_scheduler.py --once --season 2022
"""
import argparse
import asyncio
import signal
import sys
from typing import Optional

from nfl_data_sync.core.config import Settings, get_settings
from nfl_data_sync.core.database import Database, describe_url
from nfl_data_sync.core.logging import configure_logging, get_logger
from nfl_data_sync.core.scheduler import SyncScheduler
from nfl_data_sync.core.tracing import setup_tracing
from nfl_data_sync.services.sportsdata import SportsDataClient
from nfl_data_sync.services.sync.orchestrator import SyncAlreadyRunningError, SyncOrchestrator

logger = get_logger(__name__)


class SchedulerRunner:
    """Owns the database, client and scheduler for one scheduler process."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.database: Optional[Database] = None
        self.client: Optional[SportsDataClient] = None
        self.orchestrator: Optional[SyncOrchestrator] = None
        self.scheduler: Optional[SyncScheduler] = None
        self.shutdown = False

    def open(self) -> None:
        """
        Connect to the database and build the sync pipeline.

        Raises:
            SQLAlchemyError: If the collections cannot be created
        """
        self.database = Database.from_settings(self.settings)
        logger.info(f"Opening {describe_url(self.database.url)}")
        self.database.create_collections()
        self.client = SportsDataClient.from_settings(self.settings)
        setup_tracing(self.settings, engine=self.database.engine, client=self.client)
        self.orchestrator = SyncOrchestrator(self.database, self.client, self.settings)

    async def close(self) -> None:
        if self.client is not None:
            await self.client.close()
        if self.database is not None:
            self.database.dispose()

    async def start(self):
        """Start the scheduler and run until shutdown."""
        logger.info("Starting scheduler runner...")

        self.scheduler = SyncScheduler(self.orchestrator, interval_hours=self.settings.SYNC_INTERVAL_HOURS)
        await self.scheduler.start()

        logger.info("Scheduler is now running; press Ctrl+C to stop")

        # Setup signal handlers for graceful shutdown
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._set_shutdown)

        while not self.shutdown:
            await asyncio.sleep(1)

        await self.scheduler.stop()
        logger.info("Scheduler runner stopped")

    async def run_once(self, season: Optional[int] = None) -> bool:
        """Run a single full sync. Returns False if any feed failed."""
        season = season or self.settings.SEASON
        try:
            report = await self.orchestrator.sync_season(season)
        except SyncAlreadyRunningError as e:
            logger.warning(f"Sync for season {season} not started: {e}")
            return False
        logger.info(
            f"Sync for {report.season_param} finished: {len(report.succeeded)} succeeded, "
            f"{len(report.failed)} failed, {len(report.skipped)} skipped"
        )
        for result in report.failed:
            logger.warning(f"  failed: {result.feed_key}: {result.error}")
        return not report.failed

    def _set_shutdown(self):
        logger.info("Shutdown signal received")
        self.shutdown = True


async def _run(runner: SchedulerRunner, once: bool, season: Optional[int]) -> int:
    try:
        if once:
            return 0 if await runner.run_once(season) else 1
        await runner.start()
        return 0
    finally:
        await runner.close()


def main() -> int:
    parser = argparse.ArgumentParser(description="Run the NFL data sync scheduler")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run one full sync and exit instead of scheduling",
    )
    parser.add_argument(
        "--season",
        type=int,
        help="Season to sync with --once (defaults to SEASON from the environment)",
    )
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)

    runner = SchedulerRunner(settings)
    try:
        runner.open()
    except Exception as e:
        logger.error(f"Could not open the database: {e}")
        return 1

    try:
        return asyncio.run(_run(runner, args.once, args.season))
    except KeyboardInterrupt:
        logger.info("Received interrupt, shutting down...")
        return 0


if __name__ == "__main__":
    sys.exit(main())
