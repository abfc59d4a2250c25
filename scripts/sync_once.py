#!/usr/bin/env python3
"""
Run one full NFL data sync from the command line and print its report.

Usage:
    python scripts/sync_once.py                 # configured SEASON
    python scripts/sync_once.py --season 2022
    python scripts/sync_once.py --json          # machine-readable report
"""
import argparse
import asyncio
import json
import sys

from nfl_data_sync.core.config import get_settings
from nfl_data_sync.core.database import open_database
from nfl_data_sync.core.logging import configure_logging, get_logger
from nfl_data_sync.core.tracing import setup_tracing
from nfl_data_sync.services.sportsdata import SportsDataClient
from nfl_data_sync.services.sync import SyncOrchestrator, SyncRunReport

logger = get_logger(__name__)


def print_report(report: SyncRunReport) -> None:
    print("=" * 60)
    print(f"SYNC {report.season_param}")
    print("=" * 60)
    week_note = " (fallback)" if report.week_fallback else ""
    print(f"Current week: {report.current_week}{week_note}")
    print(f"Succeeded: {len(report.succeeded)}  Failed: {len(report.failed)}  Skipped: {len(report.skipped)}")
    for result in report.failed:
        print(f"  x {result.feed_key}: {result.error}")
    print("=" * 60)


async def run(season: int) -> SyncRunReport:
    settings = get_settings()
    database = open_database(settings)
    client = SportsDataClient.from_settings(settings)
    setup_tracing(settings, engine=database.engine, client=client)
    try:
        return await SyncOrchestrator(database, client, settings).sync_season(season)
    finally:
        await client.close()
        database.dispose()


def main() -> int:
    parser = argparse.ArgumentParser(description="Run one full NFL data sync")
    parser.add_argument("--season", type=int, help="Season year (defaults to SEASON)")
    parser.add_argument("--json", action="store_true", help="Print the run report as JSON")
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(level=settings.LOG_LEVEL, json_output=False)

    try:
        report = asyncio.run(run(args.season or settings.SEASON))
    except Exception as e:
        logger.error(f"Sync could not run: {e}")
        return 1

    if args.json:
        print(json.dumps(report.to_dict(), indent=2, default=str))
    else:
        print_report(report)
    return 1 if report.failed else 0


if __name__ == "__main__":
    sys.exit(main())
