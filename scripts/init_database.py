#!/usr/bin/env python3
"""
Create every collection table and its natural-key indexes.

Safe to re-run; existing tables are left untouched.
"""
import sys

from nfl_data_sync.core.config import get_settings
from nfl_data_sync.core.database import Database, describe_url
from nfl_data_sync.core.logging import configure_logging, get_logger

logger = get_logger(__name__)


def main() -> int:
    """Create all collections from the table models."""
    settings = get_settings()
    configure_logging(level=settings.LOG_LEVEL, json_output=False)

    database = Database.from_settings(settings)
    logger.info(f"Creating collections in {describe_url(database.url)}...")
    try:
        database.create_collections()
    except Exception as e:
        logger.error(f"Failed to create collections: {e}")
        return 1
    finally:
        database.dispose()

    logger.info("All collections created")
    return 0


if __name__ == "__main__":
    sys.exit(main())
