"""
Per-feed staleness bookkeeping.

One ``sync_metadata`` row per feed key records the last fetch attempt
(endpoint, time, status, notes). A feed is due when it has never been
attempted or its last attempt is at least ``max_age_hours`` old. Failed
attempts are recorded too, so a failing feed waits out its window like a
successful one.

Feed keys follow ``last_api_call_<Feed>[_<season>][_w<week>][_<team>]``.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from nfl_data_sync.core.logging import get_logger
from nfl_data_sync.models.tables import SyncMetadata
from nfl_data_sync.repositories.base import StoreError
from nfl_data_sync.utils.timezone import hours_between, utcnow

logger = get_logger(__name__)

STATUS_SUCCESS = "success"
STATUS_ERROR = "error"

# Freshness windows in hours
TEAMS_MAX_AGE_HOURS = 168
STADIUMS_MAX_AGE_HOURS = 720
REFEREES_MAX_AGE_HOURS = 720
BYE_WEEKS_MAX_AGE_HOURS = 168
PLAYERS_MAX_AGE_HOURS = 12
DEPTH_CHARTS_MAX_AGE_HOURS = 12


def feed_key(
    feed: str,
    season: Optional[str] = None,
    week: Optional[int] = None,
    team: Optional[str] = None,
) -> str:
    """
    Build the bookkeeping key for a feed.

    Examples:
        >>> feed_key("TeamsBasic")
        'last_api_call_TeamsBasic'
        >>> feed_key("PlayerGameStatsByTeamFinal", "2023REG", 3, "KC")
        'last_api_call_PlayerGameStatsByTeamFinal_2023REG_w3_KC'
    """
    key = f"last_api_call_{feed}"
    if season:
        key += f"_{season}"
    if week is not None:
        key += f"_w{week}"
    if team:
        key += f"_{team}"
    return key


class StalenessTracker:
    """Reads and writes the last attempt per feed."""

    def __init__(self, db: Session):
        self.db = db

    def get_last_attempt(self, key: str) -> Optional[SyncMetadata]:
        try:
            return self.db.query(SyncMetadata).filter(SyncMetadata.feed_key == key).one_or_none()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"Failed to read sync metadata for {key}") from e

    def list_attempts(self) -> List[SyncMetadata]:
        try:
            return self.db.query(SyncMetadata).order_by(SyncMetadata.feed_key).all()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError("Failed to list sync metadata") from e

    def is_update_needed(self, key: str, max_age_hours: float, now: Optional[datetime] = None) -> bool:
        """
        Decide whether a feed is due for a refresh.

        Args:
            key: Feed key
            max_age_hours: Freshness window in hours
            now: Reference time (naive UTC); defaults to the current time

        Returns:
            True if never attempted or the last attempt is at least max_age_hours old

        Raises:
            StoreError: If the metadata cannot be read
        """
        last = self.get_last_attempt(key)
        if last is None:
            return True
        age = hours_between(last.timestamp, now or utcnow())
        return age >= max_age_hours

    def record_attempt(
        self,
        key: str,
        endpoint: str,
        status: str,
        notes: str = "",
        now: Optional[datetime] = None,
    ) -> None:
        """
        Overwrite the last attempt for a feed.

        Bookkeeping failures are logged and never raised; the caller's feed
        result does not depend on them.
        """
        timestamp = now or utcnow()
        try:
            record = self.db.query(SyncMetadata).filter(SyncMetadata.feed_key == key).one_or_none()
            if record is None:
                record = SyncMetadata(feed_key=key)
                self.db.add(record)
            record.endpoint = endpoint
            record.timestamp = timestamp
            record.status = status
            record.notes = notes
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"Failed to record sync attempt for {key}: {e}",
                extra={"feed_key": key, "status": status},
            )
