"""
Timezone utilities for the NFL data sync service.

All bookkeeping times (LastUpdated, sync metadata timestamps) are stored as
naive UTC datetimes. SportsData.io publishes game dates as naive Eastern Time
strings; they are stored as received.
"""
from datetime import datetime, timezone
from typing import Optional

UTC = timezone.utc


def utcnow() -> datetime:
    """Current time as a naive UTC datetime, the form every stored timestamp uses."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalise an aware datetime to naive UTC; naive values pass through.

    Args:
        value: Datetime to normalise (may be None)

    Returns:
        Naive datetime, or None
    """
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def hours_between(earlier: datetime, later: datetime) -> float:
    """Elapsed time in fractional hours between two naive datetimes."""
    return (later - earlier).total_seconds() / 3600.0
