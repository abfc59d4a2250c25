"""
Current-week detection from a schedule snapshot.

The week in progress is taken to be the week of the nearest game that is not
canceled and is dated on or after ``now``. Without such a game (empty
schedule, season over, no dates yet) the full regular season is assumed.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from nfl_data_sync.models import Schedule
from nfl_data_sync.utils.timezone import to_naive_utc

MAX_REGULAR_SEASON_WEEK = 17


@dataclass(frozen=True)
class WeekDetection:
    week: int
    is_fallback: bool


def detect_current_week(now: datetime, schedules: Iterable[Schedule]) -> WeekDetection:
    """
    Pick the current week from a schedule snapshot.

    Args:
        now: Reference time, comparable with the schedule dates (naive)
        schedules: Every schedule entry known for the season

    Returns:
        WeekDetection with ``is_fallback`` set when no upcoming game was found
    """
    now = to_naive_utc(now)
    upcoming = [
        (to_naive_utc(entry.date), entry.week)
        for entry in schedules
        if entry.date is not None and not entry.canceled and entry.week > 0
    ]
    upcoming = [(date, week) for date, week in upcoming if date >= now]
    if not upcoming:
        return WeekDetection(week=MAX_REGULAR_SEASON_WEEK, is_fallback=True)

    _, week = min(upcoming)
    return WeekDetection(week=week, is_fallback=False)
