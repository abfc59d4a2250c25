"""
Schedule Repository.

Usage:
    repo = ScheduleRepository(db)
    week_one = repo.find_by_week(2023, 1)
    next_games = repo.find_upcoming(utcnow(), limit=5)
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import or_

from nfl_data_sync.models import Schedule
from nfl_data_sync.models.tables import ScheduleRecord
from nfl_data_sync.repositories.base import DocumentRepository


class ScheduleRepository(DocumentRepository[Schedule]):
    """Repository for scheduled games, keyed by ``GameKey``."""

    record_type = ScheduleRecord
    document_type = Schedule
    natural_key = ("game_key",)

    def columns_for(self, document: Schedule) -> dict:
        return {
            "game_key": document.game_key,
            "season": document.season,
            "season_type": document.season_type,
            "week": document.week,
            "date": document.date,
            "home_team": document.home_team,
            "away_team": document.away_team,
            "canceled": bool(document.canceled),
        }

    def find_by_game_key(self, game_key: str) -> Optional[Schedule]:
        return self.find_one(ScheduleRecord.game_key == game_key)

    def find_by_week(self, season: int, week: int, season_type: Optional[int] = None) -> List[Schedule]:
        return self.search(season=season, week=week, season_type=season_type)

    def find_by_team(self, team: str, season: Optional[int] = None) -> List[Schedule]:
        return self.search(team=team, season=season)

    def find_by_season(self, season: int, season_type: Optional[int] = None) -> List[Schedule]:
        return self.search(season=season, season_type=season_type)

    def find_upcoming(self, start: datetime, limit: int = 10) -> List[Schedule]:
        """Games dated on or after ``start``, soonest first."""
        return self.find_many(
            ScheduleRecord.date >= start,
            order_by=[ScheduleRecord.date],
            limit=limit,
        )

    def search(
        self,
        team: Optional[str] = None,
        season: Optional[int] = None,
        week: Optional[int] = None,
        season_type: Optional[int] = None,
    ) -> List[Schedule]:
        criteria = []
        if team:
            criteria.append(or_(ScheduleRecord.home_team == team, ScheduleRecord.away_team == team))
        if season is not None:
            criteria.append(ScheduleRecord.season == season)
        if week is not None:
            criteria.append(ScheduleRecord.week == week)
        if season_type is not None:
            criteria.append(ScheduleRecord.season_type == season_type)
        return self.find_many(
            *criteria,
            order_by=[ScheduleRecord.season, ScheduleRecord.week, ScheduleRecord.date, ScheduleRecord.game_key],
        )
