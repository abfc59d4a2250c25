"""
Game Repository for final scores.

Usage:
    repo = GameRepository(db)
    game = repo.find_by_game_key("202310101")
    live = repo.find_live()
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import or_

from nfl_data_sync.models import Game
from nfl_data_sync.models.tables import GameRecord
from nfl_data_sync.repositories.base import DocumentRepository

LIVE_STATUS = "InProgress"


class GameRepository(DocumentRepository[Game]):
    """Repository for games, keyed by ``GameKey``."""

    record_type = GameRecord
    document_type = Game
    natural_key = ("game_key",)

    def columns_for(self, document: Game) -> dict:
        return {
            "game_key": document.game_key,
            "season": document.season,
            "season_type": document.season_type,
            "week": document.week,
            "date": document.date,
            "home_team": document.home_team,
            "away_team": document.away_team,
            "status": document.status,
        }

    # ========================================================================
    # Natural key lookups
    # ========================================================================

    def find_by_game_key(self, game_key: str) -> Optional[Game]:
        return self.find_one(GameRecord.game_key == game_key)

    # ========================================================================
    # Filtered queries
    # ========================================================================

    def find_by_week(self, season: int, week: int, season_type: Optional[int] = None) -> List[Game]:
        return self.search(season=season, week=week, season_type=season_type)

    def find_by_team(self, team: str, season: Optional[int] = None) -> List[Game]:
        return self.search(team=team, season=season)

    def find_by_season(self, season: int) -> List[Game]:
        return self.search(season=season)

    def find_live(self) -> List[Game]:
        return self.find_many(GameRecord.status == LIVE_STATUS, order_by=[GameRecord.date])

    def find_by_date_range(self, start: datetime, end: datetime) -> List[Game]:
        """
        Find games within a date range.

        Args:
            start: Start date (inclusive)
            end: End date (inclusive)
        """
        return self.find_many(
            GameRecord.date >= start,
            GameRecord.date <= end,
            order_by=[GameRecord.date],
        )

    def search(
        self,
        team: Optional[str] = None,
        season: Optional[int] = None,
        week: Optional[int] = None,
        season_type: Optional[int] = None,
    ) -> List[Game]:
        criteria = []
        if team:
            criteria.append(or_(GameRecord.home_team == team, GameRecord.away_team == team))
        if season is not None:
            criteria.append(GameRecord.season == season)
        if week is not None:
            criteria.append(GameRecord.week == week)
        if season_type is not None:
            criteria.append(GameRecord.season_type == season_type)
        return self.find_many(*criteria, order_by=[GameRecord.season, GameRecord.week, GameRecord.date])
