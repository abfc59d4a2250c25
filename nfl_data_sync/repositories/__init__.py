"""
Repository layer for the NFL document store.

Usage:
    from nfl_data_sync.repositories import EntityStores

    with database.session() as db:
        stores = EntityStores.for_session(db)
        team = stores.teams.find_by_key("KC")
"""
from dataclasses import dataclass

from sqlalchemy.orm import Session

from nfl_data_sync.repositories.base import (
    BulkUpsertResult,
    DocumentRepository,
    InvalidKeyError,
    StoreError,
    UpsertResult,
)
from nfl_data_sync.repositories.bye_week_repository import ByeWeekRepository
from nfl_data_sync.repositories.depth_chart_repository import DepthChartRepository
from nfl_data_sync.repositories.game_repository import GameRepository
from nfl_data_sync.repositories.play_by_play_repository import PlayByPlayRepository
from nfl_data_sync.repositories.player_game_stats_repository import PlayerGameStatsRepository
from nfl_data_sync.repositories.player_repository import PlayerRepository
from nfl_data_sync.repositories.referee_repository import RefereeRepository
from nfl_data_sync.repositories.schedule_repository import ScheduleRepository
from nfl_data_sync.repositories.stadium_repository import StadiumRepository
from nfl_data_sync.repositories.standing_repository import StandingRepository
from nfl_data_sync.repositories.team_repository import TeamRepository


@dataclass
class EntityStores:
    """Every entity store bound to one session."""

    teams: TeamRepository
    players: PlayerRepository
    stadiums: StadiumRepository
    referees: RefereeRepository
    bye_weeks: ByeWeekRepository
    depth_charts: DepthChartRepository
    standings: StandingRepository
    schedules: ScheduleRepository
    games: GameRepository
    player_game_stats: PlayerGameStatsRepository
    play_by_play: PlayByPlayRepository

    @classmethod
    def for_session(cls, db: Session) -> "EntityStores":
        return cls(
            teams=TeamRepository(db),
            players=PlayerRepository(db),
            stadiums=StadiumRepository(db),
            referees=RefereeRepository(db),
            bye_weeks=ByeWeekRepository(db),
            depth_charts=DepthChartRepository(db),
            standings=StandingRepository(db),
            schedules=ScheduleRepository(db),
            games=GameRepository(db),
            player_game_stats=PlayerGameStatsRepository(db),
            play_by_play=PlayByPlayRepository(db),
        )


__all__ = [
    "BulkUpsertResult",
    "ByeWeekRepository",
    "DepthChartRepository",
    "DocumentRepository",
    "EntityStores",
    "GameRepository",
    "InvalidKeyError",
    "PlayByPlayRepository",
    "PlayerGameStatsRepository",
    "PlayerRepository",
    "RefereeRepository",
    "ScheduleRepository",
    "StadiumRepository",
    "StandingRepository",
    "StoreError",
    "TeamRepository",
    "UpsertResult",
]
