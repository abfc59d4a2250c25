"""
Player Game Stats Repository.

Stat columns stay inside the JSON document, so ranking by an arbitrary stat
field is done on the week's documents after loading them.
"""
from typing import List, Optional

from nfl_data_sync.models import PlayerGameStats
from nfl_data_sync.models.tables import PlayerGameStatsRecord
from nfl_data_sync.repositories.base import DocumentRepository


class PlayerGameStatsRepository(DocumentRepository[PlayerGameStats]):
    record_type = PlayerGameStatsRecord
    document_type = PlayerGameStats
    natural_key = ("player_game_id",)

    def columns_for(self, document: PlayerGameStats) -> dict:
        return {
            "player_game_id": document.player_game_id,
            "player_id": document.player_id,
            "game_key": document.game_key,
            "season": document.season,
            "season_type": document.season_type,
            "week": document.week,
            "team": document.team,
        }

    def find_by_player_game_id(self, player_game_id: int) -> Optional[PlayerGameStats]:
        return self.find_one(PlayerGameStatsRecord.player_game_id == player_game_id)

    def find_by_player_and_game(self, player_id: int, game_key: str) -> Optional[PlayerGameStats]:
        return self.find_one(
            PlayerGameStatsRecord.player_id == player_id,
            PlayerGameStatsRecord.game_key == game_key,
        )

    def find_by_game(self, game_key: str) -> List[PlayerGameStats]:
        return self.find_many(
            PlayerGameStatsRecord.game_key == game_key,
            order_by=[PlayerGameStatsRecord.team, PlayerGameStatsRecord.player_id],
        )

    def find_by_player_season(self, player_id: int, season: int) -> List[PlayerGameStats]:
        return self.find_many(
            PlayerGameStatsRecord.player_id == player_id,
            PlayerGameStatsRecord.season == season,
            order_by=[PlayerGameStatsRecord.week],
        )

    def find_by_team_week(self, season: int, week: int, team: str) -> List[PlayerGameStats]:
        return self.find_many(
            PlayerGameStatsRecord.season == season,
            PlayerGameStatsRecord.week == week,
            PlayerGameStatsRecord.team == team,
        )

    def find_top_performers(
        self,
        season: int,
        week: int,
        stat_field: str = "FantasyPoints",
        limit: int = 10,
    ) -> List[PlayerGameStats]:
        """
        Highest values of one stat field for a week.

        Args:
            season: Season year
            week: Week number
            stat_field: Upstream stat name, e.g. ``PassingYards``
            limit: Number of performers to return

        Returns:
            Stat lines sorted by ``stat_field`` descending
        """
        week_stats = self.find_many(
            PlayerGameStatsRecord.season == season,
            PlayerGameStatsRecord.week == week,
        )
        week_stats.sort(key=lambda stats: stats.stat(stat_field), reverse=True)
        return week_stats[:limit]
