"""Play-by-play Repository, one document per game keyed by ``GameKey``."""
from typing import List, Optional

from nfl_data_sync.models import Play, PlayByPlay
from nfl_data_sync.models.tables import PlayByPlayRecord
from nfl_data_sync.repositories.base import DocumentRepository


class PlayByPlayRepository(DocumentRepository[PlayByPlay]):
    record_type = PlayByPlayRecord
    document_type = PlayByPlay
    natural_key = ("game_key",)

    def columns_for(self, document: PlayByPlay) -> dict:
        return {
            "game_key": document.game_key,
            "season": document.season,
            "season_type": document.season_type,
            "week": document.week,
            "home_team": document.home_team,
            "away_team": document.away_team,
        }

    def find_by_game_key(self, game_key: str) -> Optional[PlayByPlay]:
        return self.find_one(PlayByPlayRecord.game_key == game_key)

    def find_scoring_plays(self, game_key: str) -> List[Play]:
        """Scoring plays of one game in ``Sequence`` order (empty if unknown)."""
        play_by_play = self.find_by_game_key(game_key)
        return play_by_play.scoring_plays() if play_by_play else []

    def find_plays_involving(self, player_id: int, season: Optional[int] = None) -> List[Play]:
        """Plays with a stat line for the player, game by game in ``Sequence`` order."""
        criteria = [PlayByPlayRecord.season == season] if season is not None else []
        plays: List[Play] = []
        for play_by_play in self.find_many(*criteria, order_by=[PlayByPlayRecord.week, PlayByPlayRecord.game_key]):
            plays.extend(play_by_play.plays_involving(player_id))
        return plays
