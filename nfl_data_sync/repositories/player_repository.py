"""
Player Repository for NFL player documents.

Usage:
    repo = PlayerRepository(db)
    player = repo.find_by_player_id(19801)
    qbs = repo.search(team="KC", position="QB")
"""
from typing import List, Optional

from nfl_data_sync.models import Player
from nfl_data_sync.models.tables import PlayerRecord
from nfl_data_sync.repositories.base import DocumentRepository


class PlayerRepository(DocumentRepository[Player]):
    """Repository for players, keyed by ``PlayerID``."""

    record_type = PlayerRecord
    document_type = Player
    natural_key = ("player_id",)

    def columns_for(self, document: Player) -> dict:
        return {
            "player_id": document.player_id,
            "team": document.team,
            "position": document.position,
            "name": document.name,
        }

    def find_by_player_id(self, player_id: int) -> Optional[Player]:
        return self.find_one(PlayerRecord.player_id == player_id)

    def find_by_team(self, team: str) -> List[Player]:
        return self.search(team=team)

    def find_by_position(self, position: str) -> List[Player]:
        return self.search(position=position)

    def search(self, team: Optional[str] = None, position: Optional[str] = None) -> List[Player]:
        criteria = []
        if team:
            criteria.append(PlayerRecord.team == team)
        if position:
            criteria.append(PlayerRecord.position == position)
        return self.find_many(*criteria, order_by=[PlayerRecord.name])
