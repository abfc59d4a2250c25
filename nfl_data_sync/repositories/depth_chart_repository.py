"""
Depth Chart Repository.

Charts are stored per team with typed Offense, Defense and SpecialTeams slot
lists; a player's status is read back as ``PlayerDepthStatus`` entries.
"""
from typing import List, Optional

from nfl_data_sync.models import DepthChart, PlayerDepthStatus
from nfl_data_sync.models.tables import DepthChartRecord
from nfl_data_sync.repositories.base import DocumentRepository


class DepthChartRepository(DocumentRepository[DepthChart]):
    record_type = DepthChartRecord
    document_type = DepthChart
    natural_key = ("team_id",)

    def columns_for(self, document: DepthChart) -> dict:
        return {"team_id": document.team_id, "team": document.team or None}

    def find_by_team_id(self, team_id: int) -> Optional[DepthChart]:
        return self.find_one(DepthChartRecord.team_id == team_id)

    def find_by_team(self, team: str) -> Optional[DepthChart]:
        return self.find_one(DepthChartRecord.team == team)

    def find_player_status(self, player_id: int) -> List[PlayerDepthStatus]:
        """Every position and depth a player holds across all stored charts."""
        statuses: List[PlayerDepthStatus] = []
        for chart in self.find_many(order_by=[DepthChartRecord.team_id]):
            statuses.extend(chart.player_status(player_id))
        return statuses
