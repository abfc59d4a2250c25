"""
Team Repository for NFL team documents.

Usage:
    repo = TeamRepository(db)
    team = repo.find_by_key("KC")
    afc_west = repo.find_by_division("AFC", "West")
"""
from typing import List, Optional

from nfl_data_sync.models import Team
from nfl_data_sync.models.tables import TeamRecord
from nfl_data_sync.repositories.base import DocumentRepository


class TeamRepository(DocumentRepository[Team]):
    """Repository for teams, keyed by ``TeamID`` (``Key`` is also unique)."""

    record_type = TeamRecord
    document_type = Team
    natural_key = ("team_id",)

    def columns_for(self, document: Team) -> dict:
        return {
            "team_id": document.team_id,
            "key": document.key,
            "conference": document.conference,
            "division": document.division,
        }

    def find_by_key(self, key: str) -> Optional[Team]:
        """Find a team by its abbreviation (e.g. ``KC``)."""
        return self.find_one(TeamRecord.key == key)

    def find_by_team_id(self, team_id: int) -> Optional[Team]:
        return self.find_one(TeamRecord.team_id == team_id)

    def find_by_conference(self, conference: str) -> List[Team]:
        return self.find_many(TeamRecord.conference == conference, order_by=[TeamRecord.key])

    def find_by_division(self, conference: str, division: str) -> List[Team]:
        return self.find_many(
            TeamRecord.conference == conference,
            TeamRecord.division == division,
            order_by=[TeamRecord.key],
        )

    def search(self, conference: Optional[str] = None, division: Optional[str] = None) -> List[Team]:
        """All teams, optionally narrowed by conference and/or division."""
        criteria = []
        if conference:
            criteria.append(TeamRecord.conference == conference)
        if division:
            criteria.append(TeamRecord.division == division)
        return self.find_many(*criteria, order_by=[TeamRecord.key])
