"""
Standing Repository.

Standings are keyed by the composite ``(Season, SeasonType, Team)``.
"""
from typing import List, Optional

from sqlalchemy import desc

from nfl_data_sync.models import Standing
from nfl_data_sync.models.tables import StandingRecord
from nfl_data_sync.repositories.base import DocumentRepository


class StandingRepository(DocumentRepository[Standing]):
    record_type = StandingRecord
    document_type = Standing
    natural_key = ("season", "season_type", "team")

    def columns_for(self, document: Standing) -> dict:
        return {
            "season": document.season,
            "season_type": document.season_type,
            "team": document.team,
            "conference": document.conference,
            "division": document.division,
        }

    def find_by_key(self, season: int, season_type: int, team: str) -> Optional[Standing]:
        return self.find_one(
            StandingRecord.season == season,
            StandingRecord.season_type == season_type,
            StandingRecord.team == team,
        )

    def find_latest_for_team(self, team: str) -> Optional[Standing]:
        """The team's most recent standing (latest season first)."""
        documents = self.find_many(
            StandingRecord.team == team,
            order_by=[desc(StandingRecord.season), desc(StandingRecord.last_updated)],
            limit=1,
        )
        return documents[0] if documents else None

    def find_by_division(self, conference: str, division: str, season: Optional[int] = None) -> List[Standing]:
        return self.search(conference=conference, division=division, season=season)

    def find_by_conference(self, conference: str, season: Optional[int] = None) -> List[Standing]:
        return self.search(conference=conference, season=season)

    def find_by_season(self, season: int) -> List[Standing]:
        return self.search(season=season)

    def search(
        self,
        conference: Optional[str] = None,
        division: Optional[str] = None,
        season: Optional[int] = None,
    ) -> List[Standing]:
        criteria = []
        if conference:
            criteria.append(StandingRecord.conference == conference)
        if division:
            criteria.append(StandingRecord.division == division)
        if season is not None:
            criteria.append(StandingRecord.season == season)
        return self.find_many(
            *criteria,
            order_by=[
                desc(StandingRecord.season),
                StandingRecord.conference,
                StandingRecord.division,
                StandingRecord.team,
            ],
        )
