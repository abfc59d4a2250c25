"""
Bye Week Repository.

Upstream bye rows carry no identifier; ``ByeID`` is derived as
``{Season}-{Week}-{Team}`` and the triple is unique.
"""
from typing import List, Optional

from nfl_data_sync.models import ByeWeek
from nfl_data_sync.models.tables import ByeWeekRecord
from nfl_data_sync.repositories.base import DocumentRepository


class ByeWeekRepository(DocumentRepository[ByeWeek]):
    record_type = ByeWeekRecord
    document_type = ByeWeek
    natural_key = ("bye_id",)

    def columns_for(self, document: ByeWeek) -> dict:
        return {
            "bye_id": document.bye_id,
            "season": document.season,
            "week": document.week,
            "team": document.team,
        }

    def find_by_bye_id(self, bye_id: str) -> Optional[ByeWeek]:
        return self.find_one(ByeWeekRecord.bye_id == bye_id)

    def find_by_season(self, season: int) -> List[ByeWeek]:
        return self.find_many(
            ByeWeekRecord.season == season,
            order_by=[ByeWeekRecord.week, ByeWeekRecord.team],
        )

    def find_by_week(self, season: int, week: int) -> List[ByeWeek]:
        return self.find_many(
            ByeWeekRecord.season == season,
            ByeWeekRecord.week == week,
            order_by=[ByeWeekRecord.team],
        )

    def find_team_bye(self, season: int, team: str) -> Optional[ByeWeek]:
        """The given team's bye week for a season, if known."""
        return self.find_one(ByeWeekRecord.season == season, ByeWeekRecord.team == team)
