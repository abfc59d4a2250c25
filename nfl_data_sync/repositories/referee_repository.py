"""Referee Repository for NFL officiating crew documents."""
from typing import List, Optional

from nfl_data_sync.models import Referee
from nfl_data_sync.models.tables import RefereeRecord
from nfl_data_sync.repositories.base import DocumentRepository


class RefereeRepository(DocumentRepository[Referee]):
    record_type = RefereeRecord
    document_type = Referee
    natural_key = ("referee_id",)

    def columns_for(self, document: Referee) -> dict:
        return {"referee_id": document.referee_id, "name": document.name}

    def find_by_referee_id(self, referee_id: int) -> Optional[Referee]:
        return self.find_one(RefereeRecord.referee_id == referee_id)

    def find_by_name(self, name: str) -> List[Referee]:
        return self.find_many(RefereeRecord.name == name)
