"""Stadium Repository for NFL venue documents."""
from typing import List, Optional

from nfl_data_sync.models import Stadium
from nfl_data_sync.models.tables import StadiumRecord
from nfl_data_sync.repositories.base import DocumentRepository


class StadiumRepository(DocumentRepository[Stadium]):
    record_type = StadiumRecord
    document_type = Stadium
    natural_key = ("stadium_id",)

    def columns_for(self, document: Stadium) -> dict:
        return {"stadium_id": document.stadium_id, "name": document.name}

    def find_by_stadium_id(self, stadium_id: int) -> Optional[Stadium]:
        return self.find_one(StadiumRecord.stadium_id == stadium_id)

    def find_by_name(self, name: str) -> List[Stadium]:
        return self.find_many(StadiumRecord.name == name)
