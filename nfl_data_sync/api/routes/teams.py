"""Team read endpoints."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from nfl_data_sync.api.dependencies import get_team_repository
from nfl_data_sync.repositories import InvalidKeyError, StoreError, TeamRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/teams", tags=["teams"])


@router.get("")
async def list_teams(
    conference: Optional[str] = None,
    division: Optional[str] = None,
    repo: TeamRepository = Depends(get_team_repository),
) -> List[dict]:
    """
    List teams.

    - **conference**: Filter by conference (AFC, NFC)
    - **division**: Filter by division (East, North, South, West)
    """
    try:
        teams = repo.search(conference=conference, division=division)
    except StoreError as e:
        raise HTTPException(status_code=500, detail="Failed to get teams") from e
    return [team.to_response() for team in teams]


@router.get("/key/{key}")
async def get_team_by_key(key: str, repo: TeamRepository = Depends(get_team_repository)) -> dict:
    try:
        team = repo.find_by_key(key.upper())
    except StoreError as e:
        raise HTTPException(status_code=500, detail="Failed to get team") from e
    if team is None:
        raise HTTPException(status_code=404, detail="Team not found")
    return team.to_response()


@router.get("/{id}")
async def get_team(id: str, repo: TeamRepository = Depends(get_team_repository)) -> dict:
    try:
        team = repo.find_by_internal_id(id)
    except InvalidKeyError as e:
        raise HTTPException(status_code=400, detail="Invalid team ID format") from e
    except StoreError as e:
        raise HTTPException(status_code=500, detail="Failed to get team") from e
    if team is None:
        raise HTTPException(status_code=404, detail="Team not found")
    return team.to_response()
