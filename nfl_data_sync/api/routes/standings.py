"""Standings read endpoints."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from nfl_data_sync.api.dependencies import get_standing_repository, parse_int_param
from nfl_data_sync.repositories import InvalidKeyError, StandingRepository, StoreError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/standings", tags=["standings"])


@router.get("")
async def list_standings(
    conference: Optional[str] = None,
    division: Optional[str] = None,
    season: Optional[str] = None,
    repo: StandingRepository = Depends(get_standing_repository),
) -> List[dict]:
    season_value = parse_int_param(season, "season")
    try:
        standings = repo.search(conference=conference, division=division, season=season_value)
    except StoreError as e:
        raise HTTPException(status_code=500, detail="Failed to get standings") from e
    return [standing.to_response() for standing in standings]


@router.get("/team/{team}")
async def get_standing_by_team(team: str, repo: StandingRepository = Depends(get_standing_repository)) -> dict:
    """Most recent standing for a team abbreviation."""
    try:
        standing = repo.find_latest_for_team(team.upper())
    except StoreError as e:
        raise HTTPException(status_code=500, detail="Failed to get standing") from e
    if standing is None:
        raise HTTPException(status_code=404, detail="Standing not found")
    return standing.to_response()


@router.get("/{id}")
async def get_standing(id: str, repo: StandingRepository = Depends(get_standing_repository)) -> dict:
    try:
        standing = repo.find_by_internal_id(id)
    except InvalidKeyError as e:
        raise HTTPException(status_code=400, detail="Invalid standing ID format") from e
    except StoreError as e:
        raise HTTPException(status_code=500, detail="Failed to get standing") from e
    if standing is None:
        raise HTTPException(status_code=404, detail="Standing not found")
    return standing.to_response()
