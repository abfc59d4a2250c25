"""Schedule read endpoints."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from nfl_data_sync.api.dependencies import get_schedule_repository, parse_int_param
from nfl_data_sync.repositories import InvalidKeyError, ScheduleRepository, StoreError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/schedules", tags=["schedules"])


@router.get("")
async def list_schedules(
    team: Optional[str] = None,
    season: Optional[str] = None,
    week: Optional[str] = None,
    repo: ScheduleRepository = Depends(get_schedule_repository),
) -> List[dict]:
    """
    List scheduled games; filters combine.

    - **team**: Home or away team abbreviation
    - **season**: Season year, e.g. 2023
    - **week**: Week number
    """
    season_value = parse_int_param(season, "season")
    week_value = parse_int_param(week, "week")
    try:
        schedules = repo.search(team=team, season=season_value, week=week_value)
    except StoreError as e:
        raise HTTPException(status_code=500, detail="Failed to get schedules") from e
    return [schedule.to_response() for schedule in schedules]


@router.get("/key/{game_key}")
async def get_schedule_by_game_key(game_key: str, repo: ScheduleRepository = Depends(get_schedule_repository)) -> dict:
    try:
        schedule = repo.find_by_game_key(game_key)
    except StoreError as e:
        raise HTTPException(status_code=500, detail="Failed to get schedule") from e
    if schedule is None:
        raise HTTPException(status_code=404, detail="Schedule not found")
    return schedule.to_response()


@router.get("/{id}")
async def get_schedule(id: str, repo: ScheduleRepository = Depends(get_schedule_repository)) -> dict:
    try:
        schedule = repo.find_by_internal_id(id)
    except InvalidKeyError as e:
        raise HTTPException(status_code=400, detail="Invalid schedule ID format") from e
    except StoreError as e:
        raise HTTPException(status_code=500, detail="Failed to get schedule") from e
    if schedule is None:
        raise HTTPException(status_code=404, detail="Schedule not found")
    return schedule.to_response()
