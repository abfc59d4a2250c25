"""Game (final score) read endpoints."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from nfl_data_sync.api.dependencies import get_game_repository, parse_int_param
from nfl_data_sync.repositories import GameRepository, InvalidKeyError, StoreError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/games", tags=["games"])


@router.get("")
async def list_games(
    team: Optional[str] = None,
    season: Optional[str] = None,
    week: Optional[str] = None,
    repo: GameRepository = Depends(get_game_repository),
) -> List[dict]:
    """
    List games; filters combine.

    - **team**: Home or away team abbreviation
    - **season**: Season year, e.g. 2023
    - **week**: Week number
    """
    season_value = parse_int_param(season, "season")
    week_value = parse_int_param(week, "week")
    try:
        games = repo.search(team=team, season=season_value, week=week_value)
    except StoreError as e:
        raise HTTPException(status_code=500, detail="Failed to get games") from e
    return [game.to_response() for game in games]


@router.get("/key/{game_key}")
async def get_game_by_game_key(game_key: str, repo: GameRepository = Depends(get_game_repository)) -> dict:
    try:
        game = repo.find_by_game_key(game_key)
    except StoreError as e:
        raise HTTPException(status_code=500, detail="Failed to get game") from e
    if game is None:
        raise HTTPException(status_code=404, detail="Game not found")
    return game.to_response()


@router.get("/{id}")
async def get_game(id: str, repo: GameRepository = Depends(get_game_repository)) -> dict:
    try:
        game = repo.find_by_internal_id(id)
    except InvalidKeyError as e:
        raise HTTPException(status_code=400, detail="Invalid game ID format") from e
    except StoreError as e:
        raise HTTPException(status_code=500, detail="Failed to get game") from e
    if game is None:
        raise HTTPException(status_code=404, detail="Game not found")
    return game.to_response()
