"""Player read endpoints."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from nfl_data_sync.api.dependencies import get_player_repository, parse_int_param
from nfl_data_sync.repositories import InvalidKeyError, PlayerRepository, StoreError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/players", tags=["players"])


@router.get("")
async def list_players(
    team: Optional[str] = None,
    position: Optional[str] = None,
    repo: PlayerRepository = Depends(get_player_repository),
) -> List[dict]:
    """
    List players.

    - **team**: Filter by team abbreviation
    - **position**: Filter by position (QB, WR, ...)
    """
    try:
        players = repo.search(team=team, position=position)
    except StoreError as e:
        raise HTTPException(status_code=500, detail="Failed to get players") from e
    return [player.to_response() for player in players]


@router.get("/pid/{player_id}")
async def get_player_by_player_id(player_id: str, repo: PlayerRepository = Depends(get_player_repository)) -> dict:
    pid = parse_int_param(player_id, "player ID")
    try:
        player = repo.find_by_player_id(pid)
    except StoreError as e:
        raise HTTPException(status_code=500, detail="Failed to get player") from e
    if player is None:
        raise HTTPException(status_code=404, detail="Player not found")
    return player.to_response()


@router.get("/{id}")
async def get_player(id: str, repo: PlayerRepository = Depends(get_player_repository)) -> dict:
    try:
        player = repo.find_by_internal_id(id)
    except InvalidKeyError as e:
        raise HTTPException(status_code=400, detail="Invalid player ID format") from e
    except StoreError as e:
        raise HTTPException(status_code=500, detail="Failed to get player") from e
    if player is None:
        raise HTTPException(status_code=404, detail="Player not found")
    return player.to_response()
