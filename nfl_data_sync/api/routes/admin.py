"""Admin routes: start a background sync and inspect sync health.

Both routes require ``Authorization: Bearer <ADMIN_TOKEN>``.
"""
import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from nfl_data_sync.api.dependencies import get_app_settings, get_orchestrator, parse_int_param
from nfl_data_sync.core.auth import require_admin_token
from nfl_data_sync.core.config import Settings
from nfl_data_sync.repositories import StoreError
from nfl_data_sync.services.sync.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin_token)])

MIN_SEASON = 1920
MAX_SEASON = 2100


@router.post("/sync", status_code=status.HTTP_202_ACCEPTED)
async def trigger_sync(
    season: Optional[str] = None,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
    settings: Settings = Depends(get_app_settings),
) -> Dict:
    """
    Start a full sync for one season in the background.

    The run continues after this response is sent. Returns 409 while a run
    is already in progress in this or any other process.

    - **season**: Season year (defaults to the configured season)
    """
    season_value = parse_int_param(season, "season")
    if season_value is None:
        season_value = settings.SEASON
    elif not MIN_SEASON <= season_value <= MAX_SEASON:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid season format")

    try:
        task = orchestrator.try_start_background(season_value)
    except StoreError as e:
        raise HTTPException(status_code=500, detail="Failed to start data synchronization") from e
    if task is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A data synchronization is already in progress",
        )

    logger.info(f"Data synchronization triggered for season {season_value}")
    return {"message": "Data synchronization started", "season": str(season_value)}


@router.get("/sync/status")
async def get_sync_status(orchestrator: SyncOrchestrator = Depends(get_orchestrator)) -> Dict:
    """
    Get overall sync health status.

    Returns the last attempt of every feed, the overall health
    (healthy, degraded, unhealthy) and whether a run is in progress.
    """
    try:
        return orchestrator.get_sync_status()
    except StoreError as e:
        raise HTTPException(status_code=500, detail="Failed to get sync status") from e
