"""Liveness endpoint."""
from fastapi import APIRouter, Depends

from nfl_data_sync.api.dependencies import get_app_settings
from nfl_data_sync.core.config import Settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(settings: Settings = Depends(get_app_settings)) -> dict:
    return {"status": "ok", "version": settings.APP_VERSION}
