from fastapi import APIRouter

from nfl_data_sync.api.routes import admin, games, health, players, schedules, standings, teams

api_router = APIRouter()
api_router.include_router(teams.router)
api_router.include_router(players.router)
api_router.include_router(games.router)
api_router.include_router(standings.router)
api_router.include_router(schedules.router)
api_router.include_router(admin.router)

__all__ = ["api_router", "health"]
