"""
FastAPI dependencies: database sessions, stores and the orchestrator.

Everything is read from ``app.state``, which ``create_app`` fills with the
process-owned settings, database handle and orchestrator.
"""
from typing import Generator, Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from nfl_data_sync.core.config import Settings
from nfl_data_sync.core.database import Database
from nfl_data_sync.repositories import (
    GameRepository,
    PlayerRepository,
    ScheduleRepository,
    StandingRepository,
    TeamRepository,
)
from nfl_data_sync.services.sync.orchestrator import SyncOrchestrator


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_orchestrator(request: Request) -> SyncOrchestrator:
    return request.app.state.orchestrator


def get_db(database: Database = Depends(get_database)) -> Generator[Session, None, None]:
    """
    Dependency that provides a database session.

    Usage in FastAPI:
    ```python
    @router.get("/endpoint")
    def endpoint(db: Session = Depends(get_db)):
        ...
    ```
    """
    with database.session() as db:
        yield db


def get_team_repository(db: Session = Depends(get_db)) -> TeamRepository:
    return TeamRepository(db)


def get_player_repository(db: Session = Depends(get_db)) -> PlayerRepository:
    return PlayerRepository(db)


def get_game_repository(db: Session = Depends(get_db)) -> GameRepository:
    return GameRepository(db)


def get_standing_repository(db: Session = Depends(get_db)) -> StandingRepository:
    return StandingRepository(db)


def get_schedule_repository(db: Session = Depends(get_db)) -> ScheduleRepository:
    return ScheduleRepository(db)


def parse_int_param(value: Optional[str], label: str) -> Optional[int]:
    """
    Parse an optional integer query/path value by hand.

    Raises:
        HTTPException: 400 ``Invalid <label> format`` when not an integer
    """
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid {label} format") from None
