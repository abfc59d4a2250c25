"""Shared pytest fixtures for nfl-data-sync tests."""
import json
from datetime import datetime, timedelta
from typing import AsyncGenerator, Callable, Dict, Generator, List, Optional

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from nfl_data_sync.core.config import Settings
from nfl_data_sync.core.database import Database
from nfl_data_sync.services.sportsdata import SportsDataClient
from nfl_data_sync.services.sync import SyncOrchestrator

ADMIN_TOKEN = "test-admin-token"
API_KEY = "test-key"

NFL_TEAMS = [
    ("ARI", "NFC", "West"), ("ATL", "NFC", "South"), ("BAL", "AFC", "North"), ("BUF", "AFC", "East"),
    ("CAR", "NFC", "South"), ("CHI", "NFC", "North"), ("CIN", "AFC", "North"), ("CLE", "AFC", "North"),
    ("DAL", "NFC", "East"), ("DEN", "AFC", "West"), ("DET", "NFC", "North"), ("GB", "NFC", "North"),
    ("HOU", "AFC", "South"), ("IND", "AFC", "South"), ("JAX", "AFC", "South"), ("KC", "AFC", "West"),
    ("LAC", "AFC", "West"), ("LAR", "NFC", "West"), ("LV", "AFC", "West"), ("MIA", "AFC", "East"),
    ("MIN", "NFC", "North"), ("NE", "AFC", "East"), ("NO", "NFC", "South"), ("NYG", "NFC", "East"),
    ("NYJ", "AFC", "East"), ("PHI", "NFC", "East"), ("PIT", "AFC", "North"), ("SEA", "NFC", "West"),
    ("SF", "NFC", "West"), ("TB", "NFC", "South"), ("TEN", "AFC", "South"), ("WAS", "NFC", "East"),
]


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from any .env file on the machine."""
    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        DATABASE_URL="sqlite://",
        SPORTSDATA_API_KEY=API_KEY,
        SPORTSDATA_BASE_URL="https://sportsdata.test/v3/nfl",
        SEASON=2023,
        SEASON_TYPE="REG",
        API_CALL_DELAY=0,
        ADMIN_TOKEN=ADMIN_TOKEN,
        RATE_LIMIT_ENABLED=False,
        METRICS_ENABLED=False,
        TRACING_ENABLED=False,
        LOG_JSON=False,
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def database(test_settings: Settings) -> Generator[Database, None, None]:
    """Fresh in-memory document store with every collection created."""
    database = Database.from_settings(test_settings)
    database.create_collections()
    yield database
    database.dispose()


@pytest.fixture
def db_session(database: Database) -> Generator[Session, None, None]:
    """Create fresh test database session with isolated in-memory database."""
    session = database.new_session()
    yield session
    session.close()


class FakeSportsData:
    """
    Canned SportsData.io upstream for httpx.MockTransport.

    Register a payload per request path; unknown paths answer with an empty
    array (``null`` for play-by-play). Every request path is recorded in
    ``calls``.
    """

    def __init__(self):
        self.payloads: Dict[str, object] = {}
        self.errors: Dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.calls: List[str] = []

    def serve(self, path: str, payload: object) -> None:
        self.payloads[path] = payload

    def fail(self, path: str, exc: Optional[Exception] = None, status_code: int = 500) -> None:
        def respond(request: httpx.Request) -> httpx.Response:
            if exc is not None:
                raise exc
            return httpx.Response(status_code, json={"error": "upstream failure"})

        self.errors[path] = respond

    def called(self, fragment: str) -> List[str]:
        return [path for path in self.calls if fragment in path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/v3/nfl")
        self.calls.append(path)
        if path in self.errors:
            return self.errors[path](request)
        # Play-by-play answers with a single object, or null when there is none
        default = None if path.startswith("/pbp/") else []
        return httpx.Response(200, content=json.dumps(self.payloads.get(path, default)).encode())


@pytest.fixture
def fake_upstream() -> FakeSportsData:
    return FakeSportsData()


@pytest.fixture
async def sportsdata_client(
    test_settings: Settings, fake_upstream: FakeSportsData
) -> AsyncGenerator[SportsDataClient, None]:
    client = SportsDataClient(
        api_key=API_KEY,
        base_url=test_settings.SPORTSDATA_BASE_URL,
        delay=0,
        transport=httpx.MockTransport(fake_upstream.handler),
    )
    yield client
    await client.close()


@pytest.fixture
def orchestrator_factory(database: Database, test_settings: Settings):
    """Build an orchestrator over the test store with a fixed clock."""

    def build(client: SportsDataClient, now: Optional[datetime] = None) -> SyncOrchestrator:
        clock_time = now or datetime(2023, 9, 1, 12, 0)
        return SyncOrchestrator(database, client, test_settings, clock=lambda: clock_time)

    return build


@pytest.fixture
def app(test_settings: Settings, database: Database):
    from nfl_data_sync.main import create_app

    client = SportsDataClient.from_settings(test_settings)
    return create_app(settings=test_settings, database=database, client=client)


@pytest.fixture
def test_client(app):
    """
    Create FastAPI TestClient over the in-memory store.

    Note: We don't use context manager (with TestClient) so the lifespan
    does not dispose the shared in-memory database between tests.
    """
    from fastapi.testclient import TestClient

    return TestClient(app)


@pytest.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client sharing the test's event loop with background syncs."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def admin_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


# =============================================================================
# UPSTREAM PAYLOAD BUILDERS
# =============================================================================


def team_payload(index: int, key: str, conference: str = "AFC", division: str = "West") -> dict:
    return {
        "TeamID": index,
        "Key": key,
        "City": f"City {key}",
        "Name": f"Team {key}",
        "FullName": f"City {key} Team {key}",
        "Conference": conference,
        "Division": division,
        "StadiumID": index,
    }


def all_teams_payload() -> List[dict]:
    return [team_payload(i, key, conf, div) for i, (key, conf, div) in enumerate(NFL_TEAMS, start=1)]


def schedule_payload(
    game_key: str,
    week: int,
    home: str,
    away: str,
    date: datetime,
    season: int = 2023,
    canceled: bool = False,
) -> dict:
    return {
        "GameKey": game_key,
        "Season": season,
        "SeasonType": 1,
        "Week": week,
        "Date": date.isoformat(),
        "HomeTeam": home,
        "AwayTeam": away,
        "Canceled": canceled,
        "Status": "Scheduled",
    }


def game_payload(game_key: str, week: int, home: str, away: str, season: int = 2023, status: str = "Final") -> dict:
    return {
        "GameKey": game_key,
        "ScoreID": int(game_key[-3:]),
        "Season": season,
        "SeasonType": 1,
        "Week": week,
        "Date": (datetime(season, 9, 7, 20, 20) + timedelta(weeks=week - 1)).isoformat(),
        "HomeTeam": home,
        "AwayTeam": away,
        "HomeScore": 21,
        "AwayScore": 20,
        "Status": status,
    }


def player_stats_payload(player_game_id: int, player_id: int, team: str, week: int, fantasy_points: float, **stats) -> dict:
    return {
        "PlayerGameID": player_game_id,
        "PlayerID": player_id,
        "GameKey": f"2023101{week:02d}",
        "Season": 2023,
        "SeasonType": 1,
        "Week": week,
        "Team": team,
        "Name": f"Player {player_id}",
        "FantasyPoints": fantasy_points,
        **stats,
    }


def play_by_play_payload(game_key: str, week: int, home: str, away: str) -> dict:
    return {
        "Score": {
            "GameKey": game_key,
            "Season": 2023,
            "SeasonType": 1,
            "Week": week,
            "HomeTeam": home,
            "AwayTeam": away,
        },
        "Quarters": [{"QuarterID": 1, "Number": 1, "Name": "1"}],
        "Plays": [
            {
                "PlayID": 2,
                "Sequence": 2,
                "Team": home,
                "Description": "Touchdown pass",
                "IsScoringPlay": True,
                "PlayStats": [{"PlayStatID": 20, "PlayerID": 4314, "Team": home}],
            },
            {
                "PlayID": 1,
                "Sequence": 1,
                "Team": away,
                "Description": "Kickoff",
                "IsScoringPlay": None,
                "PlayStats": None,
            },
        ],
    }
