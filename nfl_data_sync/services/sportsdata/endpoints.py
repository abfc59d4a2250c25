"""
SportsData.io v3 NFL feed catalogue.

Paths are relative to the configured base URL (by default
``https://api.sportsdata.io/v3/nfl``); the API key is always sent as the
``key`` query parameter. ``{season}`` is the season parameter, e.g. ``2023REG``.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Type

from nfl_data_sync.models import (
    ByeWeek,
    Game,
    PlayByPlay,
    Player,
    PlayerGameStats,
    Referee,
    Schedule,
    SportsDataDocument,
    Stadium,
    Standing,
    Team,
    TeamDepthChart,
)

DEFAULT_BASE_URL = "https://api.sportsdata.io/v3/nfl"


class Feed(str, Enum):
    TEAMS = "TeamsBasic"
    PLAYERS = "PlayersByAvailable"
    STADIUMS = "Stadiums"
    REFEREES = "Referees"
    DEPTH_CHARTS = "DepthCharts"
    STANDINGS = "Standings"
    SCHEDULES = "Schedules"
    BYE_WEEKS = "Byes"
    GAMES = "ScoresFinal"
    PLAYER_GAME_STATS = "PlayerGameStatsByTeamFinal"
    PLAY_BY_PLAY = "PlayByPlayFinal"


@dataclass(frozen=True)
class Endpoint:
    path: str
    document_type: Type[SportsDataDocument]
    # The upstream answers with one object rather than an array
    single: bool = False


ENDPOINTS: dict[Feed, Endpoint] = {
    Feed.TEAMS: Endpoint("/scores/json/TeamsBasic", Team),
    Feed.PLAYERS: Endpoint("/scores/json/PlayersByAvailable", Player),
    Feed.STADIUMS: Endpoint("/scores/json/Stadiums", Stadium),
    Feed.REFEREES: Endpoint("/scores/json/Referees", Referee),
    Feed.DEPTH_CHARTS: Endpoint("/scores/json/DepthCharts", TeamDepthChart),
    Feed.STANDINGS: Endpoint("/scores/json/Standings/{season}", Standing),
    Feed.SCHEDULES: Endpoint("/scores/json/Schedules/{season}", Schedule),
    Feed.BYE_WEEKS: Endpoint("/scores/json/Byes/{season}", ByeWeek),
    Feed.GAMES: Endpoint("/stats/json/ScoresFinal/{season}/{week}", Game),
    Feed.PLAYER_GAME_STATS: Endpoint(
        "/stats/json/PlayerGameStatsByTeamFinal/{season}/{week}/{team}", PlayerGameStats
    ),
    Feed.PLAY_BY_PLAY: Endpoint("/pbp/json/PlayByPlayFinal/{season}/{week}/{home_team}", PlayByPlay, single=True),
}


def endpoint_path(feed: Feed, **params) -> str:
    """
    Build the request path for a feed.

    Args:
        feed: Feed to request
        params: Path parameters (season, week, team, home_team)

    Returns:
        Path relative to the base URL, without the API key

    Raises:
        ValueError: If a path parameter the feed needs is missing
    """
    template = ENDPOINTS[feed].path
    try:
        return template.format(**params)
    except KeyError as e:
        raise ValueError(f"{feed.value} requires parameter {e.args[0]!r}") from None
