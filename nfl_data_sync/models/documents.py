"""
Pydantic document models for SportsData.io NFL entities.

Field aliases follow the upstream JSON names (TeamID, GameKey, ...) so that a
decoded payload can be persisted and served back unchanged. Fields the service
does not query on are not declared; ``extra="allow"`` keeps them in the stored
document.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# SportsData.io SeasonType codes
SEASON_TYPE_CODES = {"REG": 1, "PRE": 2, "POST": 3, "OFF": 4, "STAR": 5}

BYE_TEAM = "BYE"


def season_type_code(season_type: str) -> int:
    """Map a season type label (REG, PRE, POST) to the upstream integer code."""
    try:
        return SEASON_TYPE_CODES[season_type.upper()]
    except KeyError:
        raise ValueError(f"Unknown season type: {season_type}") from None


class SportsDataDocument(BaseModel):
    """Base for every stored entity: upstream fields plus bookkeeping."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    # Internal storage id, filled in when a document is read back from a store
    id: Optional[str] = Field(default=None, exclude=True)
    last_updated: Optional[datetime] = Field(default=None, alias="LastUpdated")

    def to_document(self) -> dict[str, Any]:
        """JSON-ready dict in upstream field names, as persisted."""
        return self.model_dump(by_alias=True, mode="json")

    def to_response(self) -> dict[str, Any]:
        """Stored document plus the internal ``id`` for API responses."""
        return {"id": self.id, **self.to_document()}


class Team(SportsDataDocument):
    team_id: int = Field(alias="TeamID")
    key: str = Field(alias="Key")
    city: Optional[str] = Field(default=None, alias="City")
    name: Optional[str] = Field(default=None, alias="Name")
    full_name: Optional[str] = Field(default=None, alias="FullName")
    conference: Optional[str] = Field(default=None, alias="Conference")
    division: Optional[str] = Field(default=None, alias="Division")
    stadium_id: Optional[int] = Field(default=None, alias="StadiumID")
    bye_week: Optional[int] = Field(default=None, alias="ByeWeek")


class Player(SportsDataDocument):
    player_id: int = Field(alias="PlayerID")
    team: Optional[str] = Field(default=None, alias="Team")
    number: Optional[int] = Field(default=None, alias="Number")
    first_name: Optional[str] = Field(default=None, alias="FirstName")
    last_name: Optional[str] = Field(default=None, alias="LastName")
    name: Optional[str] = Field(default=None, alias="Name")
    position: Optional[str] = Field(default=None, alias="Position")
    position_category: Optional[str] = Field(default=None, alias="PositionCategory")
    fantasy_position: Optional[str] = Field(default=None, alias="FantasyPosition")
    status: Optional[str] = Field(default=None, alias="Status")


class Stadium(SportsDataDocument):
    stadium_id: int = Field(alias="StadiumID")
    name: Optional[str] = Field(default=None, alias="Name")
    city: Optional[str] = Field(default=None, alias="City")
    state: Optional[str] = Field(default=None, alias="State")
    capacity: Optional[int] = Field(default=None, alias="Capacity")
    playing_surface: Optional[str] = Field(default=None, alias="PlayingSurface")
    type: Optional[str] = Field(default=None, alias="Type")


class Referee(SportsDataDocument):
    referee_id: int = Field(alias="RefereeID")
    name: Optional[str] = Field(default=None, alias="Name")
    number: Optional[int] = Field(default=None, alias="Number")
    position: Optional[str] = Field(default=None, alias="Position")


class ByeWeek(SportsDataDocument):
    """A team's bye; the upstream feed has no id so ``ByeID`` is derived."""

    bye_id: Optional[str] = Field(default=None, alias="ByeID")
    season: int = Field(alias="Season")
    week: int = Field(alias="Week")
    team: str = Field(alias="Team")

    @model_validator(mode="after")
    def _derive_bye_id(self) -> "ByeWeek":
        if not self.bye_id:
            self.bye_id = f"{self.season}-{self.week}-{self.team}"
        return self


# --- Depth charts -----------------------------------------------------------


class DepthChartUnit(str, Enum):
    OFFENSE = "Offense"
    DEFENSE = "Defense"
    SPECIAL_TEAMS = "SpecialTeams"


class DepthChartSlot(BaseModel):
    """One player at one position and depth in a team's chart."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    depth_chart_id: Optional[int] = Field(default=None, alias="DepthChartID")
    team_id: Optional[int] = Field(default=None, alias="TeamID")
    player_id: int = Field(alias="PlayerID")
    name: Optional[str] = Field(default=None, alias="Name")
    position_category: Optional[str] = Field(default=None, alias="PositionCategory")
    position: Optional[str] = Field(default=None, alias="Position")
    depth_order: Optional[int] = Field(default=None, alias="DepthOrder")
    updated: Optional[datetime] = Field(default=None, alias="Updated")


class PlayerDepthStatus(BaseModel):
    """Where a player sits in one team's depth chart."""

    model_config = ConfigDict(populate_by_name=True)

    team_id: int = Field(alias="TeamID")
    team: str = Field(alias="Team")
    unit: DepthChartUnit = Field(alias="Unit")
    position: Optional[str] = Field(default=None, alias="Position")
    position_category: Optional[str] = Field(default=None, alias="PositionCategory")
    depth_order: Optional[int] = Field(default=None, alias="DepthOrder")
    name: Optional[str] = Field(default=None, alias="Name")


class TeamDepthChart(SportsDataDocument):
    """Depth chart as published upstream (teams identified by id only)."""

    team_id: int = Field(alias="TeamID")
    offense: list[DepthChartSlot] = Field(default_factory=list, alias="Offense")
    defense: list[DepthChartSlot] = Field(default_factory=list, alias="Defense")
    special_teams: list[DepthChartSlot] = Field(default_factory=list, alias="SpecialTeams")

    @field_validator("offense", "defense", "special_teams", mode="before")
    @classmethod
    def _null_unit_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    def slots(self, unit: DepthChartUnit) -> list[DepthChartSlot]:
        if unit is DepthChartUnit.OFFENSE:
            return self.offense
        if unit is DepthChartUnit.DEFENSE:
            return self.defense
        return self.special_teams

    def iter_slots(self) -> Iterator[tuple[DepthChartUnit, DepthChartSlot]]:
        for unit in DepthChartUnit:
            for slot in self.slots(unit):
                yield unit, slot


class DepthChart(TeamDepthChart):
    """Stored depth chart, enriched with the team abbreviation."""

    team: str = Field(default="", alias="Team")

    @classmethod
    def compose(cls, chart: TeamDepthChart, team_key: str) -> "DepthChart":
        """Attach the resolved team abbreviation to an upstream chart."""
        data = chart.model_dump(by_alias=True)
        data["Team"] = team_key
        return cls.model_validate(data)

    def player_status(self, player_id: int) -> list[PlayerDepthStatus]:
        return [
            PlayerDepthStatus(
                team_id=self.team_id,
                team=self.team,
                unit=unit,
                position=slot.position,
                position_category=slot.position_category,
                depth_order=slot.depth_order,
                name=slot.name,
            )
            for unit, slot in self.iter_slots()
            if slot.player_id == player_id
        ]


# --- Season data ------------------------------------------------------------


class Standing(SportsDataDocument):
    season: int = Field(alias="Season")
    season_type: int = Field(alias="SeasonType")
    team: str = Field(alias="Team")
    name: Optional[str] = Field(default=None, alias="Name")
    conference: Optional[str] = Field(default=None, alias="Conference")
    division: Optional[str] = Field(default=None, alias="Division")
    wins: Optional[int] = Field(default=None, alias="Wins")
    losses: Optional[int] = Field(default=None, alias="Losses")
    ties: Optional[int] = Field(default=None, alias="Ties")
    division_rank: Optional[int] = Field(default=None, alias="DivisionRank")
    conference_rank: Optional[int] = Field(default=None, alias="ConferenceRank")


class Schedule(SportsDataDocument):
    # Null on some upstream bye rows; those rows are not stored
    game_key: Optional[str] = Field(default=None, alias="GameKey")
    season: int = Field(alias="Season")
    season_type: int = Field(alias="SeasonType")
    week: int = Field(alias="Week")
    date: Optional[datetime] = Field(default=None, alias="Date")
    away_team: Optional[str] = Field(default=None, alias="AwayTeam")
    home_team: Optional[str] = Field(default=None, alias="HomeTeam")
    stadium_id: Optional[int] = Field(default=None, alias="StadiumID")
    canceled: Optional[bool] = Field(default=False, alias="Canceled")
    status: Optional[str] = Field(default=None, alias="Status")

    @property
    def is_bye(self) -> bool:
        return BYE_TEAM in (self.home_team, self.away_team)


class Game(SportsDataDocument):
    game_key: Optional[str] = Field(default=None, alias="GameKey")
    score_id: Optional[int] = Field(default=None, alias="ScoreID")
    season: int = Field(alias="Season")
    season_type: int = Field(alias="SeasonType")
    week: int = Field(alias="Week")
    date: Optional[datetime] = Field(default=None, alias="Date")
    away_team: Optional[str] = Field(default=None, alias="AwayTeam")
    home_team: Optional[str] = Field(default=None, alias="HomeTeam")
    away_score: Optional[int] = Field(default=None, alias="AwayScore")
    home_score: Optional[int] = Field(default=None, alias="HomeScore")
    status: Optional[str] = Field(default=None, alias="Status")
    quarter: Optional[str] = Field(default=None, alias="Quarter")


class PlayerGameStats(SportsDataDocument):
    player_game_id: int = Field(alias="PlayerGameID")
    player_id: int = Field(alias="PlayerID")
    game_key: Optional[str] = Field(default=None, alias="GameKey")
    season: Optional[int] = Field(default=None, alias="Season")
    season_type: Optional[int] = Field(default=None, alias="SeasonType")
    week: Optional[int] = Field(default=None, alias="Week")
    team: Optional[str] = Field(default=None, alias="Team")
    opponent: Optional[str] = Field(default=None, alias="Opponent")
    name: Optional[str] = Field(default=None, alias="Name")
    position: Optional[str] = Field(default=None, alias="Position")
    home_or_away: Optional[str] = Field(default=None, alias="HomeOrAway")
    fantasy_points: Optional[float] = Field(default=None, alias="FantasyPoints")

    def stat(self, field: str) -> float:
        """Numeric value of an upstream stat field, 0 when absent or non-numeric."""
        value = self.to_document().get(field)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return 0.0
        return float(value)


# --- Play-by-play -----------------------------------------------------------


class PlayStat(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    play_stat_id: Optional[int] = Field(default=None, alias="PlayStatID")
    play_id: Optional[int] = Field(default=None, alias="PlayID")
    player_id: Optional[int] = Field(default=None, alias="PlayerID")
    name: Optional[str] = Field(default=None, alias="Name")
    team: Optional[str] = Field(default=None, alias="Team")


class Play(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    play_id: int = Field(alias="PlayID")
    quarter_id: Optional[int] = Field(default=None, alias="QuarterID")
    quarter_name: Optional[str] = Field(default=None, alias="QuarterName")
    sequence: int = Field(default=0, alias="Sequence")
    team: Optional[str] = Field(default=None, alias="Team")
    type: Optional[str] = Field(default=None, alias="Type")
    description: Optional[str] = Field(default=None, alias="Description")
    is_scoring_play: bool = Field(default=False, alias="IsScoringPlay")
    play_stats: list[PlayStat] = Field(default_factory=list, alias="PlayStats")

    @field_validator("play_stats", mode="before")
    @classmethod
    def _null_stats_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("is_scoring_play", mode="before")
    @classmethod
    def _null_flag_is_false(cls, value: Any) -> Any:
        return False if value is None else value

    def involves(self, player_id: int) -> bool:
        return any(stat.player_id == player_id for stat in self.play_stats)


class Quarter(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    quarter_id: Optional[int] = Field(default=None, alias="QuarterID")
    score_id: Optional[int] = Field(default=None, alias="ScoreID")
    number: Optional[int] = Field(default=None, alias="Number")
    name: Optional[str] = Field(default=None, alias="Name")
    away_team_score: Optional[int] = Field(default=None, alias="AwayTeamScore")
    home_team_score: Optional[int] = Field(default=None, alias="HomeTeamScore")


class PlayByPlay(SportsDataDocument):
    """
    Play-by-play for one game.

    Upstream nests the game identity under ``Score``; it is lifted to the top
    level so the document can be keyed and filtered by game and week.
    """

    game_key: Optional[str] = Field(default=None, alias="GameKey")
    season: Optional[int] = Field(default=None, alias="Season")
    season_type: Optional[int] = Field(default=None, alias="SeasonType")
    week: Optional[int] = Field(default=None, alias="Week")
    home_team: Optional[str] = Field(default=None, alias="HomeTeam")
    away_team: Optional[str] = Field(default=None, alias="AwayTeam")
    score: Optional[dict[str, Any]] = Field(default=None, alias="Score")
    quarters: list[Quarter] = Field(default_factory=list, alias="Quarters")
    plays: list[Play] = Field(default_factory=list, alias="Plays")

    @field_validator("quarters", "plays", mode="before")
    @classmethod
    def _null_list_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @model_validator(mode="after")
    def _lift_game_identity(self) -> "PlayByPlay":
        score = self.score or {}
        self.game_key = self.game_key or score.get("GameKey")
        if self.season is None:
            self.season = score.get("Season")
        if self.season_type is None:
            self.season_type = score.get("SeasonType")
        if self.week is None:
            self.week = score.get("Week")
        self.home_team = self.home_team or score.get("HomeTeam")
        self.away_team = self.away_team or score.get("AwayTeam")
        if not self.game_key:
            raise ValueError("play-by-play payload carries no GameKey")
        return self

    def ordered_plays(self) -> list[Play]:
        return sorted(self.plays, key=lambda play: play.sequence)

    def scoring_plays(self) -> list[Play]:
        return [play for play in self.ordered_plays() if play.is_scoring_play]

    def plays_involving(self, player_id: int) -> list[Play]:
        return [play for play in self.ordered_plays() if play.involves(player_id)]
