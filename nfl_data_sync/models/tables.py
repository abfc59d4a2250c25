"""
Collection tables for the NFL document store.

Each table keeps the full upstream record in ``document`` and lifts the
natural key plus the columns the read API filters on into real, indexed
columns. The natural key is enforced with a unique constraint so upserts
stay idempotent.
"""
import uuid

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def new_id() -> str:
    return str(uuid.uuid4())


class DocumentMixin:
    """Columns shared by every collection table."""

    id = Column(String(36), primary_key=True, default=new_id)
    document = Column(JSON, nullable=False)
    last_updated = Column(DateTime, nullable=False, index=True)


class TeamRecord(DocumentMixin, Base):
    __tablename__ = "teams"

    team_id = Column(Integer, nullable=False, unique=True)
    key = Column(String(8), nullable=False, unique=True)
    conference = Column(String(8), nullable=True, index=True)
    division = Column(String(16), nullable=True, index=True)


class PlayerRecord(DocumentMixin, Base):
    __tablename__ = "players"

    player_id = Column(Integer, nullable=False, unique=True)
    team = Column(String(8), nullable=True, index=True)
    position = Column(String(8), nullable=True, index=True)
    name = Column(String(255), nullable=True, index=True)


class StadiumRecord(DocumentMixin, Base):
    __tablename__ = "stadiums"

    stadium_id = Column(Integer, nullable=False, unique=True)
    name = Column(String(255), nullable=True, index=True)


class RefereeRecord(DocumentMixin, Base):
    __tablename__ = "referees"

    referee_id = Column(Integer, nullable=False, unique=True)
    name = Column(String(255), nullable=True, index=True)


class ByeWeekRecord(DocumentMixin, Base):
    __tablename__ = "bye_weeks"

    bye_id = Column(String(32), nullable=False, unique=True)
    season = Column(Integer, nullable=False)
    week = Column(Integer, nullable=False)
    team = Column(String(8), nullable=False)

    __table_args__ = (
        UniqueConstraint("season", "week", "team", name="uq_bye_weeks_season_week_team"),
        Index("ix_bye_weeks_season_week", "season", "week"),
    )


class DepthChartRecord(DocumentMixin, Base):
    __tablename__ = "depth_charts"

    team_id = Column(Integer, nullable=False, unique=True)
    team = Column(String(8), nullable=True, index=True)


class StandingRecord(DocumentMixin, Base):
    __tablename__ = "standings"

    season = Column(Integer, nullable=False)
    season_type = Column(Integer, nullable=False)
    team = Column(String(8), nullable=False, index=True)
    conference = Column(String(8), nullable=True, index=True)
    division = Column(String(16), nullable=True, index=True)

    __table_args__ = (
        UniqueConstraint("season", "season_type", "team", name="uq_standings_season_type_team"),
        Index("ix_standings_season", "season", "season_type"),
    )


class ScheduleRecord(DocumentMixin, Base):
    __tablename__ = "schedules"

    game_key = Column(String(32), nullable=False, unique=True)
    season = Column(Integer, nullable=False)
    season_type = Column(Integer, nullable=False)
    week = Column(Integer, nullable=False)
    date = Column(DateTime, nullable=True, index=True)
    home_team = Column(String(8), nullable=True, index=True)
    away_team = Column(String(8), nullable=True, index=True)
    canceled = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_schedules_season_week", "season", "season_type", "week"),
    )


class GameRecord(DocumentMixin, Base):
    __tablename__ = "games"

    game_key = Column(String(32), nullable=False, unique=True)
    season = Column(Integer, nullable=False)
    season_type = Column(Integer, nullable=False)
    week = Column(Integer, nullable=False)
    date = Column(DateTime, nullable=True, index=True)
    home_team = Column(String(8), nullable=True, index=True)
    away_team = Column(String(8), nullable=True, index=True)
    status = Column(String(32), nullable=True, index=True)

    __table_args__ = (
        Index("ix_games_season_week", "season", "season_type", "week"),
    )


class PlayerGameStatsRecord(DocumentMixin, Base):
    __tablename__ = "player_game_stats"

    player_game_id = Column(Integer, nullable=False, unique=True)
    player_id = Column(Integer, nullable=False, index=True)
    game_key = Column(String(32), nullable=True, index=True)
    season = Column(Integer, nullable=True)
    season_type = Column(Integer, nullable=True)
    week = Column(Integer, nullable=True)
    team = Column(String(8), nullable=True, index=True)

    __table_args__ = (
        Index("ix_player_game_stats_season_week", "season", "week"),
        Index("ix_player_game_stats_player_game", "player_id", "game_key"),
    )


class PlayByPlayRecord(DocumentMixin, Base):
    __tablename__ = "play_by_play"

    game_key = Column(String(32), nullable=False, unique=True)
    season = Column(Integer, nullable=True)
    season_type = Column(Integer, nullable=True)
    week = Column(Integer, nullable=True)
    home_team = Column(String(8), nullable=True, index=True)
    away_team = Column(String(8), nullable=True, index=True)

    __table_args__ = (
        Index("ix_play_by_play_season_week", "season", "week"),
    )


class SyncMetadata(Base):
    """Last fetch attempt per feed, used to decide whether a feed is stale."""
    __tablename__ = "sync_metadata"

    id = Column(String(36), primary_key=True, default=new_id)
    feed_key = Column(String(128), nullable=False, unique=True)
    endpoint = Column(String(255), nullable=False)
    timestamp = Column(DateTime, nullable=False, index=True)
    status = Column(String(16), nullable=False, index=True)  # success, error
    notes = Column(Text, nullable=True)


class SyncRunLease(Base):
    """
    Run lock shared by every process using the store.

    At most one row per lease name. The holder keeps it until it releases
    the lease or ``expires_at`` passes, after which any process may take it
    over.
    """
    __tablename__ = "sync_run_lease"

    name = Column(String(64), primary_key=True)
    owner = Column(String(128), nullable=False)
    acquired_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
