from nfl_data_sync.models.documents import (
    BYE_TEAM,
    ByeWeek,
    DepthChart,
    DepthChartSlot,
    DepthChartUnit,
    Game,
    Play,
    PlayByPlay,
    Player,
    PlayerDepthStatus,
    PlayerGameStats,
    PlayStat,
    Quarter,
    Referee,
    Schedule,
    SportsDataDocument,
    Stadium,
    Standing,
    Team,
    TeamDepthChart,
    season_type_code,
)
from nfl_data_sync.models.tables import Base, SyncMetadata, SyncRunLease

__all__ = [
    "BYE_TEAM",
    "Base",
    "ByeWeek",
    "DepthChart",
    "DepthChartSlot",
    "DepthChartUnit",
    "Game",
    "Play",
    "PlayByPlay",
    "Player",
    "PlayerDepthStatus",
    "PlayerGameStats",
    "PlayStat",
    "Quarter",
    "Referee",
    "Schedule",
    "SportsDataDocument",
    "Stadium",
    "Standing",
    "SyncMetadata",
    "SyncRunLease",
    "Team",
    "TeamDepthChart",
    "season_type_code",
]
