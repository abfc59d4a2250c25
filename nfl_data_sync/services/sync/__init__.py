from nfl_data_sync.services.sync.current_week import MAX_REGULAR_SEASON_WEEK, WeekDetection, detect_current_week
from nfl_data_sync.services.sync.orchestrator import (
    FeedResult,
    SyncAlreadyRunningError,
    SyncOrchestrator,
    SyncRunReport,
)
from nfl_data_sync.services.sync.staleness import StalenessTracker, feed_key

__all__ = [
    "FeedResult",
    "MAX_REGULAR_SEASON_WEEK",
    "StalenessTracker",
    "SyncAlreadyRunningError",
    "SyncOrchestrator",
    "SyncRunReport",
    "WeekDetection",
    "detect_current_week",
    "feed_key",
]
