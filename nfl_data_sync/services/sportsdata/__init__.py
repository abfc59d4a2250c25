from nfl_data_sync.services.sportsdata.client import SportsDataClient
from nfl_data_sync.services.sportsdata.endpoints import DEFAULT_BASE_URL, Feed, endpoint_path
from nfl_data_sync.services.sportsdata.errors import (
    DecodeError,
    ResponseTooLargeError,
    SportsDataError,
    TransportError,
    UpstreamStatusError,
)

__all__ = [
    "DEFAULT_BASE_URL",
    "DecodeError",
    "Feed",
    "ResponseTooLargeError",
    "SportsDataClient",
    "SportsDataError",
    "TransportError",
    "UpstreamStatusError",
    "endpoint_path",
]
