"""
SportsData.io NFL API client.

Every call goes through one rate limiter: a call starts no sooner than
``delay`` seconds after the previous call started, so N calls take at least
(N - 1) x delay. Bodies are streamed and abandoned once they exceed
``max_response_bytes``. There are no retries; a failed fetch is reported to
the caller, which records it and moves on.
"""
import asyncio
import json
import time
from typing import Any, List, Optional

import httpx
from opentelemetry.sdk.trace import TracerProvider
from pydantic import TypeAdapter, ValidationError

from nfl_data_sync import __version__
from nfl_data_sync.core.config import DEFAULT_MAX_RESPONSE_BYTES, Settings
from nfl_data_sync.core.logging import get_logger, redact_api_key
from nfl_data_sync.core.tracing import instrument_httpx_client
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
from nfl_data_sync.services.sportsdata.endpoints import DEFAULT_BASE_URL, ENDPOINTS, Feed, endpoint_path
from nfl_data_sync.services.sportsdata.errors import (
    DecodeError,
    ResponseTooLargeError,
    TransportError,
    UpstreamStatusError,
)

logger = get_logger(__name__)

USER_AGENT = f"nfl-data-sync/{__version__}"


class SportsDataClient:
    """
    Rate-limited async client for the SportsData.io v3 NFL feeds.

    Usage:
        client = SportsDataClient.from_settings(settings)
        teams = await client.fetch_teams()
        games = await client.fetch_games("2023REG", 1)
        await client.close()
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        delay: float = 1.0,
        timeout: float = 10.0,
        connect_timeout: float = 5.0,
        max_response_bytes: int = DEFAULT_MAX_RESPONSE_BYTES,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            api_key: SportsData.io subscription key
            base_url: API root, without trailing slash
            delay: Minimum seconds between the starts of two calls
            timeout: Read/write/pool timeout in seconds
            connect_timeout: Connect timeout in seconds
            max_response_bytes: Largest accepted response body
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.delay = delay
        self.timeout = httpx.Timeout(timeout, connect=connect_timeout)
        self.max_response_bytes = max_response_bytes
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._rate_lock = asyncio.Lock()
        self._last_call_started: Optional[float] = None
        self._tracer_provider: Optional[TracerProvider] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "SportsDataClient":
        return cls(
            api_key=settings.SPORTSDATA_API_KEY,
            base_url=settings.SPORTSDATA_BASE_URL,
            delay=settings.API_CALL_DELAY,
            timeout=settings.API_TIMEOUT,
            connect_timeout=settings.API_CONNECT_TIMEOUT,
            max_response_bytes=settings.MAX_RESPONSE_BYTES,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
                transport=self._transport,
            )
            if self._tracer_provider is not None:
                instrument_httpx_client(self._client, self._tracer_provider)
        return self._client

    def enable_tracing(self, tracer_provider: TracerProvider) -> None:
        """Trace every upstream request made by this client."""
        self._tracer_provider = tracer_provider
        if self._client is not None:
            instrument_httpx_client(self._client, tracer_provider)

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _wait_for_slot(self) -> None:
        """Block until ``delay`` seconds have passed since the previous call started."""
        async with self._rate_lock:
            if self._last_call_started is not None:
                wait = self._last_call_started + self.delay - time.monotonic()
                if wait > 0:
                    await asyncio.sleep(wait)
            self._last_call_started = time.monotonic()

    def describe_endpoint(self, feed: Feed, **params) -> str:
        """Request path for a feed, as recorded in sync metadata (never includes the key)."""
        return endpoint_path(feed, **params)

    async def _read_capped(self, response: httpx.Response, feed: Feed) -> bytes:
        declared = response.headers.get("Content-Length")
        if declared and declared.isdigit() and int(declared) > self.max_response_bytes:
            raise ResponseTooLargeError(
                f"{feed.value} declared {declared} bytes (limit {self.max_response_bytes})", feed=feed.value
            )

        body = bytearray()
        async for chunk in response.aiter_bytes():
            body.extend(chunk)
            if len(body) > self.max_response_bytes:
                raise ResponseTooLargeError(
                    f"{feed.value} response exceeded {self.max_response_bytes} bytes", feed=feed.value
                )
        return bytes(body)

    async def fetch_payload(self, feed: Feed, **params) -> Any:
        """
        Fetch one feed and return its decoded JSON payload.

        Raises:
            TransportError: On connection, TLS or timeout failures
            UpstreamStatusError: On a non-200 response
            ResponseTooLargeError: When the body exceeds the size cap
            DecodeError: When the body is not valid JSON
        """
        path = endpoint_path(feed, **params)
        url = f"{self.base_url}{path}"
        client = await self._get_client()

        await self._wait_for_slot()
        logger.debug(f"Fetching {feed.value}: {path}", extra={"feed": feed.value, "path": path})

        try:
            async with client.stream("GET", url, params={"key": self.api_key}) as response:
                if response.status_code != 200:
                    raise UpstreamStatusError(
                        f"{feed.value} returned HTTP {response.status_code} for {path}",
                        status_code=response.status_code,
                        feed=feed.value,
                    )
                body = await self._read_capped(response, feed)
        except httpx.HTTPError as e:
            raise TransportError(
                f"{feed.value} request to {path} failed: {type(e).__name__}: {redact_api_key(str(e))}",
                feed=feed.value,
            ) from e

        try:
            return json.loads(body) if body.strip() else None
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise DecodeError(f"{feed.value} returned invalid JSON: {e}", feed=feed.value) from e

    async def fetch(self, feed: Feed, **params) -> List[SportsDataDocument]:
        """
        Fetch one feed and decode it into document models.

        Single-object feeds (play-by-play) come back as a one-element list;
        an empty or ``null`` body yields an empty list.

        Args:
            feed: Feed to request
            params: Path parameters for the feed

        Returns:
            Decoded documents
        """
        endpoint = ENDPOINTS[feed]
        payload = await self.fetch_payload(feed, **params)
        if payload is None:
            return []
        if endpoint.single:
            payload = [payload]
        try:
            return TypeAdapter(List[endpoint.document_type]).validate_python(payload)
        except ValidationError as e:
            raise DecodeError(
                f"{feed.value} payload does not match {endpoint.document_type.__name__}: "
                f"{e.error_count()} error(s), first: {e.errors()[0]['msg']}",
                feed=feed.value,
            ) from e

    # ========================================================================
    # Typed feed methods
    # ========================================================================

    async def fetch_teams(self) -> List[Team]:
        return await self.fetch(Feed.TEAMS)

    async def fetch_players(self) -> List[Player]:
        return await self.fetch(Feed.PLAYERS)

    async def fetch_stadiums(self) -> List[Stadium]:
        return await self.fetch(Feed.STADIUMS)

    async def fetch_referees(self) -> List[Referee]:
        return await self.fetch(Feed.REFEREES)

    async def fetch_depth_charts(self) -> List[TeamDepthChart]:
        return await self.fetch(Feed.DEPTH_CHARTS)

    async def fetch_standings(self, season: str) -> List[Standing]:
        return await self.fetch(Feed.STANDINGS, season=season)

    async def fetch_schedules(self, season: str) -> List[Schedule]:
        return await self.fetch(Feed.SCHEDULES, season=season)

    async def fetch_bye_weeks(self, season: str) -> List[ByeWeek]:
        return await self.fetch(Feed.BYE_WEEKS, season=season)

    async def fetch_games(self, season: str, week: int) -> List[Game]:
        """Final scores for one week of a season (``season`` like ``2023REG``)."""
        return await self.fetch(Feed.GAMES, season=season, week=week)

    async def fetch_player_game_stats(self, season: str, week: int, team: str) -> List[PlayerGameStats]:
        return await self.fetch(Feed.PLAYER_GAME_STATS, season=season, week=week, team=team)

    async def fetch_play_by_play(self, season: str, week: int, home_team: str) -> List[PlayByPlay]:
        return await self.fetch(Feed.PLAY_BY_PLAY, season=season, week=week, home_team=home_team)
