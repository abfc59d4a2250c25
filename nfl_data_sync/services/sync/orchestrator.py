"""Sync orchestrator for pulling SportsData.io NFL feeds into the document store.

A run for one season walks these stages in order:
- Reference data: teams, stadiums, referees, bye weeks (staleness-checked)
- Players, then depth charts (depth charts need team abbreviations)
- Season data: standings and schedules (always refreshed)
- Current-week detection from the stored schedule
- Weekly loop 1..current week: final scores, player game stats per team
  playing that week, play-by-play per home team

Each feed is independent: a failing feed is logged and recorded as an error
in sync metadata, and the run carries on. Only one run executes at a time
across every process sharing the store: a run holds an in-memory lock and a
lease row in the store, and a second trigger while either is held is
rejected.
"""
import asyncio
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode, Tracer

from nfl_data_sync.core.config import Settings, get_settings
from nfl_data_sync.core.database import Database
from nfl_data_sync.core.logging import feed_context, sync_run_context
from nfl_data_sync.models import BYE_TEAM, DepthChart, TeamDepthChart, season_type_code
from nfl_data_sync.repositories import BulkUpsertResult, DocumentRepository, EntityStores, StoreError
from nfl_data_sync.services.sportsdata import Feed, SportsDataClient
from nfl_data_sync.services.sync.current_week import WeekDetection, detect_current_week
from nfl_data_sync.services.sync.run_lease import RunLease, new_owner_id
from nfl_data_sync.services.sync.staleness import (
    BYE_WEEKS_MAX_AGE_HOURS,
    DEPTH_CHARTS_MAX_AGE_HOURS,
    PLAYERS_MAX_AGE_HOURS,
    REFEREES_MAX_AGE_HOURS,
    STADIUMS_MAX_AGE_HOURS,
    STATUS_ERROR,
    STATUS_SUCCESS,
    TEAMS_MAX_AGE_HOURS,
    StalenessTracker,
    feed_key,
)
from nfl_data_sync.utils.timezone import utcnow

logger = logging.getLogger(__name__)

STATUS_SKIPPED = "skipped"


class SyncAlreadyRunningError(RuntimeError):
    """A sync run is already in flight."""


@dataclass
class FeedResult:
    """Outcome of one feed within a run."""

    feed_key: str
    status: str  # success, error, skipped
    created: int = 0
    updated: int = 0
    failed: int = 0
    error: Optional[str] = None


@dataclass
class SyncRunReport:
    season: int
    season_param: str
    started_at: datetime
    correlation_id: str = ""
    finished_at: Optional[datetime] = None
    current_week: Optional[int] = None
    week_fallback: bool = False
    feeds: List[FeedResult] = field(default_factory=list)

    def _with_status(self, status: str) -> List[FeedResult]:
        return [result for result in self.feeds if result.status == status]

    @property
    def succeeded(self) -> List[FeedResult]:
        return self._with_status(STATUS_SUCCESS)

    @property
    def failed(self) -> List[FeedResult]:
        return self._with_status(STATUS_ERROR)

    @property
    def skipped(self) -> List[FeedResult]:
        return self._with_status(STATUS_SKIPPED)

    def result_for(self, key: str) -> Optional[FeedResult]:
        return next((result for result in self.feeds if result.feed_key == key), None)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat()
        data["finished_at"] = self.finished_at.isoformat() if self.finished_at else None
        data["summary"] = {
            "succeeded": len(self.succeeded),
            "failed": len(self.failed),
            "skipped": len(self.skipped),
        }
        return data


@dataclass
class _RunContext:
    """State shared by the stages of one run."""

    season: int
    season_param: str
    season_type: int
    stores: EntityStores
    tracker: StalenessTracker
    report: SyncRunReport


class SyncOrchestrator:
    """
    Coordinates full NFL data syncs.

    The orchestrator owns the run lock; both the scheduler and the HTTP
    trigger go through it. Each run opens its own database session, so a
    background run does not depend on the request that started it.
    """

    def __init__(
        self,
        database: Database,
        client: SportsDataClient,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
        tracer: Optional[Tracer] = None,
    ):
        """
        Initialize the sync orchestrator.

        Args:
            database: Process-owned database handle
            client: SportsData.io client (shared rate limiter)
            settings: Application settings (season, season type)
            clock: Source of "now" for current-week detection
            tracer: OpenTelemetry tracer for run and feed spans (global tracer when omitted)
        """
        self.database = database
        self.client = client
        self.settings = settings or get_settings()
        self.clock = clock
        self.last_report: Optional[SyncRunReport] = None
        self._run_lock = asyncio.Lock()
        self._background_task: Optional[asyncio.Task] = None
        self.tracer = tracer or trace.get_tracer(__name__)
        self.owner_id = new_owner_id()
        self.run_lease = RunLease(database, ttl_minutes=self.settings.SYNC_LEASE_TTL_MINUTES)

    # ========================================================================
    # Run control
    # ========================================================================

    @property
    def is_running(self) -> bool:
        """True while this orchestrator has a run in flight."""
        task = self._background_task
        return self._run_lock.locked() or (task is not None and not task.done())

    def active_run_owner(self) -> Optional[str]:
        """
        Owner of the run lease in the shared store, from any process.

        Raises:
            StoreError: If the lease cannot be read
        """
        return self.run_lease.holder()

    async def sync_all(self) -> SyncRunReport:
        """Full sync of the configured season."""
        return await self.sync_season(self.settings.SEASON)

    async def sync_season(self, season: int) -> SyncRunReport:
        """
        Run every stage for one season.

        Feed failures never propagate; they are visible in the report and in
        sync metadata.

        Raises:
            SyncAlreadyRunningError: If this orchestrator or another process is
                already running a sync
            StoreError: If the run lease cannot be claimed
        """
        if self._run_lock.locked():
            raise SyncAlreadyRunningError(f"A sync run is already in progress; season {season} not started")
        async with self._run_lock:
            self._claim_lease(season)
            return await self._run_and_release(season)

    def try_start_background(self, season: int) -> Optional[asyncio.Task]:
        """
        Start a run as a detached task.

        The run lease is claimed before the task is created, so a second
        trigger from any process is refused right away.

        Returns:
            The task, or None when a run is already in flight

        Raises:
            StoreError: If the run lease cannot be claimed
        """
        if self.is_running:
            logger.warning(f"Sync for season {season} rejected: a run is already in progress")
            return None
        try:
            self._claim_lease(season)
        except SyncAlreadyRunningError:
            return None

        task = asyncio.create_task(self._run_claimed(season), name=f"nfl-sync-{season}")
        task.add_done_callback(self._on_background_done)
        self._background_task = task
        logger.info(f"Background sync started for season {season}")
        return task

    def _claim_lease(self, season: int) -> None:
        if not self.run_lease.try_acquire(self.owner_id):
            logger.warning(
                f"Sync for season {season} rejected: another process holds the run lease",
                extra={"owner": self.owner_id},
            )
            raise SyncAlreadyRunningError(f"Another process is running a sync; season {season} not started")

    async def _run_claimed(self, season: int) -> SyncRunReport:
        async with self._run_lock:
            return await self._run_and_release(season)

    async def _run_and_release(self, season: int) -> SyncRunReport:
        try:
            report = await self._run(season)
        finally:
            self.run_lease.release(self.owner_id)
        self.last_report = report
        return report

    def _on_background_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            # A task cancelled before it started never reached its finally block
            self.run_lease.release(self.owner_id)
            logger.warning(f"Background sync {task.get_name()} was cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Background sync {task.get_name()} failed: {error}", exc_info=error)

    async def wait_until_idle(self) -> None:
        """Wait for an in-flight run (background or direct) to finish."""
        task = self._background_task
        if task is not None and not task.done():
            await asyncio.wait([task])
        async with self._run_lock:
            pass

    # ========================================================================
    # Stages
    # ========================================================================

    async def _run(self, season: int) -> SyncRunReport:
        season_type = self.settings.SEASON_TYPE
        season_param = f"{season}{season_type}"

        with sync_run_context() as correlation_id, feed_context(season=season_param), \
                self.tracer.start_as_current_span("nfl_sync.run", attributes={"nfl.season": season_param}) as span:
            report = SyncRunReport(
                season=season,
                season_param=season_param,
                started_at=utcnow(),
                correlation_id=correlation_id,
            )
            logger.info(f"Starting NFL data sync for {season_param}")

            with self.database.session() as db:
                ctx = _RunContext(
                    season=season,
                    season_param=season_param,
                    season_type=season_type_code(season_type),
                    stores=EntityStores.for_session(db),
                    tracker=StalenessTracker(db),
                    report=report,
                )
                await self._sync_reference_data(ctx)
                await self._sync_players_and_depth_charts(ctx)
                await self._sync_season_data(ctx)

                detection = self._detect_current_week(ctx)
                report.current_week = detection.week
                report.week_fallback = detection.is_fallback

                await self._sync_weekly_data(ctx, detection.week)

            report.finished_at = utcnow()
            span.set_attributes({
                "nfl.current_week": report.current_week,
                "nfl.feeds.succeeded": len(report.succeeded),
                "nfl.feeds.failed": len(report.failed),
                "nfl.feeds.skipped": len(report.skipped),
            })
            logger.info(
                f"NFL data sync for {season_param} finished: "
                f"{len(report.succeeded)} succeeded, {len(report.failed)} failed, "
                f"{len(report.skipped)} skipped",
                extra={"current_week": report.current_week},
            )
        return report

    async def _sync_reference_data(self, ctx: _RunContext) -> None:
        """Teams, stadiums, referees and bye weeks; each on its own freshness window."""
        stores = ctx.stores
        await self._run_feed(
            ctx, Feed.TEAMS, self.client.fetch_teams, stores.teams.upsert_many,
            max_age_hours=TEAMS_MAX_AGE_HOURS,
        )
        await self._run_feed(
            ctx, Feed.STADIUMS, self.client.fetch_stadiums, stores.stadiums.upsert_many,
            max_age_hours=STADIUMS_MAX_AGE_HOURS,
        )
        await self._run_feed(
            ctx, Feed.REFEREES, self.client.fetch_referees, stores.referees.upsert_many,
            max_age_hours=REFEREES_MAX_AGE_HOURS,
        )
        await self._run_feed(
            ctx, Feed.BYE_WEEKS,
            lambda: self.client.fetch_bye_weeks(ctx.season_param),
            stores.bye_weeks.upsert_many,
            max_age_hours=BYE_WEEKS_MAX_AGE_HOURS,
            season=ctx.season_param,
        )

    async def _sync_players_and_depth_charts(self, ctx: _RunContext) -> None:
        await self._run_feed(
            ctx, Feed.PLAYERS, self.client.fetch_players, ctx.stores.players.upsert_many,
            max_age_hours=PLAYERS_MAX_AGE_HOURS,
        )
        await self._run_feed(
            ctx, Feed.DEPTH_CHARTS, self.client.fetch_depth_charts,
            lambda charts: self._store_depth_charts(ctx, charts),
            max_age_hours=DEPTH_CHARTS_MAX_AGE_HOURS,
        )

    async def _sync_season_data(self, ctx: _RunContext) -> None:
        """Standings and schedules, refreshed on every run."""
        await self._run_feed(
            ctx, Feed.STANDINGS,
            lambda: self.client.fetch_standings(ctx.season_param),
            ctx.stores.standings.upsert_many,
            season=ctx.season_param,
        )
        await self._run_feed(
            ctx, Feed.SCHEDULES,
            lambda: self.client.fetch_schedules(ctx.season_param),
            lambda schedules: self._store_keyed(ctx.stores.schedules, schedules),
            season=ctx.season_param,
        )

    def _detect_current_week(self, ctx: _RunContext) -> WeekDetection:
        try:
            schedules = ctx.stores.schedules.find_by_season(ctx.season, ctx.season_type)
        except StoreError as e:
            logger.warning(f"Could not read schedules for week detection: {e}")
            schedules = []

        detection = detect_current_week(self.clock(), schedules)
        if detection.is_fallback:
            logger.warning(
                f"No upcoming game in the {ctx.season_param} schedule; "
                f"syncing weeks 1-{detection.week}",
                extra={"week": detection.week},
            )
        else:
            logger.info(
                f"Current week for {ctx.season_param} is {detection.week}",
                extra={"week": detection.week},
            )
        return detection

    async def _sync_weekly_data(self, ctx: _RunContext, current_week: int) -> None:
        for week in range(1, current_week + 1):
            # A long weekly loop must not outlive the lease
            self.run_lease.renew(self.owner_id)
            with feed_context(week=week):
                await self._sync_week(ctx, week)

    async def _sync_week(self, ctx: _RunContext, week: int) -> None:
        season = ctx.season_param
        await self._run_feed(
            ctx, Feed.GAMES,
            lambda: self.client.fetch_games(season, week),
            lambda games: self._store_keyed(ctx.stores.games, games),
            season=season, week=week,
        )

        matchups = self._matchups_for_week(ctx, week)
        if not matchups:
            logger.warning(f"No matchups known for {season} week {week}; skipping per-team feeds")
            return

        teams = sorted({team for matchup in matchups for team in matchup})
        for team in teams:
            await self._run_feed(
                ctx, Feed.PLAYER_GAME_STATS,
                lambda team=team: self.client.fetch_player_game_stats(season, week, team),
                ctx.stores.player_game_stats.upsert_many,
                season=season, week=week, team=team,
            )

        home_teams = sorted({home for home, _ in matchups})
        for home_team in home_teams:
            await self._run_feed(
                ctx, Feed.PLAY_BY_PLAY,
                lambda home_team=home_team: self.client.fetch_play_by_play(season, week, home_team),
                ctx.stores.play_by_play.upsert_many,
                season=season, week=week, team=home_team, param_name="home_team",
            )

    # ========================================================================
    # Helpers
    # ========================================================================

    async def _run_feed(
        self,
        ctx: _RunContext,
        feed: Feed,
        fetch: Callable[[], Awaitable[Sequence[Any]]],
        persist: Callable[[Sequence[Any]], BulkUpsertResult],
        max_age_hours: Optional[float] = None,
        season: Optional[str] = None,
        week: Optional[int] = None,
        team: Optional[str] = None,
        param_name: str = "team",
    ) -> FeedResult:
        """
        Fetch and store one feed, recording the attempt.

        The feed runs inside its own span and log context, so every line it
        logs carries the feed, season, week and team.

        Returns:
            FeedResult for the feed; never raises for fetch or store failures
        """
        key = feed_key(feed.value, season, week, team)
        params: Dict[str, Any] = {}
        if season:
            params["season"] = season
        if week is not None:
            params["week"] = week
        if team:
            params[param_name] = team
        endpoint = self.client.describe_endpoint(feed, **params)

        span_attributes = {"nfl.feed": feed.value, "nfl.feed_key": key, "nfl.endpoint": endpoint}
        span_attributes.update({f"nfl.{name}": value for name, value in params.items()})

        with feed_context(feed=feed.value, feed_key=key, team=team), \
                self.tracer.start_as_current_span(f"nfl_sync.feed {feed.value}", attributes=span_attributes) as span:
            if max_age_hours is not None and not self._is_due(ctx, key, max_age_hours):
                logger.info(f"Skipping {key}: refreshed within the last {max_age_hours}h")
                result = FeedResult(key, STATUS_SKIPPED)
            else:
                result = await self._fetch_and_store(ctx, key, endpoint, fetch, persist, span)
            span.set_attribute("nfl.sync.status", result.status)

        ctx.report.feeds.append(result)
        return result

    async def _fetch_and_store(
        self,
        ctx: _RunContext,
        key: str,
        endpoint: str,
        fetch: Callable[[], Awaitable[Sequence[Any]]],
        persist: Callable[[Sequence[Any]], BulkUpsertResult],
        span: Any,
    ) -> FeedResult:
        try:
            documents = await fetch()
            outcome = persist(documents)
        except Exception as e:
            logger.error(f"Feed {key} failed: {type(e).__name__}: {e}", exc_info=True)
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, f"{type(e).__name__}: {e}"))
            ctx.tracker.record_attempt(key, endpoint, STATUS_ERROR, f"{type(e).__name__}: {e}")
            return FeedResult(key, STATUS_ERROR, error=str(e))

        notes = (
            f"fetched {len(documents)}, created {outcome.created}, "
            f"updated {outcome.updated}, failed {outcome.failed}"
        )
        span.set_attributes({
            "nfl.documents.fetched": len(documents),
            "nfl.documents.created": outcome.created,
            "nfl.documents.updated": outcome.updated,
            "nfl.documents.failed": outcome.failed,
        })
        if outcome.total and outcome.written == 0:
            logger.error(f"Feed {key}: no document could be stored ({notes})")
            span.set_status(Status(StatusCode.ERROR, "no document could be stored"))
            result = FeedResult(key, STATUS_ERROR, failed=outcome.failed, error="no document could be stored")
        else:
            logger.info(f"Feed {key}: {notes}")
            result = FeedResult(
                key, STATUS_SUCCESS,
                created=outcome.created, updated=outcome.updated, failed=outcome.failed,
            )
        ctx.tracker.record_attempt(key, endpoint, result.status, notes)
        return result

    def _is_due(self, ctx: _RunContext, key: str, max_age_hours: float) -> bool:
        try:
            return ctx.tracker.is_update_needed(key, max_age_hours)
        except StoreError as e:
            logger.warning(f"Could not read staleness for {key}, refreshing: {e}")
            return True

    def _store_keyed(self, store: DocumentRepository, documents: Sequence[Any]) -> BulkUpsertResult:
        """Upsert game-keyed documents, ignoring upstream rows with no GameKey."""
        keyed = [document for document in documents if document.game_key]
        if len(keyed) < len(documents):
            logger.debug(f"Ignoring {len(documents) - len(keyed)} {store.collection} rows without GameKey")
        return store.upsert_many(keyed)

    def _store_depth_charts(self, ctx: _RunContext, charts: Sequence[TeamDepthChart]) -> BulkUpsertResult:
        composed = [DepthChart.compose(chart, self._team_key_for(ctx, chart.team_id)) for chart in charts]
        return ctx.stores.depth_charts.upsert_many(composed)

    def _team_key_for(self, ctx: _RunContext, team_id: int) -> str:
        """Team abbreviation for a TeamID, or "" when the team is unknown."""
        try:
            team = ctx.stores.teams.find_by_team_id(team_id)
        except StoreError as e:
            logger.warning(f"Team lookup for TeamID {team_id} failed; storing depth chart without abbreviation: {e}")
            return ""
        if team is None:
            logger.warning(
                f"No team with TeamID {team_id}; storing depth chart without abbreviation",
                extra={"team_id": team_id},
            )
            return ""
        return team.key

    def _matchups_for_week(self, ctx: _RunContext, week: int) -> List[Tuple[str, str]]:
        """(home, away) pairs playing in a week, from the schedule, else from stored games."""
        try:
            entries = ctx.stores.schedules.find_by_week(ctx.season, week, ctx.season_type)
            matchups = [
                (entry.home_team, entry.away_team)
                for entry in entries
                if not entry.canceled and not entry.is_bye and entry.home_team and entry.away_team
            ]
            if not matchups:
                games = ctx.stores.games.find_by_week(ctx.season, week, ctx.season_type)
                matchups = [
                    (game.home_team, game.away_team)
                    for game in games
                    if game.home_team and game.away_team and BYE_TEAM not in (game.home_team, game.away_team)
                ]
        except StoreError as e:
            logger.warning(f"Could not read matchups for week {week}: {e}", extra={"week": week})
            return []
        return matchups

    # ========================================================================
    # Status
    # ========================================================================

    def get_sync_status(self) -> Dict:
        """
        Return overall sync health status.

        Aggregates the last attempt of every feed in sync metadata. A run
        counts as in progress when this orchestrator is running one or any
        process holds the run lease.

        Returns:
            Dict with overall sync health
        """
        with self.database.session() as db:
            attempts = StalenessTracker(db).list_attempts()
            feeds = {
                attempt.feed_key: {
                    "status": attempt.status,
                    "endpoint": attempt.endpoint,
                    "timestamp": attempt.timestamp.isoformat() if attempt.timestamp else None,
                    "notes": attempt.notes,
                }
                for attempt in attempts
            }

        run_owner = self.active_run_owner()

        total_feeds = len(feeds)
        success_count = sum(1 for feed in feeds.values() if feed["status"] == STATUS_SUCCESS)
        if total_feeds == 0:
            health_status = "unknown"
        else:
            health_status = (
                "healthy" if success_count == total_feeds else "degraded" if success_count > 0 else "unhealthy"
            )

        return {
            "health_status": health_status,
            "is_running": self.is_running or run_owner is not None,
            "run_owner": run_owner,
            "total_feeds": total_feeds,
            "success_count": success_count,
            "failed_feeds": sorted(key for key, feed in feeds.items() if feed["status"] == STATUS_ERROR),
            "feeds": feeds,
            "last_run": self.last_report.to_dict() if self.last_report else None,
        }
