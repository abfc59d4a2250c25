"""Integration tests for SyncOrchestrator.

Test Strategy:
1. Full runs against a canned upstream (httpx.MockTransport)
2. One failing feed never stops the others
3. Staleness windows skip fresh reference feeds
4. Week detection bounds the weekly loop
5. Weekly fan-out per team and per home team
6. Run lock rejects overlapping runs
7. get_sync_status() aggregates the sync metadata

Each test follows the pattern:
- Given: Empty document store and a canned upstream
- When: SyncOrchestrator method is called
- Then: Correct report, stored documents and sync metadata
"""
import asyncio
from datetime import datetime, timedelta

import httpx
import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode

from nfl_data_sync.core.database import Database
from nfl_data_sync.core.scheduler import SyncScheduler
from nfl_data_sync.models import SyncRunLease
from nfl_data_sync.repositories import EntityStores
from nfl_data_sync.services.sportsdata import SportsDataClient
from nfl_data_sync.services.sync import SyncAlreadyRunningError, SyncOrchestrator
from nfl_data_sync.services.sync.orchestrator import STATUS_SKIPPED
from nfl_data_sync.services.sync.run_lease import FULL_SYNC_LEASE, RunLease
from nfl_data_sync.services.sync.staleness import STATUS_ERROR, STATUS_SUCCESS, StalenessTracker

# Import helpers from conftest
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))
from conftest import (
    FakeSportsData,
    all_teams_payload,
    game_payload,
    play_by_play_payload,
    player_stats_payload,
    schedule_payload,
)

NOW = datetime(2023, 9, 1, 12, 0)
SEASON = "2023REG"


def attempts_by_key(database: Database) -> dict:
    with database.session() as db:
        return {a.feed_key: a.status for a in StalenessTracker(db).list_attempts()}


def count(database: Database, store: str) -> int:
    with database.session() as db:
        return getattr(EntityStores.for_session(db), store).count()


class TestSyncOrchestrator:
    """Integration tests for sync orchestration."""

    # Partial failure
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_failing_feed_does_not_stop_the_others(
        self, database, fake_upstream: FakeSportsData, sportsdata_client, orchestrator_factory
    ):
        """A transport error on one reference feed is isolated to that feed."""
        fake_upstream.serve("/scores/json/TeamsBasic", all_teams_payload())
        fake_upstream.serve("/scores/json/Referees", [{"RefereeID": 1, "Name": "Shawn Smith"}])
        fake_upstream.serve(f"/scores/json/Byes/{SEASON}", [{"Season": 2023, "Week": 10, "Team": "KC"}])
        fake_upstream.fail("/scores/json/Stadiums", exc=httpx.ConnectError("connection refused"))

        orchestrator = orchestrator_factory(sportsdata_client)
        report = await orchestrator.sync_season(2023)

        assert count(database, "teams") == 32
        assert count(database, "referees") == 1
        assert count(database, "bye_weeks") == 1
        assert count(database, "stadiums") == 0

        attempts = attempts_by_key(database)
        assert attempts["last_api_call_Stadiums"] == STATUS_ERROR
        assert [key for key, status in attempts.items() if status == STATUS_ERROR] == ["last_api_call_Stadiums"]

        failed = report.result_for("last_api_call_Stadiums")
        assert failed.status == STATUS_ERROR
        assert "TransportError" in failed.error or "connection refused" in failed.error
        assert report.result_for("last_api_call_TeamsBasic").created == 32

    @pytest.mark.asyncio
    async def test_upstream_status_error_is_recorded_with_notes(
        self, database, fake_upstream: FakeSportsData, sportsdata_client, orchestrator_factory
    ):
        fake_upstream.fail(f"/scores/json/Standings/{SEASON}", status_code=401)

        report = await orchestrator_factory(sportsdata_client).sync_season(2023)

        assert report.result_for(f"last_api_call_Standings_{SEASON}").status == STATUS_ERROR
        with database.session() as db:
            attempt = StalenessTracker(db).get_last_attempt(f"last_api_call_Standings_{SEASON}")
        assert "401" in attempt.notes
        assert attempt.endpoint == f"/scores/json/Standings/{SEASON}"

    # Staleness
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_fresh_reference_feeds_are_skipped(
        self, fake_upstream: FakeSportsData, sportsdata_client, orchestrator_factory
    ):
        """Reference feeds wait out their window; season feeds refresh every run."""
        fake_upstream.serve("/scores/json/TeamsBasic", all_teams_payload())
        orchestrator = orchestrator_factory(sportsdata_client)

        await orchestrator.sync_season(2023)
        second = await orchestrator.sync_season(2023)

        assert len(fake_upstream.called("/TeamsBasic")) == 1
        assert len(fake_upstream.called("/PlayersByAvailable")) == 1
        assert len(fake_upstream.called("/DepthCharts")) == 1
        assert len(fake_upstream.called(f"/Standings/{SEASON}")) == 2
        assert len(fake_upstream.called(f"/Schedules/{SEASON}")) == 2
        assert second.result_for("last_api_call_TeamsBasic").status == STATUS_SKIPPED
        assert second.result_for(f"last_api_call_Byes_{SEASON}").status == STATUS_SKIPPED

    @pytest.mark.asyncio
    async def test_failed_reference_feed_is_not_retried_within_window(
        self, fake_upstream: FakeSportsData, sportsdata_client, orchestrator_factory
    ):
        fake_upstream.fail("/scores/json/Referees", status_code=503)
        orchestrator = orchestrator_factory(sportsdata_client)

        await orchestrator.sync_season(2023)
        await orchestrator.sync_season(2023)

        assert len(fake_upstream.called("/Referees")) == 1

    # Depth charts
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_depth_charts_resolve_team_abbreviation(
        self, database, fake_upstream: FakeSportsData, sportsdata_client, orchestrator_factory
    ):
        """Known TeamIDs get their Key; unknown ones are stored with an empty Team."""
        fake_upstream.serve("/scores/json/TeamsBasic", all_teams_payload())
        fake_upstream.serve(
            "/scores/json/DepthCharts",
            [
                {
                    "TeamID": 16,
                    "Offense": [{"PlayerID": 4314, "Name": "P. Mahomes", "Position": "QB", "DepthOrder": 1}],
                    "Defense": [],
                    "SpecialTeams": None,
                },
                {"TeamID": 99, "Offense": [], "Defense": [], "SpecialTeams": []},
            ],
        )

        report = await orchestrator_factory(sportsdata_client).sync_season(2023)

        with database.session() as db:
            stores = EntityStores.for_session(db)
            assert stores.depth_charts.find_by_team_id(16).team == "KC"
            assert stores.depth_charts.find_by_team_id(99).team == ""
            assert stores.depth_charts.find_player_status(4314)[0].team == "KC"
        assert report.result_for("last_api_call_DepthCharts").created == 2

    # Week detection and weekly loop
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_empty_schedule_falls_back_to_full_regular_season(
        self, fake_upstream: FakeSportsData, sportsdata_client, orchestrator_factory
    ):
        report = await orchestrator_factory(sportsdata_client).sync_season(2023)

        assert report.current_week == 17
        assert report.week_fallback is True
        assert fake_upstream.called("/ScoresFinal/") == [f"/stats/json/ScoresFinal/{SEASON}/{week}" for week in range(1, 18)]
        # No matchups known for any week
        assert fake_upstream.called("/PlayerGameStatsByTeamFinal/") == []

    @pytest.mark.asyncio
    async def test_weekly_fan_out_per_team_and_home_team(
        self, database, fake_upstream: FakeSportsData, sportsdata_client, orchestrator_factory
    ):
        """Stats are fetched per team playing, play-by-play per home team."""
        fake_upstream.serve(
            f"/scores/json/Schedules/{SEASON}",
            [
                schedule_payload("202310101", 1, "KC", "DET", NOW - timedelta(days=1)),
                {"GameKey": None, "Season": 2023, "SeasonType": 1, "Week": 1, "HomeTeam": "BYE", "AwayTeam": "MIA"},
                schedule_payload("202310201", 2, "JAX", "KC", NOW + timedelta(days=9)),
            ],
        )
        fake_upstream.serve(f"/stats/json/ScoresFinal/{SEASON}/1", [game_payload("202310101", 1, "KC", "DET")])
        fake_upstream.serve(
            f"/stats/json/PlayerGameStatsByTeamFinal/{SEASON}/1/KC",
            [player_stats_payload(1, 4314, "KC", 1, 21.4), player_stats_payload(2, 15048, "KC", 1, 4.2)],
        )
        fake_upstream.serve(
            f"/pbp/json/PlayByPlayFinal/{SEASON}/1/KC", play_by_play_payload("202310101", 1, "KC", "DET")
        )

        report = await orchestrator_factory(sportsdata_client, now=NOW).sync_season(2023)

        assert report.current_week == 2
        assert report.week_fallback is False
        assert fake_upstream.called("/PlayerGameStatsByTeamFinal/") == [
            f"/stats/json/PlayerGameStatsByTeamFinal/{SEASON}/1/DET",
            f"/stats/json/PlayerGameStatsByTeamFinal/{SEASON}/1/KC",
            f"/stats/json/PlayerGameStatsByTeamFinal/{SEASON}/2/JAX",
            f"/stats/json/PlayerGameStatsByTeamFinal/{SEASON}/2/KC",
        ]
        assert fake_upstream.called("/PlayByPlayFinal/") == [
            f"/pbp/json/PlayByPlayFinal/{SEASON}/1/KC",
            f"/pbp/json/PlayByPlayFinal/{SEASON}/2/JAX",
        ]
        assert count(database, "schedules") == 2
        assert count(database, "games") == 1
        assert count(database, "player_game_stats") == 2
        assert count(database, "play_by_play") == 1
        assert report.result_for(f"last_api_call_PlayerGameStatsByTeamFinal_{SEASON}_w1_KC").created == 2
        assert report.result_for(f"last_api_call_PlayByPlayFinal_{SEASON}_w1_KC").status == STATUS_SUCCESS

    @pytest.mark.asyncio
    async def test_matchups_fall_back_to_stored_games(
        self, fake_upstream: FakeSportsData, sportsdata_client, orchestrator_factory
    ):
        """Without schedule rows for a week, the week's final scores name the teams."""
        fake_upstream.serve(f"/stats/json/ScoresFinal/{SEASON}/3", [game_payload("202310301", 3, "BUF", "MIA")])

        await orchestrator_factory(sportsdata_client).sync_season(2023)

        assert fake_upstream.called("/PlayerGameStatsByTeamFinal/") == [
            f"/stats/json/PlayerGameStatsByTeamFinal/{SEASON}/3/BUF",
            f"/stats/json/PlayerGameStatsByTeamFinal/{SEASON}/3/MIA",
        ]
        assert fake_upstream.called("/PlayByPlayFinal/") == [f"/pbp/json/PlayByPlayFinal/{SEASON}/3/BUF"]

    @pytest.mark.asyncio
    async def test_canceled_games_are_not_fanned_out(
        self, fake_upstream: FakeSportsData, sportsdata_client, orchestrator_factory
    ):
        fake_upstream.serve(
            f"/scores/json/Schedules/{SEASON}",
            [
                schedule_payload("202310101", 1, "KC", "DET", NOW - timedelta(days=1), canceled=True),
                schedule_payload("202310102", 1, "BUF", "NYJ", NOW - timedelta(days=1)),
                schedule_payload("202310201", 2, "JAX", "KC", NOW + timedelta(days=9)),
            ],
        )

        await orchestrator_factory(sportsdata_client, now=NOW).sync_season(2023)

        week_one = [p for p in fake_upstream.called("/PlayerGameStatsByTeamFinal/") if "/1/" in p]
        assert week_one == [
            f"/stats/json/PlayerGameStatsByTeamFinal/{SEASON}/1/BUF",
            f"/stats/json/PlayerGameStatsByTeamFinal/{SEASON}/1/NYJ",
        ]

    @pytest.mark.asyncio
    async def test_failed_week_feed_does_not_stop_the_next_week(
        self, database, fake_upstream: FakeSportsData, sportsdata_client, orchestrator_factory
    ):
        """A play-by-play failure in week 1 leaves week 2 fully synced."""
        fake_upstream.serve(
            f"/scores/json/Schedules/{SEASON}",
            [
                schedule_payload("202310101", 1, "KC", "DET", NOW - timedelta(days=1)),
                schedule_payload("202310201", 2, "JAX", "KC", NOW + timedelta(days=9)),
            ],
        )
        fake_upstream.fail(f"/pbp/json/PlayByPlayFinal/{SEASON}/1/KC", status_code=500)

        report = await orchestrator_factory(sportsdata_client, now=NOW).sync_season(2023)

        assert report.current_week == 2
        assert f"/stats/json/ScoresFinal/{SEASON}/2" in fake_upstream.calls
        assert fake_upstream.called(f"/PlayerGameStatsByTeamFinal/{SEASON}/2/") == [
            f"/stats/json/PlayerGameStatsByTeamFinal/{SEASON}/2/JAX",
            f"/stats/json/PlayerGameStatsByTeamFinal/{SEASON}/2/KC",
        ]
        assert fake_upstream.called(f"/PlayByPlayFinal/{SEASON}/2/") == [f"/pbp/json/PlayByPlayFinal/{SEASON}/2/JAX"]

        attempts = attempts_by_key(database)
        assert [key for key, status in attempts.items() if status == STATUS_ERROR] == [
            f"last_api_call_PlayByPlayFinal_{SEASON}_w1_KC"
        ]
        assert attempts[f"last_api_call_PlayByPlayFinal_{SEASON}_w2_JAX"] == STATUS_SUCCESS
        assert [result.feed_key for result in report.failed] == [f"last_api_call_PlayByPlayFinal_{SEASON}_w1_KC"]

    # Run lock
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_overlapping_runs_are_rejected(self, fake_upstream: FakeSportsData, orchestrator_factory):
        """While a run holds the lock, neither trigger path starts a second one."""
        release = asyncio.Event()

        async def blocking_handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/TeamsBasic"):
                await release.wait()
            return fake_upstream.handler(request)

        client = SportsDataClient(
            api_key="test-key",
            base_url="https://sportsdata.test/v3/nfl",
            delay=0,
            transport=httpx.MockTransport(blocking_handler),
        )
        orchestrator = orchestrator_factory(client)
        try:
            task = orchestrator.try_start_background(2023)
            assert task is not None
            for _ in range(100):
                if orchestrator._run_lock.locked():
                    break
                await asyncio.sleep(0)

            assert orchestrator.is_running is True
            assert orchestrator.try_start_background(2023) is None
            with pytest.raises(SyncAlreadyRunningError):
                await orchestrator.sync_season(2022)

            release.set()
            report = await task

            assert orchestrator.is_running is False
            assert orchestrator.last_report is report
            assert orchestrator.try_start_background(2023) is not None
            await orchestrator.wait_until_idle()
            assert orchestrator.is_running is False
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_each_run_gets_its_own_correlation_id(
        self, fake_upstream: FakeSportsData, sportsdata_client, orchestrator_factory
    ):
        orchestrator = orchestrator_factory(sportsdata_client)

        first = await orchestrator.sync_season(2023)
        second = await orchestrator.sync_season(2023)

        assert first.correlation_id.startswith("sync-")
        assert first.correlation_id != second.correlation_id

    # get_sync_status() Tests
    # ─────────────────────────────────────────────────────────────

    def test_get_sync_status_unknown_without_metadata(self, orchestrator_factory):
        status = orchestrator_factory(SportsDataClient(api_key="test-key")).get_sync_status()

        assert status["health_status"] == "unknown"
        assert status["total_feeds"] == 0
        assert status["last_run"] is None

    def test_get_sync_status_degraded(self, database, orchestrator_factory):
        """Should return degraded status when some feeds failed."""
        with database.session() as db:
            tracker = StalenessTracker(db)
            tracker.record_attempt("last_api_call_TeamsBasic", "/scores/json/TeamsBasic", STATUS_SUCCESS)
            tracker.record_attempt("last_api_call_Stadiums", "/scores/json/Stadiums", STATUS_ERROR, "boom")

        status = orchestrator_factory(SportsDataClient(api_key="test-key")).get_sync_status()

        assert status["health_status"] == "degraded"
        assert status["success_count"] == 1
        assert status["failed_feeds"] == ["last_api_call_Stadiums"]
        assert status["is_running"] is False

    @pytest.mark.asyncio
    async def test_get_sync_status_healthy_after_clean_run(
        self, fake_upstream: FakeSportsData, sportsdata_client, orchestrator_factory
    ):
        orchestrator = orchestrator_factory(sportsdata_client)
        await orchestrator.sync_season(2023)

        status = orchestrator.get_sync_status()

        assert status["health_status"] == "healthy"
        assert status["last_run"]["season_param"] == SEASON
        assert status["last_run"]["summary"]["failed"] == 0


class TestCrossProcessRunLease:
    """The API process and the scheduler process each own an orchestrator over one store."""

    @staticmethod
    def blocking_client(
        fake_upstream: FakeSportsData, started: asyncio.Event, release: asyncio.Event
    ) -> SportsDataClient:
        async def blocking_handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/TeamsBasic"):
                started.set()
                await release.wait()
            return fake_upstream.handler(request)

        return SportsDataClient(
            api_key="test-key",
            base_url="https://sportsdata.test/v3/nfl",
            delay=0,
            transport=httpx.MockTransport(blocking_handler),
        )

    @pytest.mark.asyncio
    async def test_second_orchestrator_is_refused_while_first_runs(
        self, fake_upstream: FakeSportsData, orchestrator_factory
    ):
        started, release = asyncio.Event(), asyncio.Event()
        client = self.blocking_client(fake_upstream, started, release)
        api_side = orchestrator_factory(client)
        scheduler_side = orchestrator_factory(client)
        try:
            running = asyncio.create_task(api_side.sync_season(2023))
            await asyncio.wait_for(started.wait(), timeout=5)

            assert scheduler_side.is_running is False
            assert scheduler_side.active_run_owner() == api_side.owner_id
            with pytest.raises(SyncAlreadyRunningError):
                await scheduler_side.sync_season(2023)
            assert scheduler_side.try_start_background(2023) is None
            assert scheduler_side.get_sync_status()["is_running"] is True

            release.set()
            await running
        finally:
            await client.close()

        assert len(fake_upstream.called("/Standings/")) == 1
        assert api_side.active_run_owner() is None

    @pytest.mark.asyncio
    async def test_lease_is_released_for_the_next_run(
        self, fake_upstream: FakeSportsData, sportsdata_client, orchestrator_factory
    ):
        first = orchestrator_factory(sportsdata_client)
        second = orchestrator_factory(sportsdata_client)

        await first.sync_season(2023)
        report = await second.sync_season(2023)

        assert report.season_param == SEASON
        assert len(fake_upstream.called("/Standings/")) == 2
        assert second.active_run_owner() is None

    @pytest.mark.asyncio
    async def test_scheduled_run_skips_while_another_process_holds_the_lease(
        self, database, fake_upstream: FakeSportsData, sportsdata_client, orchestrator_factory
    ):
        assert RunLease(database).try_acquire("api-host:1234:abcd1234") is True

        await SyncScheduler(orchestrator_factory(sportsdata_client)).run_full_sync()

        assert fake_upstream.calls == []

    @pytest.mark.asyncio
    async def test_expired_lease_from_a_crashed_process_is_taken_over(
        self, database, fake_upstream: FakeSportsData, sportsdata_client, orchestrator_factory
    ):
        with database.session() as db:
            db.add(SyncRunLease(
                name=FULL_SYNC_LEASE,
                owner="dead-host:99:00000000",
                acquired_at=datetime(2020, 1, 1),
                expires_at=datetime(2020, 1, 1, 2),
            ))
            db.commit()

        report = await orchestrator_factory(sportsdata_client).sync_season(2023)

        assert report.current_week is not None
        assert len(fake_upstream.called("/Standings/")) == 1

    @pytest.mark.asyncio
    async def test_background_run_claims_the_lease_before_returning(
        self, database, fake_upstream: FakeSportsData, sportsdata_client, orchestrator_factory
    ):
        orchestrator = orchestrator_factory(sportsdata_client)

        task = orchestrator.try_start_background(2023)

        assert task is not None
        assert RunLease(database).holder() == orchestrator.owner_id
        await task
        assert RunLease(database).holder() is None


class TestSyncTracing:
    @pytest.mark.asyncio
    async def test_one_span_per_feed_under_the_run_span(
        self, database, test_settings, fake_upstream: FakeSportsData, sportsdata_client
    ):
        exporter = InMemorySpanExporter()
        provider = TracerProvider()
        provider.add_span_processor(SimpleSpanProcessor(exporter))
        fake_upstream.fail("/scores/json/Stadiums", status_code=500)
        orchestrator = SyncOrchestrator(
            database, sportsdata_client, test_settings, clock=lambda: NOW, tracer=provider.get_tracer("test")
        )

        report = await orchestrator.sync_season(2023)

        spans = {span.name: span for span in exporter.get_finished_spans()}
        run_span = spans["nfl_sync.run"]
        feed_spans = [span for span in exporter.get_finished_spans() if span.name.startswith("nfl_sync.feed ")]
        assert len(feed_spans) == len(report.feeds)
        assert all(span.parent.span_id == run_span.context.span_id for span in feed_spans)

        stadiums = spans["nfl_sync.feed Stadiums"]
        assert stadiums.status.status_code == StatusCode.ERROR
        assert stadiums.attributes["nfl.sync.status"] == STATUS_ERROR
        assert spans["nfl_sync.feed TeamsBasic"].attributes["nfl.sync.status"] == STATUS_SUCCESS
        assert spans["nfl_sync.feed Standings"].attributes["nfl.season"] == SEASON
        assert run_span.attributes["nfl.feeds.failed"] == 1
