"""Tests for the SportsData.io client.

Remote HTTP is replaced with httpx.MockTransport; no network access.
"""
import json
import time

import httpx
import pytest

from nfl_data_sync.models import PlayByPlay, Team
from nfl_data_sync.services.sportsdata import (
    DecodeError,
    Feed,
    ResponseTooLargeError,
    SportsDataClient,
    TransportError,
    UpstreamStatusError,
    endpoint_path,
)

BASE_URL = "https://sportsdata.test/v3/nfl"


def make_client(handler, **kwargs) -> SportsDataClient:
    kwargs.setdefault("delay", 0)
    return SportsDataClient(
        api_key="secret-key",
        base_url=BASE_URL,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def json_response(payload) -> httpx.Response:
    return httpx.Response(200, content=json.dumps(payload).encode())


class TestEndpoints:
    def test_paths_fill_season_week_and_team(self):
        assert endpoint_path(Feed.TEAMS) == "/scores/json/TeamsBasic"
        assert endpoint_path(Feed.STANDINGS, season="2023REG") == "/scores/json/Standings/2023REG"
        assert (
            endpoint_path(Feed.PLAYER_GAME_STATS, season="2023REG", week=3, team="KC")
            == "/stats/json/PlayerGameStatsByTeamFinal/2023REG/3/KC"
        )
        assert (
            endpoint_path(Feed.PLAY_BY_PLAY, season="2023REG", week=1, home_team="KC")
            == "/pbp/json/PlayByPlayFinal/2023REG/1/KC"
        )

    def test_missing_parameter_raises(self):
        with pytest.raises(ValueError, match="season"):
            endpoint_path(Feed.GAMES, week=1)

    def test_describe_endpoint_never_includes_key(self):
        client = SportsDataClient(api_key="secret-key", base_url=BASE_URL)

        described = client.describe_endpoint(Feed.GAMES, season="2023REG", week=2)

        assert described == "/stats/json/ScoresFinal/2023REG/2"
        assert "secret-key" not in described


class TestFetch:
    @pytest.mark.asyncio
    async def test_fetch_teams_sends_key_and_headers(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return json_response([{"TeamID": 16, "Key": "KC", "Conference": "AFC", "Division": "West"}])

        client = make_client(handler)
        try:
            teams = await client.fetch_teams()
        finally:
            await client.close()

        assert teams == [Team(team_id=16, key="KC", conference="AFC", division="West")]
        request = seen[0]
        assert request.url.path == "/v3/nfl/scores/json/TeamsBasic"
        assert request.url.params["key"] == "secret-key"
        assert request.headers["Accept"] == "application/json"
        assert request.headers["User-Agent"].startswith("nfl-data-sync/")

    @pytest.mark.asyncio
    async def test_unknown_fields_are_kept(self):
        client = make_client(lambda request: json_response([{"TeamID": 16, "Key": "KC", "PrimaryColor": "E31837"}]))
        try:
            teams = await client.fetch_teams()
        finally:
            await client.close()

        assert teams[0].to_document()["PrimaryColor"] == "E31837"

    @pytest.mark.asyncio
    async def test_play_by_play_single_object_becomes_list(self):
        payload = {
            "Score": {"GameKey": "202310101", "Season": 2023, "SeasonType": 1, "Week": 1, "HomeTeam": "KC", "AwayTeam": "DET"},
            "Plays": [],
        }
        client = make_client(lambda request: json_response(payload))
        try:
            result = await client.fetch_play_by_play("2023REG", 1, "KC")
        finally:
            await client.close()

        assert len(result) == 1
        assert isinstance(result[0], PlayByPlay)
        assert result[0].game_key == "202310101"

    @pytest.mark.asyncio
    async def test_null_body_yields_empty_list(self):
        client = make_client(lambda request: httpx.Response(200, content=b"null"))
        try:
            assert await client.fetch_play_by_play("2023REG", 1, "KC") == []
            assert await client.fetch_games("2023REG", 1) == []
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_empty_body_yields_empty_list(self):
        client = make_client(lambda request: httpx.Response(200, content=b""))
        try:
            assert await client.fetch_standings("2023REG") == []
        finally:
            await client.close()


class TestFailures:
    @pytest.mark.asyncio
    async def test_non_200_raises_upstream_status_error(self):
        client = make_client(lambda request: httpx.Response(401, json={"message": "Access denied"}))
        try:
            with pytest.raises(UpstreamStatusError) as exc_info:
                await client.fetch_teams()
        finally:
            await client.close()

        assert exc_info.value.status_code == 401
        assert exc_info.value.feed == "TeamsBasic"

    @pytest.mark.asyncio
    async def test_connection_error_raises_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        try:
            with pytest.raises(TransportError) as exc_info:
                await client.fetch_stadiums()
        finally:
            await client.close()

        assert "secret-key" not in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout_raises_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client = make_client(handler)
        try:
            with pytest.raises(TransportError):
                await client.fetch_referees()
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_declared_oversize_body_is_rejected(self):
        client = make_client(lambda request: httpx.Response(200, content=b"[" + b" " * 200 + b"]"), max_response_bytes=100)
        try:
            with pytest.raises(ResponseTooLargeError):
                await client.fetch_teams()
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_streamed_oversize_body_is_rejected(self):
        async def chunks():
            for _ in range(10):
                yield b" " * 50

        client = make_client(lambda request: httpx.Response(200, content=chunks()), max_response_bytes=100)
        try:
            with pytest.raises(ResponseTooLargeError):
                await client.fetch_teams()
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_invalid_json_raises_decode_error(self):
        client = make_client(lambda request: httpx.Response(200, content=b"<html>oops</html>"))
        try:
            with pytest.raises(DecodeError):
                await client.fetch_teams()
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_schema_mismatch_raises_decode_error(self):
        client = make_client(lambda request: json_response([{"Key": "KC"}]))
        try:
            with pytest.raises(DecodeError, match="Team"):
                await client.fetch_teams()
        finally:
            await client.close()


class TestRateLimiting:
    @pytest.mark.asyncio
    async def test_consecutive_calls_are_spaced_by_delay(self):
        delay = 0.05
        calls = 4
        client = make_client(lambda request: json_response([]), delay=delay)
        try:
            started = time.monotonic()
            for _ in range(calls):
                await client.fetch_stadiums()
            elapsed = time.monotonic() - started
        finally:
            await client.close()

        assert elapsed >= (calls - 1) * delay

    @pytest.mark.asyncio
    async def test_failed_calls_count_towards_the_limit(self):
        delay = 0.05
        client = make_client(lambda request: httpx.Response(500), delay=delay)
        try:
            started = time.monotonic()
            for _ in range(3):
                with pytest.raises(UpstreamStatusError):
                    await client.fetch_stadiums()
            elapsed = time.monotonic() - started
        finally:
            await client.close()

        assert elapsed >= 2 * delay
