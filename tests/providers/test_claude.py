"""Tests for the Claude provider."""

from __future__ import annotations

import asyncio
import json
import time
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from usagebar.config.credentials import Credential
from usagebar.core.scanner import WindowedSumPolicy
from usagebar.models import DataSource, Provider
from usagebar.providers.claude import ClaudeFetcher
from usagebar.providers.claude.api import (
    ANTHROPIC_BETA,
    PROFILE_URL,
    USAGE_URL,
    ClaudeApiStrategy,
    parse_iso8601,
    parse_tier_label,
)

USAGE_BODY = {
    "five_hour": {"utilization": 45, "resets_at": "2026-01-17T06:59:59.846865+00:00"},
    "seven_day": {"utilization": 72, "resets_at": "2026-01-22T18:59:59.846886+00:00"},
}


class Recorder:
    """MockTransport handler that replays responses and records requests."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]

    def usage_calls(self) -> list[httpx.Request]:
        return [r for r in self.requests if str(r.url) == USAGE_URL]


def write_recent_usage(root, tokens: int) -> None:
    path = root / "project" / "session.jsonl"
    path.parent.mkdir(parents=True, exist_ok=True)
    record = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "message": {"usage": {"input_tokens": tokens}},
    }
    path.write_text(json.dumps(record) + "\n")


class TestParsing:
    @pytest.mark.parametrize(
        "tier,label",
        [
            ("default_claude_max_20x", "Max 20x"),
            ("default_claude_max_5x", "Max 5x"),
            ("claude_max", "Max"),
            ("claude_pro", "Pro"),
            ("max", "Max"),
            ("team_standard", "Team Standard"),
        ],
    )
    def test_parse_tier_label(self, tier, label):
        assert parse_tier_label(tier) == label

    def test_parse_iso8601_fractional(self):
        parsed = parse_iso8601("2026-01-17T06:59:59.846865+00:00")
        assert parsed == datetime(2026, 1, 17, 6, 59, 59, 846865, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "soon"])
    def test_parse_iso8601_invalid(self, value):
        assert parse_iso8601(value) is None

    def test_parse_response(self, credential_source):
        strategy = ClaudeApiStrategy(credential_source, client=None)
        snapshot = strategy.parse_response(json.dumps(USAGE_BODY).encode())

        assert snapshot.primary_window.percentage == 45.0
        assert snapshot.secondary_window.percentage == 72.0
        assert snapshot.primary_window.estimated is False
        assert snapshot.secondary_window.estimated is False
        assert snapshot.source == DataSource.API

    def test_parse_response_without_primary(self, credential_source):
        strategy = ClaudeApiStrategy(credential_source, client=None)
        body = json.dumps({"seven_day": USAGE_BODY["seven_day"]}).encode()
        assert strategy.parse_response(body) is None

    def test_parse_response_null_secondary(self, credential_source):
        strategy = ClaudeApiStrategy(credential_source, client=None)
        body = json.dumps({"five_hour": USAGE_BODY["five_hour"], "seven_day": None}).encode()
        assert strategy.parse_response(body).secondary_window is None


class TestClaudeFetcher:
    """Fetch state machine: API with one auth retry, then local logs."""

    def test_metadata(self):
        assert ClaudeFetcher.metadata.provider == Provider.CLAUDE
        assert ClaudeFetcher.metadata.dashboard_url == "https://claude.ai/settings/usage"

    @pytest.mark.asyncio
    async def test_api_success(self, credential_source, mock_client, tmp_path):
        handler = Recorder(httpx.Response(200, json=USAGE_BODY))
        async with mock_client(handler) as client:
            fetcher = ClaudeFetcher(credential_source, client, logs_root=tmp_path)
            snapshot = await fetcher.fetch_usage()

        assert snapshot.source == DataSource.API
        assert snapshot.primary_window.percentage == 45.0
        assert snapshot.secondary_window.percentage == 72.0
        assert snapshot.primary_window.resets_at == datetime(
            2026, 1, 17, 6, 59, 59, 846865, tzinfo=timezone.utc
        )
        assert len(handler.usage_calls()) == 1

        request = handler.requests[0]
        assert request.headers["Authorization"] == "Bearer claude-token"
        assert request.headers["anthropic-beta"] == ANTHROPIC_BETA

    @pytest.mark.asyncio
    async def test_401_retries_once_with_fresh_credentials(
        self, make_credentials, mock_client, tmp_path
    ):
        credentials = make_credentials(
            {Provider.CLAUDE: Credential(access_token="stale")},
            rotations={Provider.CLAUDE: [Credential(access_token="fresh")]},
        )
        handler = Recorder(httpx.Response(401), httpx.Response(200, json=USAGE_BODY))
        async with mock_client(handler) as client:
            fetcher = ClaudeFetcher(credentials, client, logs_root=tmp_path)
            snapshot = await fetcher.fetch_usage()

        assert snapshot.source == DataSource.API
        assert credentials.invalidations == 1
        calls = handler.usage_calls()
        assert len(calls) == 2
        assert calls[0].headers["Authorization"] == "Bearer stale"
        assert calls[1].headers["Authorization"] == "Bearer fresh"
        assert fetcher.guard.retried is False

    @pytest.mark.asyncio
    async def test_slow_credential_lookup_keeps_loop_running(
        self, make_credentials, claude_credential, mock_client, tmp_path
    ):
        class SlowSource(make_credentials):
            def lookup(self, provider):
                time.sleep(0.3)
                return super().lookup(provider)

        ticks = 0

        async def ticker():
            nonlocal ticks
            while True:
                await asyncio.sleep(0.01)
                ticks += 1

        credentials = SlowSource({Provider.CLAUDE: claude_credential})
        task = asyncio.ensure_future(ticker())
        async with mock_client(Recorder(httpx.Response(200, json=USAGE_BODY))) as client:
            fetcher = ClaudeFetcher(credentials, client, logs_root=tmp_path)
            snapshot = await fetcher.fetch_usage()
        task.cancel()

        assert snapshot.source == DataSource.API
        assert ticks >= 5

    @pytest.mark.asyncio
    async def test_repeated_401_makes_at_most_two_calls(
        self, credential_source, mock_client, tmp_path
    ):
        write_recent_usage(tmp_path, 250_000)
        handler = Recorder(httpx.Response(401))
        async with mock_client(handler) as client:
            fetcher = ClaudeFetcher(credential_source, client, logs_root=tmp_path)
            snapshot = await fetcher.fetch_usage()

        assert len(handler.usage_calls()) == 2
        assert credential_source.invalidations == 1
        assert snapshot.source == DataSource.LOCAL
        assert snapshot.primary_window.percentage == pytest.approx(25.0)

    @pytest.mark.asyncio
    async def test_guard_blocks_retry_until_success(
        self, credential_source, mock_client, tmp_path
    ):
        handler = Recorder(
            httpx.Response(401),
            httpx.Response(401),
            httpx.Response(401),
            httpx.Response(200, json=USAGE_BODY),
            httpx.Response(401),
            httpx.Response(200, json=USAGE_BODY),
        )
        async with mock_client(handler) as client:
            fetcher = ClaudeFetcher(credential_source, client, logs_root=tmp_path)

            assert await fetcher.fetch_usage() is None  # 401, retry 401
            assert fetcher.guard.retried is True
            assert len(handler.usage_calls()) == 2

            assert await fetcher.fetch_usage() is None  # 401, no retry
            assert len(handler.usage_calls()) == 3

            assert await fetcher.fetch_usage() is not None  # 200 resets guard
            assert fetcher.guard.retried is False

            assert await fetcher.fetch_usage() is not None  # 401, retry 200
            assert len(handler.usage_calls()) == 6

    @pytest.mark.asyncio
    async def test_missing_primary_falls_back_to_logs(
        self, credential_source, mock_client, tmp_path
    ):
        write_recent_usage(tmp_path, 100_000)
        body = {"seven_day": USAGE_BODY["seven_day"]}
        handler = Recorder(httpx.Response(200, json=body))
        async with mock_client(handler) as client:
            fetcher = ClaudeFetcher(credential_source, client, logs_root=tmp_path)
            outcome = await fetcher.fetch_outcome()

        assert outcome.source == "local"
        assert outcome.snapshot.source == DataSource.LOCAL
        assert outcome.snapshot.primary_window.estimated is True
        assert outcome.snapshot.secondary_window is None
        assert outcome.snapshot.tokens_used == 100_000

    @pytest.mark.asyncio
    async def test_no_credentials_skips_network(self, empty_credentials, mock_client, tmp_path):
        write_recent_usage(tmp_path, 10_000)
        handler = Recorder(httpx.Response(200, json=USAGE_BODY))
        async with mock_client(handler) as client:
            fetcher = ClaudeFetcher(empty_credentials, client, logs_root=tmp_path)
            snapshot = await fetcher.fetch_usage()

        assert handler.requests == []
        assert snapshot.source == DataSource.LOCAL

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(500),
            httpx.Response(403),
            httpx.Response(200, content=b"<html>not json</html>"),
        ],
    )
    async def test_api_failures_fall_back(self, response, credential_source, mock_client, tmp_path):
        write_recent_usage(tmp_path, 10_000)
        async with mock_client(Recorder(response)) as client:
            fetcher = ClaudeFetcher(credential_source, client, logs_root=tmp_path)
            snapshot = await fetcher.fetch_usage()

        assert snapshot.source == DataSource.LOCAL
        assert credential_source.invalidations == 0

    @pytest.mark.asyncio
    async def test_transport_error_falls_back(self, credential_source, mock_client, tmp_path):
        write_recent_usage(tmp_path, 10_000)

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("offline", request=request)

        async with mock_client(handler) as client:
            fetcher = ClaudeFetcher(credential_source, client, logs_root=tmp_path)
            outcome = await fetcher.fetch_outcome()

        assert outcome.source == "local"
        assert outcome.attempts[0].strategy == "api"
        assert outcome.attempts[0].success is False

    @pytest.mark.asyncio
    async def test_nothing_anywhere(self, empty_credentials, mock_client, tmp_path):
        async with mock_client(Recorder(httpx.Response(200))) as client:
            fetcher = ClaudeFetcher(empty_credentials, client, logs_root=tmp_path / "none")
            outcome = await fetcher.fetch_outcome()

        assert outcome.snapshot is None
        assert [a.strategy for a in outcome.attempts] == ["api", "local"]

    def test_uses_windowed_sum(self, credential_source):
        fetcher = ClaudeFetcher(credential_source, client=None)
        assert isinstance(fetcher.scan_policy(), WindowedSumPolicy)
        assert fetcher.logs_root == Provider.CLAUDE.logs_path


class TestClaudePlanLabel:
    @pytest.mark.asyncio
    async def test_from_profile(self, credential_source, mock_client):
        profile = {"organization": {"rate_limit_tier": "default_claude_max_20x"}}
        handler = Recorder(httpx.Response(200, json=profile))
        async with mock_client(handler) as client:
            fetcher = ClaudeFetcher(credential_source, client)
            assert await fetcher.get_plan_label() == "Max 20x"

        assert str(handler.requests[0].url) == PROFILE_URL

    @pytest.mark.asyncio
    async def test_cached_for_an_hour(self, credential_source, mock_client):
        now = [0.0]
        profile = {"organization": {"rate_limit_tier": "claude_pro"}}
        handler = Recorder(httpx.Response(200, json=profile))
        async with mock_client(handler) as client:
            fetcher = ClaudeFetcher(credential_source, client, clock=lambda: now[0])
            assert await fetcher.get_plan_label() == "Pro"
            now[0] = 3599
            assert await fetcher.get_plan_label() == "Pro"
            assert len(handler.requests) == 1
            now[0] = 3601
            await fetcher.get_plan_label()
            assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_falls_back_to_subscription_type(self, credential_source, mock_client):
        async with mock_client(Recorder(httpx.Response(404))) as client:
            fetcher = ClaudeFetcher(credential_source, client)
            assert await fetcher.get_plan_label() == "Max"

    @pytest.mark.asyncio
    async def test_no_credentials(self, empty_credentials, mock_client):
        handler = Recorder(httpx.Response(200, json={}))
        async with mock_client(handler) as client:
            fetcher = ClaudeFetcher(empty_credentials, client)
            assert await fetcher.get_plan_label() is None
        assert handler.requests == []
