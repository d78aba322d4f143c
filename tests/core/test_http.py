"""Tests for HTTP client construction."""

import httpx
import pytest

from usagebar.core.http import USER_AGENT, create_http_client, get_timeout_config


class TestTimeoutConfig:
    def test_connect_capped(self):
        timeout = get_timeout_config(25.0)
        assert timeout.read == 25.0
        assert timeout.connect == 10.0

    def test_short_timeout(self):
        assert get_timeout_config(5.0).connect == 5.0


class TestCreateHttpClient:
    @pytest.mark.asyncio
    async def test_client_defaults(self):
        client = create_http_client(20.0)
        try:
            assert isinstance(client, httpx.AsyncClient)
            assert client.headers["User-Agent"] == USER_AGENT
            assert client.timeout.read == 20.0
            assert client.follow_redirects is True
        finally:
            await client.aclose()
