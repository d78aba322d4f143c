"""HTTP client construction for usagebar."""

from __future__ import annotations

import httpx

from usagebar import __version__

CONNECT_TIMEOUT = 10.0
USER_AGENT = f"usagebar/{__version__}"


def get_timeout_config(timeout: float) -> httpx.Timeout:
    """Build the bounded timeout every API call carries."""
    return httpx.Timeout(timeout, connect=min(CONNECT_TIMEOUT, timeout))


def create_http_client(timeout: float) -> httpx.AsyncClient:
    """Create the client shared by both providers' fetchers.

    The caller owns the client and must ``aclose()`` it on shutdown.
    """
    limits = httpx.Limits(
        max_connections=10,
        max_keepalive_connections=4,
    )
    return httpx.AsyncClient(
        timeout=get_timeout_config(timeout),
        limits=limits,
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
    )
