"""Status API strategy for the Claude provider."""

from __future__ import annotations

import logging
from datetime import datetime

import msgspec

from usagebar.config.credentials import Credential
from usagebar.models import Provider
from usagebar.models import UsageSnapshot
from usagebar.models import UsageWindow
from usagebar.strategies.api import RemoteApiStrategy

logger = logging.getLogger(__name__)

USAGE_URL = "https://api.anthropic.com/api/oauth/usage"
PROFILE_URL = "https://api.anthropic.com/api/oauth/profile"
ANTHROPIC_BETA = "oauth-2025-04-20"


class ClaudeWindow(msgspec.Struct, frozen=True):
    """One rate window in the usage response."""

    utilization: float
    resets_at: str | None = None


class ClaudeUsageResponse(msgspec.Struct, frozen=True):
    """Usage response schema (v1).

    {
        "five_hour": { "utilization": 45.0, "resets_at": "2026-01-17T06:59:59.846865+00:00" },
        "seven_day": { "utilization": 72.0, "resets_at": "2026-01-22T18:59:59.846886+00:00" }
    }
    """

    five_hour: ClaudeWindow | None = None
    seven_day: ClaudeWindow | None = None


class ClaudeOrganization(msgspec.Struct, frozen=True):
    organization_type: str | None = None
    rate_limit_tier: str | None = None


class ClaudeProfileResponse(msgspec.Struct, frozen=True):
    organization: ClaudeOrganization | None = None


def parse_iso8601(value: str | None) -> datetime | None:
    """Parse reset times with or without fractional seconds."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        logger.debug("Unparseable Claude reset time %r", value)
        return None


def parse_tier_label(tier: str) -> str:
    """Turn a rate_limit_tier such as 'default_claude_max_20x' into a label."""
    lower = tier.lower()
    if "max_20x" in lower or "max20x" in lower:
        return "Max 20x"
    if "max_5x" in lower or "max5x" in lower:
        return "Max 5x"
    if "max" in lower:
        return "Max"
    if "pro" in lower:
        return "Pro"
    return " ".join(part.capitalize() for part in tier.split("_") if part)


def auth_headers(credential: Credential) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {credential.access_token}",
        "anthropic-beta": ANTHROPIC_BETA,
    }


def _to_window(window: ClaudeWindow) -> UsageWindow:
    return UsageWindow(
        percentage=window.utilization,
        resets_at=parse_iso8601(window.resets_at),
    )


class ClaudeApiStrategy(RemoteApiStrategy):
    """Fetch Claude usage from the OAuth usage endpoint."""

    provider = Provider.CLAUDE
    url = USAGE_URL

    def build_headers(self, credential: Credential) -> dict[str, str]:
        return auth_headers(credential)

    def parse_response(self, content: bytes) -> UsageSnapshot | None:
        response = msgspec.json.decode(content, type=ClaudeUsageResponse)
        if response.five_hour is None:
            return None

        return UsageSnapshot.from_api(
            Provider.CLAUDE,
            _to_window(response.five_hour),
            _to_window(response.seven_day) if response.seven_day else None,
        )
