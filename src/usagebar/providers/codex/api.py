"""Status API strategy for the Codex provider."""

from __future__ import annotations

import base64
import binascii
import json
import logging
from datetime import UTC
from datetime import datetime
from pathlib import Path

import msgspec

from usagebar.config.credentials import Credential
from usagebar.models import Provider
from usagebar.models import UsageSnapshot
from usagebar.models import UsageWindow
from usagebar.strategies.api import RemoteApiStrategy

logger = logging.getLogger(__name__)

USAGE_URL = "https://chatgpt.com/backend-api/wham/usage"
AUTH_CLAIM = "https://api.openai.com/auth"


class CodexWindow(msgspec.Struct, frozen=True):
    used_percent: float
    limit_window_seconds: int | None = None
    reset_at: int | None = None  # Unix epoch seconds


class CodexRateLimit(msgspec.Struct, frozen=True):
    primary_window: CodexWindow | None = None
    secondary_window: CodexWindow | None = None


class CodexUsageResponse(msgspec.Struct, frozen=True):
    """Usage response schema.

    {
        "plan_type": "plus",
        "rate_limit": {
            "primary_window": { "used_percent": 12.0, "limit_window_seconds": 18000, "reset_at": 1768000000 },
            "secondary_window": { "used_percent": 30.0, "reset_at": 1768500000 }
        }
    }
    """

    plan_type: str | None = None
    rate_limit: CodexRateLimit | None = None


def _to_window(window: CodexWindow) -> UsageWindow:
    resets_at = None
    if window.reset_at is not None:
        try:
            resets_at = datetime.fromtimestamp(window.reset_at, tz=UTC)
        except (OverflowError, OSError, ValueError):
            logger.debug("Unusable Codex reset_at %r", window.reset_at)
    return UsageWindow(percentage=window.used_percent, resets_at=resets_at)


def decode_jwt_payload(token: str) -> dict | None:
    """Decode the (unverified) payload segment of a JWT."""
    parts = token.split(".")
    if len(parts) < 2:
        return None
    segment = parts[1]
    segment += "=" * (-len(segment) % 4)
    try:
        payload = json.loads(base64.urlsafe_b64decode(segment))
    except (binascii.Error, ValueError):
        return None
    return payload if isinstance(payload, dict) else None


def plan_type_from_auth_file(path: Path) -> str | None:
    """Read chatgpt_plan_type from the id_token stored in Codex's auth.json."""
    try:
        data = json.loads(path.read_bytes())
    except (OSError, ValueError):
        return None

    tokens = data.get("tokens") if isinstance(data, dict) else None
    id_token = tokens.get("id_token") if isinstance(tokens, dict) else None
    if not isinstance(id_token, str):
        return None

    payload = decode_jwt_payload(id_token)
    claims = payload.get(AUTH_CLAIM) if payload else None
    plan = claims.get("chatgpt_plan_type") if isinstance(claims, dict) else None
    if isinstance(plan, str) and plan:
        return plan.capitalize()
    return None


class CodexApiStrategy(RemoteApiStrategy):
    """Fetch Codex usage from the ChatGPT backend usage endpoint."""

    provider = Provider.CODEX
    url = USAGE_URL

    def build_headers(self, credential: Credential) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {credential.access_token}"}
        if credential.account_id:
            headers["ChatGPT-Account-Id"] = credential.account_id
        return headers

    def parse_response(self, content: bytes) -> UsageSnapshot | None:
        response = msgspec.json.decode(content, type=CodexUsageResponse)
        rate_limit = response.rate_limit
        if rate_limit is None or rate_limit.primary_window is None:
            return None

        secondary = rate_limit.secondary_window
        return UsageSnapshot.from_api(
            Provider.CODEX,
            _to_window(rate_limit.primary_window),
            _to_window(secondary) if secondary else None,
        )
