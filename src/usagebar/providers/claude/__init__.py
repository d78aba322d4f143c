"""Claude (Anthropic) provider for usagebar."""

from __future__ import annotations

import asyncio
import logging

import httpx
import msgspec

from usagebar.core.scanner import ScanPolicy
from usagebar.core.scanner import WindowedSumPolicy
from usagebar.models import Provider
from usagebar.providers.base import ProviderFetcher
from usagebar.providers.base import ProviderMetadata
from usagebar.providers.claude.api import PROFILE_URL
from usagebar.providers.claude.api import ClaudeApiStrategy
from usagebar.providers.claude.api import ClaudeProfileResponse
from usagebar.providers.claude.api import auth_headers
from usagebar.providers.claude.api import parse_tier_label
from usagebar.strategies.api import RemoteApiStrategy

logger = logging.getLogger(__name__)


class ClaudeFetcher(ProviderFetcher):
    """Fetcher for Claude usage."""

    metadata = ProviderMetadata(
        provider=Provider.CLAUDE,
        dashboard_url="https://claude.ai/settings/usage",
    )

    def create_api_strategy(self) -> RemoteApiStrategy:
        return ClaudeApiStrategy(self.credentials, self.client, guard=self.guard)

    def scan_policy(self) -> ScanPolicy:
        return WindowedSumPolicy()

    async def load_plan_label(self) -> str | None:
        """Read the plan tier from the profile endpoint.

        Falls back to the credential's subscription type when the profile is
        unavailable.
        """
        credential = await asyncio.to_thread(self.credentials.lookup, Provider.CLAUDE)
        if credential is None:
            return None

        try:
            response = await self.client.get(PROFILE_URL, headers=auth_headers(credential))
        except httpx.HTTPError as e:
            logger.warning("Claude profile request failed: %s", e)
            response = None

        if response is not None and response.status_code == 200:
            try:
                profile = msgspec.json.decode(response.content, type=ClaudeProfileResponse)
            except msgspec.DecodeError as e:
                logger.debug("Claude profile payload invalid: %s", e)
            else:
                if profile.organization and profile.organization.rate_limit_tier:
                    return parse_tier_label(profile.organization.rate_limit_tier)

        if credential.plan_hint:
            return parse_tier_label(credential.plan_hint)
        return None


__all__ = ["ClaudeFetcher", "ClaudeApiStrategy"]
