"""Codex (OpenAI/ChatGPT) provider for usagebar."""

from __future__ import annotations

import asyncio
from pathlib import Path

from usagebar.config.credentials import PROVIDER_CREDENTIAL_PATHS
from usagebar.core.scanner import NewestMatchPolicy
from usagebar.core.scanner import ScanPolicy
from usagebar.models import Provider
from usagebar.providers.base import ProviderFetcher
from usagebar.providers.base import ProviderMetadata
from usagebar.providers.codex.api import CodexApiStrategy
from usagebar.providers.codex.api import plan_type_from_auth_file
from usagebar.strategies.api import RemoteApiStrategy


class CodexFetcher(ProviderFetcher):
    """Fetcher for Codex usage."""

    metadata = ProviderMetadata(
        provider=Provider.CODEX,
        dashboard_url="https://chatgpt.com/codex/settings/usage",
    )

    auth_path: Path = Path(PROVIDER_CREDENTIAL_PATHS[Provider.CODEX]).expanduser()

    def create_api_strategy(self) -> RemoteApiStrategy:
        return CodexApiStrategy(self.credentials, self.client, guard=self.guard)

    def scan_policy(self) -> ScanPolicy:
        return NewestMatchPolicy()

    async def load_plan_label(self) -> str | None:
        """Plan type comes from the id_token claims, no network needed."""
        return await asyncio.to_thread(plan_type_from_auth_file, self.auth_path)


__all__ = ["CodexFetcher", "CodexApiStrategy"]
