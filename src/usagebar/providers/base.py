"""Base provider fetcher and metadata for usagebar."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path
from typing import ClassVar

import httpx
from msgspec import Struct

from usagebar.config.credentials import CredentialSource
from usagebar.config.settings import DEFAULT_TIMEOUT
from usagebar.core.fetch import execute_fetch_pipeline
from usagebar.core.scanner import LocalLogScanner
from usagebar.core.scanner import ScanPolicy
from usagebar.models import Provider
from usagebar.models import UsageSnapshot
from usagebar.strategies.api import AuthRetryGuard
from usagebar.strategies.api import RemoteApiStrategy
from usagebar.strategies.base import FetchOutcome
from usagebar.strategies.base import FetchStrategy
from usagebar.strategies.local import LocalLogStrategy

PLAN_LABEL_TTL = 3600.0


class ProviderMetadata(Struct, frozen=True):
    """Metadata about a provider."""

    provider: Provider
    dashboard_url: str


class ProviderFetcher(ABC):
    """Per-provider fetch state machine: remote API first, local logs second.

    Each instance owns its own auth-retry guard and plan-label cache; nothing
    is shared between providers.

    Subclasses must:
    1. Define metadata as a ClassVar
    2. Implement create_api_strategy() and scan_policy()
    3. Implement load_plan_label()
    """

    metadata: ClassVar[ProviderMetadata]

    def __init__(
        self,
        credentials: CredentialSource,
        client: httpx.AsyncClient,
        logs_root: Path | None = None,
        scanner: LocalLogScanner | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.credentials = credentials
        self.client = client
        self.timeout = timeout
        self.guard = AuthRetryGuard()
        self.api = self.create_api_strategy()
        self.local = LocalLogStrategy(
            self.provider,
            logs_root or self.provider.logs_path,
            self.scan_policy(),
            scanner=scanner,
        )
        self._clock = clock
        self._plan_label: str | None = None
        self._plan_label_at: float | None = None

    @property
    def provider(self) -> Provider:
        return self.metadata.provider

    @property
    def logs_root(self) -> Path:
        return self.local.root

    @abstractmethod
    def create_api_strategy(self) -> RemoteApiStrategy:
        """Build the API strategy, wired to this fetcher's guard."""

    @abstractmethod
    def scan_policy(self) -> ScanPolicy:
        """Return the local log scanning policy for this provider."""

    @abstractmethod
    async def load_plan_label(self) -> str | None:
        """Fetch the plan label without consulting the cache."""

    def fetch_strategies(self) -> list[FetchStrategy]:
        """Return ordered list of fetch strategies to try."""
        return [self.api, self.local]

    async def fetch_outcome(self) -> FetchOutcome:
        # The API stage may issue two requests (auth retry), so allow for both.
        return await execute_fetch_pipeline(
            self.provider, self.fetch_strategies(), timeout=self.timeout * 2
        )

    async def fetch_usage(self) -> UsageSnapshot | None:
        """Fetch a fresh snapshot, or None when every stage came up empty."""
        outcome = await self.fetch_outcome()
        return outcome.snapshot

    async def get_plan_label(self) -> str | None:
        """Return the plan label, cached for PLAN_LABEL_TTL seconds."""
        now = self._clock()
        if (
            self._plan_label is not None
            and self._plan_label_at is not None
            and now - self._plan_label_at < PLAN_LABEL_TTL
        ):
            return self._plan_label

        label = await self.load_plan_label()
        if label is not None:
            self._plan_label = label
            self._plan_label_at = now
        return label
