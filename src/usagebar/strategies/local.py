"""Local session-log fallback strategy."""

from __future__ import annotations

import asyncio
from pathlib import Path

from usagebar.core.scanner import LocalLogScanner
from usagebar.core.scanner import ScanPolicy
from usagebar.models import Provider
from usagebar.models import UsageSnapshot
from usagebar.strategies.base import FetchResult
from usagebar.strategies.base import FetchStrategy


class LocalLogStrategy(FetchStrategy):
    """Derive usage from the provider's local log tree."""

    name = "local"

    def __init__(
        self,
        provider: Provider,
        root: Path,
        policy: ScanPolicy,
        scanner: LocalLogScanner | None = None,
    ) -> None:
        self.provider = provider
        self.root = root
        self.policy = policy
        self.scanner = scanner or LocalLogScanner()

    async def fetch(self) -> FetchResult:
        """Scan in a worker thread so disk I/O never blocks the event loop."""
        result = await asyncio.to_thread(self.scanner.scan, self.root, self.policy)
        if result is None:
            return FetchResult.fail(f"No usable log data under {self.root}")

        return FetchResult.ok(
            UsageSnapshot.from_local(
                self.provider, result.window, tokens_used=result.tokens_used
            )
        )
