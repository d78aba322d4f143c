"""Fetch strategy base classes."""

from __future__ import annotations

from abc import ABC, abstractmethod

import msgspec

from usagebar.models import Provider
from usagebar.models import UsageSnapshot


class FetchResult(msgspec.Struct, frozen=True):
    """Result of a fetch attempt."""

    success: bool
    snapshot: UsageSnapshot | None = None
    error: str | None = None

    @classmethod
    def ok(cls, snapshot: UsageSnapshot) -> FetchResult:
        return cls(success=True, snapshot=snapshot)

    @classmethod
    def fail(cls, error: str) -> FetchResult:
        return cls(success=False, error=error)


class FetchAttempt(msgspec.Struct):
    """Record of a single strategy attempt, kept for diagnostics."""

    strategy: str
    success: bool
    error: str | None = None
    duration_ms: int = 0


class FetchStrategy(ABC):
    """Base class for fetch strategies."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Strategy identifier (e.g., 'api', 'local')."""
        ...

    @abstractmethod
    async def fetch(self) -> FetchResult:
        """
        Attempt to fetch usage data.

        Returns FetchResult with snapshot or error details. Expected failures
        are reported through the result, not raised.
        """
        ...


class FetchOutcome(msgspec.Struct):
    """Complete result of one provider's fetch pipeline."""

    provider: Provider
    snapshot: UsageSnapshot | None
    source: str | None  # Which strategy succeeded
    attempts: list[FetchAttempt]  # All attempts for debugging

    @property
    def success(self) -> bool:
        return self.snapshot is not None
