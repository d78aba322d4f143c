"""Result aggregation for full refreshes."""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field
from datetime import UTC
from datetime import datetime

from usagebar.models import Provider
from usagebar.models import UsageSnapshot
from usagebar.strategies.base import FetchOutcome


@dataclass(frozen=True)
class AggregatedResult:
    """Result of one refresh across every provider."""

    snapshots: dict[Provider, UsageSnapshot] = field(default_factory=dict)
    outcomes: dict[Provider, FetchOutcome] = field(default_factory=dict)
    fetched_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def successful_providers(self) -> list[Provider]:
        return list(self.snapshots)

    def failed_providers(self) -> list[Provider]:
        return [p for p in self.outcomes if p not in self.snapshots]

    def has_any_data(self) -> bool:
        return len(self.snapshots) > 0

    def all_failed(self) -> bool:
        return not self.snapshots and bool(self.outcomes)


def aggregate_results(outcomes: dict[Provider, FetchOutcome]) -> AggregatedResult:
    """Collect the snapshots of the outcomes that produced one."""
    snapshots = {
        provider: outcome.snapshot
        for provider, outcome in outcomes.items()
        if outcome.snapshot is not None
    }
    return AggregatedResult(snapshots=snapshots, outcomes=dict(outcomes))
