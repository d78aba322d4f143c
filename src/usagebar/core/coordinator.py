"""Refresh scheduling and snapshot publication."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from collections.abc import Mapping
from collections.abc import Sequence
from typing import Protocol

from usagebar.core.aggregate import AggregatedResult
from usagebar.core.aggregate import aggregate_results
from usagebar.core.notifier import ThresholdNotifier
from usagebar.core.timer import PeriodicTimer
from usagebar.core.updates import UpdateChecker
from usagebar.models import Provider
from usagebar.models import UsageSnapshot
from usagebar.strategies.base import FetchOutcome

logger = logging.getLogger(__name__)

Listener = Callable[[UsageSnapshot], None]


class UsageFetcher(Protocol):
    @property
    def provider(self) -> Provider: ...

    async def fetch_outcome(self) -> FetchOutcome: ...


class RefreshCoordinator:
    """Own the latest snapshot per provider and decide when to refresh.

    Full refreshes are single-flight: callers arriving while one is running
    await that same refresh. Refreshes of one provider are serialized, so the
    threshold state is never updated by two fetches at once.
    """

    def __init__(
        self,
        fetchers: Mapping[Provider, UsageFetcher],
        notifier: ThresholdNotifier | None = None,
        thresholds: Callable[[], Sequence[int]] | Sequence[int] = (),
        interval: float = 60.0,
        update_checker: UpdateChecker | None = None,
    ) -> None:
        self.fetchers = dict(fetchers)
        self.notifier = notifier
        self.update_checker = update_checker
        self._thresholds = thresholds
        self.interval = interval
        self._snapshots: dict[Provider, UsageSnapshot] = {}
        self._listeners: list[Listener] = []
        self._locks = {provider: asyncio.Lock() for provider in self.fetchers}
        self._inflight: asyncio.Future[AggregatedResult] | None = None
        self._timer: PeriodicTimer | None = None

    # Published state

    def snapshot(self, provider: Provider) -> UsageSnapshot | None:
        return self._snapshots.get(provider)

    @property
    def snapshots(self) -> dict[Provider, UsageSnapshot]:
        return dict(self._snapshots)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call listener with every published snapshot; returns an unsubscriber."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def thresholds(self) -> list[int]:
        values = self._thresholds() if callable(self._thresholds) else self._thresholds
        return sorted(values)

    # Refreshing

    async def refresh_all(self) -> AggregatedResult:
        """Refresh every provider, joining a refresh already in progress."""
        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._refresh_all())
            self._inflight.add_done_callback(self._clear_inflight)
        return await asyncio.shield(self._inflight)

    def _clear_inflight(self, future: asyncio.Future) -> None:
        if self._inflight is future:
            self._inflight = None

    async def _refresh_all(self) -> AggregatedResult:
        providers = list(self.fetchers)
        results, _ = await asyncio.gather(
            asyncio.gather(
                *(self._refresh(provider) for provider in providers),
                return_exceptions=True,
            ),
            self._check_updates(),
        )

        outcomes: dict[Provider, FetchOutcome] = {}
        for provider, result in zip(providers, results):
            if isinstance(result, BaseException):
                logger.error("%s refresh crashed: %r", provider.display_name, result)
                continue
            outcomes[provider] = result
        return aggregate_results(outcomes)

    async def refresh_provider(self, provider: Provider) -> FetchOutcome:
        """Refresh one provider outside the full-refresh single-flight."""
        if provider not in self.fetchers:
            raise KeyError(f"No fetcher for provider {provider}")
        return await self._refresh(provider)

    async def handle_change(self, provider: Provider) -> None:
        """Log-change entry point for the watcher."""
        if provider in self.fetchers:
            await self._refresh(provider)

    async def _refresh(self, provider: Provider) -> FetchOutcome:
        async with self._locks[provider]:
            outcome = await self.fetchers[provider].fetch_outcome()
            if outcome.snapshot is None:
                return outcome

            self._publish(outcome.snapshot)
            await self._notify(outcome.snapshot)
            return outcome

    def _publish(self, snapshot: UsageSnapshot) -> None:
        self._snapshots[snapshot.provider] = snapshot
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Snapshot listener failed")

    async def _notify(self, snapshot: UsageSnapshot) -> None:
        if self.notifier is None:
            return
        try:
            await self.notifier.check(snapshot, self.thresholds())
        except Exception:
            logger.exception("Threshold check failed for %s", snapshot.provider)

    async def _check_updates(self) -> None:
        if self.update_checker is None:
            return
        try:
            await self.update_checker.check_and_notify()
        except Exception:
            logger.exception("Update check failed")

    # Periodic timer

    @property
    def running(self) -> bool:
        return self._timer is not None

    def start(self) -> None:
        """Start the periodic refresh timer. No-op if already running."""
        if self._timer is not None:
            return
        self._timer = PeriodicTimer(self.interval, self.refresh_all)
        self._timer.start()
        logger.debug(
            "Refresh timer started: every %ss, tolerance %ss",
            self.interval,
            self._timer.tolerance,
        )

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.stop()
            self._timer = None

    def set_interval(self, interval: float) -> None:
        """Replace the timer; a refresh already running still publishes."""
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval
        if self._timer is not None:
            self.stop()
            self.start()
