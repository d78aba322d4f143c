"""Usage threshold alerts."""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from typing import Protocol

import msgspec
from rich.console import Console
from rich.panel import Panel

from usagebar.models import Provider
from usagebar.models import UsageSnapshot

logger = logging.getLogger(__name__)


class NotificationService(Protocol):
    """Delivery port for alerts."""

    async def send(self, identifier: str, title: str, body: str) -> None: ...

    async def is_authorized(self) -> bool: ...


class ThresholdAlert(msgspec.Struct, frozen=True):
    provider: Provider
    threshold: int
    percentage: int

    @property
    def identifier(self) -> str:
        return f"{self.provider.value}-{self.threshold}"

    @property
    def title(self) -> str:
        return f"{self.provider.display_name} Usage Alert"

    @property
    def body(self) -> str:
        return (
            f"You've used {self.percentage}% of your "
            f"{self.provider.display_name} rate limit"
        )


class ThresholdNotifier:
    """Fire each threshold once per excursion above it.

    A provider's notified set is cleared when usage drops below the lowest
    enabled threshold; the drop itself produces no alert.
    """

    def __init__(self, service: NotificationService, enabled: bool = True) -> None:
        self.service = service
        self.enabled = enabled
        self._notified: dict[Provider, set[int]] = {}

    def notified(self, provider: Provider) -> frozenset[int]:
        return frozenset(self._notified.get(provider, ()))

    def due(
        self, snapshot: UsageSnapshot, thresholds: Sequence[int]
    ) -> list[ThresholdAlert]:
        """Return alerts owed for one snapshot without recording them.

        A drop below the lowest threshold clears the provider's notified set.
        """
        if not thresholds:
            return []

        provider = snapshot.provider
        pct = math.floor(snapshot.primary_window.percentage)
        sent = self._notified.setdefault(provider, set())

        if pct < min(thresholds) and sent:
            logger.debug("%s dropped below %d%%, resetting alerts", provider, min(thresholds))
            sent.clear()
            return []

        return [
            ThresholdAlert(provider, threshold, pct)
            for threshold in sorted(thresholds)
            if pct >= threshold and threshold not in sent
        ]

    def mark(self, alert: ThresholdAlert) -> None:
        self._notified.setdefault(alert.provider, set()).add(alert.threshold)

    def evaluate(
        self, snapshot: UsageSnapshot, thresholds: Sequence[int]
    ) -> list[ThresholdAlert]:
        """Update the notified set for one snapshot and return due alerts."""
        alerts = self.due(snapshot, thresholds)
        for alert in alerts:
            self.mark(alert)
        return alerts

    async def check(
        self, snapshot: UsageSnapshot, thresholds: Sequence[int]
    ) -> list[ThresholdAlert]:
        """Evaluate a snapshot and deliver any alerts.

        Nothing is recorded while notifications are disabled or the service
        is unauthorized, so alerts fire once delivery becomes possible. A
        threshold is recorded only after its send returns; a failed send
        propagates and is retried on the next check.
        """
        if not self.enabled or not thresholds:
            return []
        if not await self.service.is_authorized():
            logger.debug("Notification service not authorized, skipping alerts")
            return []

        alerts = self.due(snapshot, thresholds)
        for alert in alerts:
            logger.info("Sending %s alert", alert.identifier)
            await self.service.send(alert.identifier, alert.title, alert.body)
            self.mark(alert)
        return alerts

    def reset(self, provider: Provider) -> None:
        self._notified.pop(provider, None)

    def reset_all(self) -> None:
        self._notified.clear()


class ConsoleNotificationService:
    """Show alerts as panels on a rich console."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console(stderr=True)

    async def send(self, identifier: str, title: str, body: str) -> None:
        self.console.print(
            Panel(body, title=f"[bold]{title}[/bold]", border_style="yellow", expand=False)
        )

    async def is_authorized(self) -> bool:
        return True


class LogNotificationService:
    """Write alerts to the log."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self.log = log or logger

    async def send(self, identifier: str, title: str, body: str) -> None:
        self.log.warning("[%s] %s: %s", identifier, title, body)

    async def is_authorized(self) -> bool:
        return True
