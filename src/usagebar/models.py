"""Data models for usagebar.

Defines the immutable values every fetch path produces. A snapshot is never
mutated: each successful fetch builds a new one that replaces the previous.
"""

from __future__ import annotations

from datetime import UTC
from datetime import datetime
from datetime import timedelta
from enum import StrEnum
from pathlib import Path

import msgspec


class Provider(StrEnum):
    """The two quota providers tracked by usagebar."""

    CLAUDE = "claude"
    CODEX = "codex"

    @property
    def display_name(self) -> str:
        match self:
            case Provider.CLAUDE:
                return "Claude"
            case Provider.CODEX:
                return "Codex"

    @property
    def logs_path(self) -> Path:
        """Root of the provider's on-disk session logs."""
        match self:
            case Provider.CLAUDE:
                return Path.home() / ".claude" / "projects"
            case Provider.CODEX:
                return Path.home() / ".codex" / "sessions"

    @property
    def primary_window_label(self) -> str:
        return "5-Hour"

    @property
    def secondary_window_label(self) -> str:
        return "Weekly"


class DataSource(StrEnum):
    """Where a snapshot's numbers came from."""

    API = "api"
    LOCAL = "local"


class UsageStatus(StrEnum):
    """Traffic-light status derived from the primary window."""

    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"

    @classmethod
    def from_percentage(cls, percentage: float) -> UsageStatus:
        if percentage >= 90:
            return cls.RED
        if percentage >= 75:
            return cls.YELLOW
        return cls.GREEN


class UsageWindow(msgspec.Struct, frozen=True):
    """One rate-limit bucket (e.g. the 5-hour rolling window)."""

    percentage: float  # 0-100 for display, may exceed 100 from the API
    resets_at: datetime | None = None  # When the window resets (UTC)
    estimated: bool = False  # True only for locally derived values

    def clamped(self) -> float:
        """Return the percentage clamped to 0-100 for display."""
        return max(0.0, min(self.percentage, 100.0))

    def time_until_reset(self, now: datetime | None = None) -> timedelta | None:
        """Return time remaining until reset."""
        if self.resets_at is None:
            return None
        now = now or datetime.now(self.resets_at.tzinfo)
        return max(timedelta(0), self.resets_at - now)


class UsageSnapshot(msgspec.Struct, frozen=True):
    """One immutable observation of a provider's usage."""

    provider: Provider
    primary_window: UsageWindow
    source: DataSource
    observed_at: datetime = msgspec.field(default_factory=lambda: datetime.now(UTC))
    secondary_window: UsageWindow | None = None
    tokens_used: int | None = None

    @classmethod
    def from_api(
        cls,
        provider: Provider,
        primary: UsageWindow,
        secondary: UsageWindow | None = None,
    ) -> UsageSnapshot:
        """Build an API-sourced snapshot; API values are never estimates."""
        return cls(
            provider=provider,
            primary_window=msgspec.structs.replace(primary, estimated=False),
            secondary_window=(
                msgspec.structs.replace(secondary, estimated=False)
                if secondary is not None
                else None
            ),
            source=DataSource.API,
        )

    @classmethod
    def from_local(
        cls,
        provider: Provider,
        primary: UsageWindow,
        tokens_used: int | None = None,
    ) -> UsageSnapshot:
        """Build a log-sourced snapshot.

        Local logs carry no reliable signal for the longer window, so the
        secondary window is always dropped and the primary is flagged as an
        estimate.
        """
        return cls(
            provider=provider,
            primary_window=msgspec.structs.replace(primary, estimated=True),
            secondary_window=None,
            tokens_used=tokens_used,
            source=DataSource.LOCAL,
        )

    @property
    def status(self) -> UsageStatus:
        return UsageStatus.from_percentage(self.primary_window.percentage)


def validate_snapshot(snapshot: UsageSnapshot) -> list[str]:
    """Return list of invariant violations, empty if valid."""
    errors = []
    windows = [snapshot.primary_window]
    if snapshot.secondary_window is not None:
        windows.append(snapshot.secondary_window)
    for window in windows:
        if window.percentage < 0:
            errors.append(f"percentage {window.percentage} is negative")

    if snapshot.source == DataSource.API:
        if any(w.estimated for w in windows):
            errors.append("api snapshot carries an estimated window")
    else:
        if not snapshot.primary_window.estimated:
            errors.append("local snapshot primary window must be estimated")
        if snapshot.secondary_window is not None:
            errors.append("local snapshot cannot carry a secondary window")
    return errors


def format_reset_countdown(delta: timedelta | None) -> str:
    """Format reset time as countdown string."""
    if delta is None:
        return ""

    total_seconds = int(delta.total_seconds())
    if total_seconds <= 0:
        return "now"

    days, remainder = divmod(total_seconds, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes = remainder // 60

    if days > 0:
        return f"{days}d {hours}h"
    elif hours > 0:
        return f"{hours}h {minutes}m"
    else:
        return f"{minutes}m"
