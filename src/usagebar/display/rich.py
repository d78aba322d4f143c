"""Rich-based rendering utilities for usagebar."""

from __future__ import annotations

from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from usagebar.models import DataSource
from usagebar.models import UsageSnapshot
from usagebar.models import UsageStatus
from usagebar.models import UsageWindow
from usagebar.models import format_reset_countdown

STATUS_COLORS = {
    UsageStatus.GREEN: "green",
    UsageStatus.YELLOW: "yellow",
    UsageStatus.RED: "red",
}


def status_color(percentage: float) -> str:
    return STATUS_COLORS[UsageStatus.from_percentage(percentage)]


def render_usage_bar(percentage: float, width: int = 20, color: str | None = None) -> Text:
    """Render a usage progress bar.

    Args:
        percentage: Usage percentage, clamped to 0-100 for the bar
        width: Bar width in characters
        color: Optional color override

    Returns:
        Rich Text with the progress bar
    """
    clamped = max(0.0, min(percentage, 100.0))
    filled = int(clamped * width // 100)
    bar = "█" * filled + "░" * (width - filled)
    return Text(bar, style=color or status_color(percentage))


def format_percentage(window: UsageWindow) -> str:
    prefix = "~" if window.estimated else ""
    return f"{prefix}{window.percentage:.0f}%"


def format_reset(window: UsageWindow) -> Text:
    delta = window.time_until_reset()
    if delta is None:
        return Text("")
    return Text(f"resets in {format_reset_countdown(delta)}", style="dim")


def source_badge(source: DataSource) -> Text:
    """Badge showing whether numbers are live or estimated from logs."""
    if source is DataSource.API:
        return Text(" API ", style="bold white on green")
    return Text(" LOCAL ", style="bold black on yellow")


def render_snapshot(snapshot: UsageSnapshot, plan_label: str | None = None) -> Panel:
    """Render one provider's snapshot as a panel."""
    provider = snapshot.provider

    grid = Table.grid(padding=(0, 2))
    grid.add_column(min_width=8)
    grid.add_column()
    grid.add_column(justify="right", min_width=5)
    grid.add_column()

    windows = [(provider.primary_window_label, snapshot.primary_window)]
    if snapshot.secondary_window is not None:
        windows.append((provider.secondary_window_label, snapshot.secondary_window))

    for label, window in windows:
        grid.add_row(
            Text(label, style="bold"),
            render_usage_bar(window.percentage),
            Text(format_percentage(window), style="bold"),
            format_reset(window),
        )

    footer = Text()
    footer.append_text(source_badge(snapshot.source))
    if snapshot.tokens_used is not None:
        footer.append(f"  {snapshot.tokens_used:,} tokens", style="dim")
    if snapshot.primary_window.estimated:
        footer.append("  estimated from local logs", style="dim")

    title = Text(provider.display_name, style="bold")
    if plan_label:
        title.append(f" ({plan_label})", style="dim")

    return Panel(
        Group(grid, footer),
        title=title,
        title_align="left",
        border_style=status_color(snapshot.primary_window.percentage),
        expand=False,
    )
