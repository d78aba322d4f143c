"""usagebar: Live rate-limit usage for Claude and Codex."""

from __future__ import annotations

__version__ = "0.1.0"

from usagebar.models import DataSource
from usagebar.models import Provider
from usagebar.models import UsageSnapshot
from usagebar.models import UsageStatus
from usagebar.models import UsageWindow
from usagebar.models import format_reset_countdown
from usagebar.models import validate_snapshot

__all__ = [
    "__version__",
    "Provider",
    "DataSource",
    "UsageStatus",
    "UsageWindow",
    "UsageSnapshot",
    "validate_snapshot",
    "format_reset_countdown",
]


def main() -> None:
    """Entry point for the usagebar CLI."""
    from usagebar.cli.app import run_app

    run_app()
