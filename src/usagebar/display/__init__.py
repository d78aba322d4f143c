"""Terminal (rich) and JSON output for usagebar."""

from __future__ import annotations

from usagebar.display.json import output_json_error
from usagebar.display.json import output_json_pretty
from usagebar.display.json import result_to_dict
from usagebar.display.json import snapshot_to_dict
from usagebar.display.rich import render_snapshot
from usagebar.display.rich import render_usage_bar
from usagebar.display.rich import source_badge
from usagebar.display.rich import status_color

__all__ = [
    "render_snapshot",
    "render_usage_bar",
    "source_badge",
    "status_color",
    "output_json_pretty",
    "output_json_error",
    "result_to_dict",
    "snapshot_to_dict",
]
