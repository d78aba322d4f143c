"""JSON output utilities for usagebar."""

from __future__ import annotations

import json
import sys

import msgspec

from usagebar.core.aggregate import AggregatedResult
from usagebar.models import UsageSnapshot


def snapshot_to_dict(snapshot: UsageSnapshot, plan_label: str | None = None) -> dict:
    data = msgspec.to_builtins(snapshot)
    data["status"] = snapshot.status.value
    data["plan"] = plan_label
    return data


def result_to_dict(
    result: AggregatedResult, plan_labels: dict | None = None
) -> dict:
    """Shape a refresh result as {"providers": ..., "errors": ..., "fetched_at": ...}."""
    plan_labels = plan_labels or {}
    errors = {}
    for provider in result.failed_providers():
        attempts = result.outcomes[provider].attempts
        errors[provider.value] = [
            f"{a.strategy}: {a.error}" for a in attempts if a.error
        ] or ["no usage data"]

    return {
        "providers": {
            provider.value: snapshot_to_dict(snapshot, plan_labels.get(provider))
            for provider, snapshot in result.snapshots.items()
        },
        "errors": errors,
        "fetched_at": result.fetched_at.isoformat(),
    }


def output_json_pretty(data: object, indent: int = 2) -> None:
    """Output data as pretty-printed JSON to stdout."""
    python_obj = msgspec.json.decode(msgspec.json.encode(data))
    sys.stdout.write(json.dumps(python_obj, indent=indent))
    sys.stdout.write("\n")


def output_json_error(message: str, category: str = "unknown", indent: int = 2) -> None:
    output_json_pretty({"error": {"message": message, "category": category}}, indent=indent)
