"""CLI framework for usagebar."""
from __future__ import annotations

from usagebar.cli.app import ExitCode
from usagebar.cli.app import app
from usagebar.cli.app import run_app

__all__ = ["app", "run_app", "ExitCode"]
