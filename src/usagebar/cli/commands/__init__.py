"""CLI commands for usagebar."""
