"""Fetch strategies for usagebar."""

from __future__ import annotations

from usagebar.strategies.api import AuthRetryGuard
from usagebar.strategies.api import RemoteApiStrategy
from usagebar.strategies.base import FetchAttempt
from usagebar.strategies.base import FetchOutcome
from usagebar.strategies.base import FetchResult
from usagebar.strategies.base import FetchStrategy
from usagebar.strategies.local import LocalLogStrategy

__all__ = [
    "AuthRetryGuard",
    "FetchStrategy",
    "FetchResult",
    "FetchAttempt",
    "FetchOutcome",
    "LocalLogStrategy",
    "RemoteApiStrategy",
]
