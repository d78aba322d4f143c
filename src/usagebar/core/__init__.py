"""Core refresh machinery for usagebar."""

from usagebar.core.scanner import (
    LocalLogScanner,
    NewestMatchPolicy,
    ScanPolicy,
    ScanResult,
    WindowedSumPolicy,
)
from usagebar.core.aggregate import AggregatedResult, aggregate_results
from usagebar.core.fetch import execute_fetch_pipeline
from usagebar.core.http import create_http_client, get_timeout_config
from usagebar.core.notifier import (
    ConsoleNotificationService,
    LogNotificationService,
    NotificationService,
    ThresholdAlert,
    ThresholdNotifier,
)
from usagebar.core.timer import PeriodicTimer, compute_tolerance
from usagebar.core.updates import Release, UpdateChecker
from usagebar.core.watcher import ChangeSource, ChangeWatcher, PollingChangeSource
from usagebar.core.coordinator import RefreshCoordinator

__all__ = [
    # scanner
    "LocalLogScanner",
    "ScanPolicy",
    "ScanResult",
    "WindowedSumPolicy",
    "NewestMatchPolicy",
    # aggregate
    "AggregatedResult",
    "aggregate_results",
    # fetch
    "execute_fetch_pipeline",
    # http
    "create_http_client",
    "get_timeout_config",
    # notifier
    "NotificationService",
    "ThresholdAlert",
    "ThresholdNotifier",
    "ConsoleNotificationService",
    "LogNotificationService",
    # timer
    "PeriodicTimer",
    "compute_tolerance",
    # updates
    "Release",
    "UpdateChecker",
    # watcher
    "ChangeSource",
    "ChangeWatcher",
    "PollingChangeSource",
    # coordinator
    "RefreshCoordinator",
]
