"""Local session-log scanning for usagebar.

Both providers' CLIs append newline-delimited JSON records to log trees in the
user's home directory. When the remote API is unavailable these trees are the
only usage signal, and each provider needs a different strategy to read them:

* ``WindowedSumPolicy`` sums token counts over a trailing time window and
  turns the total into an estimated percentage of an assumed capacity.
* ``NewestMatchPolicy`` walks dated directories backwards and returns the most
  recent explicit rate-limit record.

Every line is decoded independently; a malformed line never aborts a scan.
"""

from __future__ import annotations

import logging
from abc import ABC
from abc import abstractmethod
from collections.abc import Callable
from collections.abc import Iterator
from datetime import UTC
from datetime import datetime
from datetime import timedelta
from pathlib import Path

import msgspec

from usagebar.models import UsageWindow

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = timedelta(hours=5)
DEFAULT_CAPACITY = 1_000_000  # Assumed tokens per 5-hour window
DEFAULT_LOOKBACK_DAYS = 7

TOKEN_FIELDS = (
    "input_tokens",
    "output_tokens",
    "cache_creation_input_tokens",
    "cache_read_input_tokens",
)

_decoder = msgspec.json.Decoder()


class ScanResult(msgspec.Struct, frozen=True):
    """Outcome of a successful scan."""

    window: UsageWindow
    tokens_used: int | None = None


def decode_line(line: bytes) -> dict | None:
    """Decode one log line, returning None for blank or malformed lines."""
    line = line.strip()
    if not line:
        return None
    try:
        record = _decoder.decode(line)
    except (msgspec.DecodeError, UnicodeDecodeError):
        return None
    return record if isinstance(record, dict) else None


def read_lines(path: Path) -> list[bytes]:
    """Read a log file's lines; unreadable files yield no lines."""
    try:
        return path.read_bytes().splitlines()
    except OSError as e:
        logger.debug("Skipping unreadable log file %s: %s", path, e)
        return []


def parse_timestamp(value: object) -> datetime | None:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class ScanPolicy(ABC):
    """Strategy for turning a log tree into a usage window."""

    @abstractmethod
    def scan(self, root: Path, now: datetime) -> ScanResult | None:
        """Scan the tree under root; return None when there is no signal."""


class WindowedSumPolicy(ScanPolicy):
    """Sum token usage inside a trailing window over ``root/<project>/*.jsonl``."""

    def __init__(
        self,
        window: timedelta = DEFAULT_WINDOW,
        capacity: int = DEFAULT_CAPACITY,
        include_undated: bool = False,
        pattern: str = "*.jsonl",
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.window = window
        self.capacity = capacity
        self.include_undated = include_undated
        self.pattern = pattern

    def iter_files(self, root: Path) -> Iterator[Path]:
        """Yield log files one directory level below root."""
        try:
            projects = sorted(p for p in root.iterdir() if p.is_dir())
        except OSError as e:
            logger.debug("Cannot list %s: %s", root, e)
            return
        for project in projects:
            try:
                files = sorted(project.glob(self.pattern))
            except OSError:
                continue
            yield from (f for f in files if f.is_file())

    def record_tokens(self, record: dict) -> int | None:
        """Return the token total carried by a record, or None if it has none."""
        message = record.get("message")
        usage = message.get("usage") if isinstance(message, dict) else None
        if not isinstance(usage, dict):
            usage = record.get("usage")
        if not isinstance(usage, dict):
            return None

        total = 0
        for field in TOKEN_FIELDS:
            value = usage.get(field)
            if isinstance(value, int | float) and not isinstance(value, bool):
                total += int(value)
        return total

    def in_window(self, record: dict, cutoff: datetime) -> bool:
        timestamp = parse_timestamp(record.get("timestamp"))
        if timestamp is None:
            return self.include_undated
        return timestamp >= cutoff

    def sum_file(self, path: Path, cutoff: datetime) -> int:
        total = 0
        for line in read_lines(path):
            record = decode_line(line)
            if record is None:
                continue
            tokens = self.record_tokens(record)
            if tokens is None or not self.in_window(record, cutoff):
                continue
            total += tokens
        return total

    def scan(self, root: Path, now: datetime) -> ScanResult | None:
        cutoff = now - self.window
        total = sum(self.sum_file(path, cutoff) for path in self.iter_files(root))
        if total <= 0:
            return None

        percentage = min(total / self.capacity * 100.0, 100.0)
        return ScanResult(
            window=UsageWindow(
                percentage=percentage,
                resets_at=now + self.window,
                estimated=True,
            ),
            tokens_used=total,
        )


class NewestMatchPolicy(ScanPolicy):
    """Find the newest explicit rate-limit record in ``root/YYYY/MM/DD``."""

    def __init__(
        self,
        lookback_days: int = DEFAULT_LOOKBACK_DAYS,
        prefix: str = "rollout-",
        suffix: str = ".jsonl",
        record_type: str = "token_count",
    ) -> None:
        self.lookback_days = lookback_days
        self.prefix = prefix
        self.suffix = suffix
        self.record_type = record_type

    def day_dirs(self, root: Path, now: datetime) -> Iterator[Path]:
        """Yield dated directories from today backwards (local calendar)."""
        today = now.astimezone().date()
        for days_ago in range(self.lookback_days):
            day = today - timedelta(days=days_ago)
            yield root / f"{day:%Y}" / f"{day:%m}" / f"{day:%d}"

    def day_files(self, day_dir: Path) -> list[Path]:
        """Return matching files in a day directory, newest first."""
        try:
            names = [
                p
                for p in day_dir.iterdir()
                if p.name.startswith(self.prefix) and p.name.endswith(self.suffix)
            ]
        except OSError:
            return []
        return sorted(names, key=lambda p: p.name, reverse=True)

    def match(self, record: dict) -> dict | None:
        """Return the primary rate-limit dict if the record carries one."""
        payload = record.get("payload")
        if not isinstance(payload, dict) or payload.get("type") != self.record_type:
            return None
        rate_limits = payload.get("rate_limits")
        if not isinstance(rate_limits, dict):
            return None
        primary = rate_limits.get("primary")
        return primary if isinstance(primary, dict) else None

    def build_window(self, primary: dict, now: datetime) -> UsageWindow:
        """Build a window, reporting elapsed windows as 0% with no reset."""
        resets_at = None
        raw_reset = primary.get("resets_at")
        if isinstance(raw_reset, int | float) and not isinstance(raw_reset, bool):
            try:
                resets_at = datetime.fromtimestamp(raw_reset, tz=UTC)
            except (OverflowError, OSError, ValueError):
                resets_at = None

        if resets_at is not None and resets_at <= now:
            return UsageWindow(percentage=0.0, resets_at=None)

        used = primary.get("used_percent")
        percentage = float(used) if isinstance(used, int | float) else 0.0
        return UsageWindow(percentage=percentage, resets_at=resets_at)

    @staticmethod
    def record_tokens(record: dict) -> int | None:
        info = record.get("payload", {}).get("info")
        if not isinstance(info, dict):
            return None
        usage = info.get("total_token_usage")
        if isinstance(usage, dict) and isinstance(usage.get("total_tokens"), int):
            return usage["total_tokens"]
        return None

    def scan_file(self, path: Path, now: datetime) -> ScanResult | None:
        for line in reversed(read_lines(path)):
            record = decode_line(line)
            if record is None:
                continue
            primary = self.match(record)
            if primary is None:
                continue
            return ScanResult(
                window=self.build_window(primary, now),
                tokens_used=self.record_tokens(record),
            )
        return None

    def scan(self, root: Path, now: datetime) -> ScanResult | None:
        for day_dir in self.day_dirs(root, now):
            if not day_dir.is_dir():
                continue
            for path in self.day_files(day_dir):
                if result := self.scan_file(path, now):
                    return result
        return None


class LocalLogScanner:
    """Aggregate usage signals from a provider's local log tree."""

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(UTC))

    def scan(self, root: Path, policy: ScanPolicy) -> ScanResult | None:
        if not root.is_dir():
            logger.debug("Log root %s does not exist", root)
            return None
        return policy.scan(root, self._clock())

    def aggregate(self, root: Path, policy: ScanPolicy) -> UsageWindow | None:
        """Return the aggregated usage window, or None when there is no data."""
        result = self.scan(root, policy)
        return result.window if result is not None else None
