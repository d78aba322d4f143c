"""Release update checks against the GitHub releases API."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

import httpx
import msgspec

from usagebar import __version__
from usagebar.core.notifier import NotificationService

logger = logging.getLogger(__name__)

RELEASES_URL = "https://api.github.com/repos/usagebar/usagebar/releases/latest"
CHECK_INTERVAL = 6 * 60 * 60
UPDATE_TIMEOUT = 10.0


class Release(msgspec.Struct, frozen=True):
    version: str
    url: str


class GitHubRelease(msgspec.Struct):
    tag_name: str
    html_url: str


def parse_version(version: str) -> tuple[int, ...]:
    """Return the numeric components of a dotted version, skipping the rest."""
    return tuple(int(part) for part in version.split(".") if part.isdigit())


def is_newer(remote: str, current: str) -> bool:
    """Compare dotted versions numerically; missing components count as zero."""
    r, c = parse_version(remote), parse_version(current)
    width = max(len(r), len(c))
    return r + (0,) * (width - len(r)) > c + (0,) * (width - len(c))


class UpdateChecker:
    """Look up the latest release at most once per ``interval`` seconds.

    Between lookups, and after a failed one, the last known newer release is
    returned. Each newer version is announced once through the notification
    service.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        service: NotificationService | None = None,
        current_version: str = __version__,
        url: str = RELEASES_URL,
        interval: float = CHECK_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client = client
        self.service = service
        self.current_version = current_version
        self.url = url
        self.interval = interval
        self.clock = clock
        self.available: Release | None = None
        self._last_check: float | None = None
        self._notified_version: str | None = None

    async def check(self) -> Release | None:
        """Return the newer release, if any, hitting the network when due."""
        now = self.clock()
        if self._last_check is not None and now - self._last_check < self.interval:
            return self.available
        self._last_check = now

        try:
            response = await self.client.get(
                self.url,
                headers={"Accept": "application/vnd.github+json"},
                timeout=UPDATE_TIMEOUT,
            )
        except httpx.HTTPError as e:
            logger.debug("Update check failed: %s", e)
            return self.available

        if response.status_code != 200:
            logger.debug("Update check returned status %d", response.status_code)
            return self.available

        try:
            latest = msgspec.json.decode(response.content, type=GitHubRelease)
        except msgspec.DecodeError as e:
            logger.debug("Release payload invalid: %s", e)
            return self.available

        version = latest.tag_name.removeprefix("v")
        if is_newer(version, self.current_version):
            self.available = Release(version=version, url=latest.html_url)
        else:
            self.available = None
        return self.available

    async def check_and_notify(self) -> Release | None:
        release = await self.check()
        if release is None or self.service is None:
            return release
        if release.version == self._notified_version:
            return release
        if not await self.service.is_authorized():
            return release

        logger.info("usagebar %s is available", release.version)
        await self.service.send(
            f"update-{release.version}",
            "Update Available",
            f"usagebar v{release.version} is now available",
        )
        self._notified_version = release.version
        return release
