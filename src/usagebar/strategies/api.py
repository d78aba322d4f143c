"""Remote status API strategy shared by both providers."""

from __future__ import annotations

import asyncio
import logging
from abc import abstractmethod
from typing import ClassVar

import httpx
import msgspec

from usagebar.config.credentials import Credential
from usagebar.config.credentials import CredentialSource
from usagebar.errors.classify import classify_exception
from usagebar.errors.types import classify_http_status
from usagebar.models import Provider
from usagebar.models import UsageSnapshot
from usagebar.strategies.base import FetchResult
from usagebar.strategies.base import FetchStrategy

logger = logging.getLogger(__name__)


class AuthRetryGuard:
    """Remembers whether a 401 has already been retried.

    Once set, further 401s fall straight through to the local fallback until
    a successful response proves the credentials work again.
    """

    def __init__(self) -> None:
        self.retried = False

    def can_retry(self) -> bool:
        return not self.retried

    def mark_retried(self) -> None:
        self.retried = True

    def reset(self) -> None:
        self.retried = False


class RemoteApiStrategy(FetchStrategy):
    """Fetch usage from a provider's status API.

    Subclasses supply the endpoint, the request headers for a credential and
    the decoder for their response schema.
    """

    name = "api"
    provider: ClassVar[Provider]
    url: ClassVar[str]

    def __init__(
        self,
        credentials: CredentialSource,
        client: httpx.AsyncClient,
        guard: AuthRetryGuard | None = None,
    ) -> None:
        self.credentials = credentials
        self.client = client
        self.guard = guard or AuthRetryGuard()

    @abstractmethod
    def build_headers(self, credential: Credential) -> dict[str, str]:
        """Return request headers authorizing the credential."""

    @abstractmethod
    def parse_response(self, content: bytes) -> UsageSnapshot | None:
        """Decode a 2xx body; None means the primary window is missing.

        May raise msgspec.DecodeError for malformed payloads.
        """

    async def fetch(self) -> FetchResult:
        credential = await asyncio.to_thread(self.credentials.lookup, self.provider)
        if credential is None:
            return FetchResult.fail("No credentials available")
        return await self._request(credential, is_retry=False)

    async def _request(self, credential: Credential, is_retry: bool) -> FetchResult:
        try:
            response = await self.client.get(
                self.url, headers=self.build_headers(credential)
            )
        except httpx.HTTPError as e:
            error = classify_exception(e, self.provider.value)
            logger.warning("%s API request failed: %s", self.provider.display_name, error)
            return FetchResult.fail(str(error))

        if not response.is_success:
            mapping = classify_http_status(response.status_code)
            logger.warning(
                "%s API returned status %d (%s, is_retry=%s)",
                self.provider.display_name,
                response.status_code,
                mapping.category,
                is_retry,
            )
            if not mapping.retry_after_invalidate:
                return FetchResult.fail(f"Usage request failed: {response.status_code}")
            if not is_retry and self.guard.can_retry():
                self.guard.mark_retried()
                await asyncio.to_thread(self.credentials.invalidate)
                refreshed = await asyncio.to_thread(self.credentials.lookup, self.provider)
                if refreshed is None:
                    return FetchResult.fail("Credentials missing after invalidation")
                return await self._request(refreshed, is_retry=True)
            return FetchResult.fail(f"Credentials rejected (HTTP {response.status_code})")

        self.guard.reset()

        try:
            snapshot = self.parse_response(response.content)
        except msgspec.DecodeError as e:
            logger.warning("%s API payload invalid: %s", self.provider.display_name, e)
            return FetchResult.fail("Invalid response from usage endpoint")

        if snapshot is None:
            logger.info(
                "%s API response missing primary window, falling back to logs",
                self.provider.display_name,
            )
            return FetchResult.fail("Response has no primary window")

        return FetchResult.ok(snapshot)
