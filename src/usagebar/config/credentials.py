"""Credential lookup for usagebar.

The fetch path only ever sees the ``CredentialSource`` protocol. Secrets are
read from the providers' own CLI credential files or the system keyring and
are never written back.
"""

from __future__ import annotations

import json
import logging
import stat
import time
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

import msgspec

from usagebar.models import Provider

logger = logging.getLogger(__name__)

# Provider CLI credential locations
PROVIDER_CREDENTIAL_PATHS: dict[Provider, str] = {
    Provider.CLAUDE: "~/.claude/.credentials.json",
    Provider.CODEX: "~/.codex/auth.json",
}

KEYRING_SERVICE_NAME = "Claude Code-credentials"
CREDENTIAL_CACHE_TTL = 30.0


class Credential(msgspec.Struct, frozen=True):
    """Provider credential as seen by the fetch path."""

    access_token: str
    plan_hint: str | None = None  # e.g. Claude's subscriptionType
    account_id: str | None = None  # Codex ChatGPT-Account-Id header


class CredentialSource(Protocol):
    """Opaque credential store consumed by the fetchers."""

    def lookup(self, provider: Provider) -> Credential | None: ...

    def invalidate(self) -> None: ...


def read_credential(path: Path) -> bytes | None:
    """Read credential file if it exists and has secure permissions."""
    if not path.exists():
        return None

    mode = path.stat().st_mode
    if mode & (stat.S_IRGRP | stat.S_IWGRP | stat.S_IROTH | stat.S_IWOTH):
        logger.warning("Ignoring %s: readable by group or others", path)
        return None

    return path.read_bytes()


def _non_blank(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


def parse_claude_credentials(data: dict) -> Credential | None:
    """Parse Claude credentials.

    Handles two formats:
    1. Claude CLI format: {"claudeAiOauth": {"accessToken": "...", ...}}
    2. Flat format: {"accessToken": "...", "subscriptionType": "..."}
    """
    oauth = data.get("claudeAiOauth")
    if isinstance(oauth, dict):
        if token := _non_blank(oauth.get("accessToken")):
            plan = oauth.get("subscriptionType") or data.get("subscriptionType")
            return Credential(access_token=token, plan_hint=plan)

    if token := _non_blank(data.get("accessToken")):
        return Credential(access_token=token, plan_hint=data.get("subscriptionType"))

    return None


def parse_codex_credentials(data: dict) -> Credential | None:
    """Parse Codex CLI auth.json: {"tokens": {"access_token", "account_id"}}."""
    tokens = data.get("tokens")
    if not isinstance(tokens, dict):
        return None
    token = _non_blank(tokens.get("access_token"))
    if token is None:
        return None
    return Credential(access_token=token, account_id=tokens.get("account_id"))


_PARSERS: dict[Provider, Callable[[dict], Credential | None]] = {
    Provider.CLAUDE: parse_claude_credentials,
    Provider.CODEX: parse_codex_credentials,
}


def parse_credentials(provider: Provider, content: bytes | str) -> Credential | None:
    """Decode a raw credential payload for a provider."""
    try:
        data = json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.debug("Credential payload for %s is not valid JSON", provider)
        return None
    if not isinstance(data, dict):
        return None
    return _PARSERS[provider](data)


class _CachedSource:
    """Lookup cache shared by the concrete sources."""

    def __init__(
        self,
        ttl: float = CREDENTIAL_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl
        self._clock = clock
        self._cache: dict[Provider, tuple[Credential | None, float]] = {}

    def lookup(self, provider: Provider) -> Credential | None:
        cached = self._cache.get(provider)
        now = self._clock()
        if cached is not None and now - cached[1] < self._ttl:
            return cached[0]

        credential = self._load(provider)
        self._cache[provider] = (credential, now)
        return credential

    def invalidate(self) -> None:
        self._cache.clear()

    def _load(self, provider: Provider) -> Credential | None:
        raise NotImplementedError


class FileCredentialSource(_CachedSource):
    """Read credentials from the provider CLIs' own credential files."""

    def __init__(
        self,
        paths: dict[Provider, Path] | None = None,
        ttl: float = CREDENTIAL_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(ttl=ttl, clock=clock)
        self.paths = paths or {
            provider: Path(path).expanduser()
            for provider, path in PROVIDER_CREDENTIAL_PATHS.items()
        }

    def _load(self, provider: Provider) -> Credential | None:
        path = self.paths.get(provider)
        if path is None:
            return None
        try:
            content = read_credential(path)
        except OSError as e:
            logger.debug("Cannot read %s: %s", path, e)
            return None
        if content is None:
            return None
        return parse_credentials(provider, content)


class KeyringCredentialSource(_CachedSource):
    """Read Claude credentials from the system keyring."""

    def __init__(
        self,
        service_name: str = KEYRING_SERVICE_NAME,
        username: str | None = None,
        ttl: float = CREDENTIAL_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(ttl=ttl, clock=clock)
        self.service_name = service_name
        self.username = username

    def _load(self, provider: Provider) -> Credential | None:
        if provider is not Provider.CLAUDE:
            return None

        import keyring
        from keyring.errors import KeyringError

        try:
            if self.username is not None:
                payload = keyring.get_password(self.service_name, self.username)
            else:
                found = keyring.get_credential(self.service_name, None)
                payload = found.password if found is not None else None
        except KeyringError as e:
            logger.debug("Keyring lookup for %s failed: %s", self.service_name, e)
            return None

        if not payload:
            return None
        return parse_credentials(provider, payload)


class ChainedCredentialSource:
    """Try several sources in order; the first hit wins."""

    def __init__(self, *sources: CredentialSource) -> None:
        self.sources = sources

    def lookup(self, provider: Provider) -> Credential | None:
        for source in self.sources:
            if credential := source.lookup(provider):
                return credential
        return None

    def invalidate(self) -> None:
        for source in self.sources:
            source.invalidate()


def default_credential_source(use_keyring: bool = False) -> CredentialSource:
    """Build the credential source used by the CLI."""
    if use_keyring:
        return ChainedCredentialSource(KeyringCredentialSource(), FileCredentialSource())
    return FileCredentialSource()
