"""Pytest configuration and shared fixtures for usagebar tests."""

from __future__ import annotations

import json
from collections.abc import Callable, Generator
from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx
import pytest

from usagebar.config import settings as settings_module
from usagebar.config.credentials import Credential
from usagebar.models import Provider, UsageSnapshot, UsageWindow


class FakeCredentialSource:
    """In-memory credential source that records lookups and invalidations.

    ``rotations`` maps a provider to credentials handed out after each
    invalidate() call, in order.
    """

    def __init__(
        self,
        credentials: dict[Provider, Credential] | None = None,
        rotations: dict[Provider, list[Credential | None]] | None = None,
    ) -> None:
        self.credentials = dict(credentials or {})
        self.rotations = {p: list(c) for p, c in (rotations or {}).items()}
        self.lookups = 0
        self.invalidations = 0

    def lookup(self, provider: Provider) -> Credential | None:
        self.lookups += 1
        return self.credentials.get(provider)

    def invalidate(self) -> None:
        self.invalidations += 1
        for provider, queue in self.rotations.items():
            if queue:
                self.credentials[provider] = queue.pop(0)


@pytest.fixture
def utc_now() -> datetime:
    """Fixed UTC datetime for consistent testing."""
    return datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def claude_credential() -> Credential:
    return Credential(access_token="claude-token", plan_hint="max")


@pytest.fixture
def codex_credential() -> Credential:
    return Credential(access_token="codex-token", account_id="acct_123")


@pytest.fixture
def credential_source(
    claude_credential: Credential, codex_credential: Credential
) -> FakeCredentialSource:
    return FakeCredentialSource(
        {Provider.CLAUDE: claude_credential, Provider.CODEX: codex_credential}
    )


@pytest.fixture
def empty_credentials() -> FakeCredentialSource:
    return FakeCredentialSource()


@pytest.fixture
def api_snapshot(utc_now: datetime) -> UsageSnapshot:
    """Claude snapshot as returned by the status API."""
    return UsageSnapshot.from_api(
        Provider.CLAUDE,
        UsageWindow(percentage=45.0, resets_at=utc_now + timedelta(hours=3)),
        UsageWindow(percentage=72.0, resets_at=utc_now + timedelta(days=4)),
    )


@pytest.fixture
def local_snapshot(utc_now: datetime) -> UsageSnapshot:
    """Codex snapshot derived from local logs."""
    return UsageSnapshot.from_local(
        Provider.CODEX,
        UsageWindow(percentage=30.0, resets_at=utc_now + timedelta(hours=2)),
        tokens_used=300_000,
    )


@pytest.fixture
def write_jsonl() -> Callable[[Path, list], Path]:
    """Write records (dicts or raw strings) as one JSON line each."""

    def _write(path: Path, records: list) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        lines = [r if isinstance(r, str) else json.dumps(r) for r in records]
        path.write_text("\n".join(lines) + "\n")
        return path

    return _write


@pytest.fixture
def mock_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    """Build an AsyncClient backed by an httpx.MockTransport handler."""

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _make


@pytest.fixture
def temp_config_dir(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Generator[Path, None, None]:
    """Point usagebar at an empty config dir and reset the cached config."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    monkeypatch.setenv("USAGEBAR_CONFIG_DIR", str(config_dir))
    monkeypatch.delenv("USAGEBAR_REFRESH_INTERVAL", raising=False)
    monkeypatch.delenv("USAGEBAR_ENABLED_PROVIDERS", raising=False)
    monkeypatch.setattr(settings_module, "_config", None)
    yield config_dir
    settings_module._config = None


@pytest.fixture
def make_credentials() -> type[FakeCredentialSource]:
    """The FakeCredentialSource class, for tests that need custom rotations."""
    return FakeCredentialSource
