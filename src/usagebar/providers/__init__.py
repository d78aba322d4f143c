"""Provider registry for usagebar."""

from __future__ import annotations

import httpx

from usagebar.config.credentials import CredentialSource
from usagebar.config.settings import Config
from usagebar.models import Provider
from usagebar.providers.base import ProviderFetcher
from usagebar.providers.base import ProviderMetadata
from usagebar.providers.claude import ClaudeFetcher
from usagebar.providers.codex import CodexFetcher

# Provider registry
_FETCHERS: dict[Provider, type[ProviderFetcher]] = {}


def register_provider(cls: type[ProviderFetcher]) -> type[ProviderFetcher]:
    """Register a fetcher class under its metadata's provider."""
    if not hasattr(cls, "metadata"):
        raise ValueError(f"Fetcher {cls.__name__} must define metadata ClassVar")

    _FETCHERS[cls.metadata.provider] = cls
    return cls


def get_fetcher_class(provider: Provider) -> type[ProviderFetcher] | None:
    return _FETCHERS.get(provider)


def list_providers() -> list[Provider]:
    return list(_FETCHERS)


def create_fetcher(
    provider: Provider,
    credentials: CredentialSource,
    client: httpx.AsyncClient,
    config: Config | None = None,
) -> ProviderFetcher:
    """Create a fetcher for one provider.

    Raises:
        ValueError: If provider not registered
    """
    fetcher_cls = get_fetcher_class(provider)
    if fetcher_cls is None:
        raise ValueError(f"Unknown provider: {provider}")

    config = config or Config()
    return fetcher_cls(
        credentials,
        client,
        logs_root=config.logs_path(provider),
        timeout=config.refresh.effective_timeout(),
    )


def create_fetchers(
    config: Config,
    credentials: CredentialSource,
    client: httpx.AsyncClient,
) -> dict[Provider, ProviderFetcher]:
    """Create fetchers for every enabled provider, in registry order."""
    return {
        provider: create_fetcher(provider, credentials, client, config)
        for provider in _FETCHERS
        if config.is_provider_enabled(provider.value)
    }


register_provider(ClaudeFetcher)
register_provider(CodexFetcher)

__all__ = [
    "ProviderFetcher",
    "ProviderMetadata",
    "ClaudeFetcher",
    "CodexFetcher",
    "register_provider",
    "get_fetcher_class",
    "list_providers",
    "create_fetcher",
    "create_fetchers",
]
