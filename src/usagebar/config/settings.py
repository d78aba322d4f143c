"""Configuration structures and loading for usagebar."""

from __future__ import annotations

import os
import tomllib
from pathlib import Path

import msgspec

from usagebar.errors.types import ConfigError
from usagebar.models import Provider

# Default values
DEFAULT_REFRESH_INTERVAL = 60.0
MIN_REFRESH_INTERVAL = 5.0
DEFAULT_TIMEOUT = 20.0
MIN_TIMEOUT = 10.0
MAX_TIMEOUT = 30.0
DEFAULT_WATCH_LATENCY = 0.5
DEFAULT_WATCH_DEBOUNCE = 0.5


class RefreshConfig(msgspec.Struct, omit_defaults=True):
    """Periodic refresh settings."""

    interval: float = DEFAULT_REFRESH_INTERVAL
    timeout: float = DEFAULT_TIMEOUT

    def effective_interval(self) -> float:
        return max(self.interval, MIN_REFRESH_INTERVAL)

    def effective_timeout(self) -> float:
        return min(max(self.timeout, MIN_TIMEOUT), MAX_TIMEOUT)


class ThresholdConfig(msgspec.Struct, omit_defaults=True):
    """One alert threshold and its toggle."""

    value: int
    enabled: bool = True


def _default_thresholds() -> list[ThresholdConfig]:
    return [ThresholdConfig(50), ThresholdConfig(75), ThresholdConfig(90)]


class NotificationConfig(msgspec.Struct, omit_defaults=True):
    """Usage alert settings."""

    enabled: bool = True
    thresholds: list[ThresholdConfig] = msgspec.field(
        default_factory=_default_thresholds
    )


class WatchConfig(msgspec.Struct, omit_defaults=True):
    """Log directory watching settings."""

    enabled: bool = True
    latency: float = DEFAULT_WATCH_LATENCY
    debounce: float = DEFAULT_WATCH_DEBOUNCE


class UpdatesConfig(msgspec.Struct, omit_defaults=True):
    """Release update check settings."""

    enabled: bool = True


class CredentialsConfig(msgspec.Struct, omit_defaults=True):
    """Credential lookup settings."""

    use_keyring: bool = False


class ProviderConfig(msgspec.Struct, omit_defaults=True):
    """Configuration for a specific provider."""

    enabled: bool = True
    logs_path: str | None = None


class Config(msgspec.Struct, omit_defaults=True):
    """Main configuration structure."""

    selected_provider: Provider = Provider.CLAUDE
    enabled_providers: list[str] = []
    refresh: RefreshConfig = msgspec.field(default_factory=RefreshConfig)
    notifications: NotificationConfig = msgspec.field(
        default_factory=NotificationConfig
    )
    watch: WatchConfig = msgspec.field(default_factory=WatchConfig)
    updates: UpdatesConfig = msgspec.field(default_factory=UpdatesConfig)
    credentials: CredentialsConfig = msgspec.field(default_factory=CredentialsConfig)
    providers: dict[str, ProviderConfig] = msgspec.field(default_factory=dict)

    def get_provider_config(self, provider_id: str) -> ProviderConfig:
        """Get config for a provider, with defaults."""
        return self.providers.get(provider_id, ProviderConfig())

    def is_provider_enabled(self, provider_id: str) -> bool:
        """Check if a provider is enabled.

        A provider is enabled if:
        1. It's not explicitly disabled in providers config
        2. It's either in enabled_providers list OR enabled_providers is empty (all enabled)
        """
        provider_cfg = self.get_provider_config(provider_id)
        if not provider_cfg.enabled:
            return False
        if not self.enabled_providers:
            return True
        return provider_id in self.enabled_providers

    def logs_path(self, provider: Provider) -> Path:
        """Return the log root for a provider, honoring overrides."""
        override = self.get_provider_config(provider.value).logs_path
        if override:
            return Path(override).expanduser()
        return provider.logs_path

    def enabled_thresholds(self) -> list[int]:
        """Return the sorted list of enabled threshold percentages."""
        if not self.notifications.enabled:
            return []
        return sorted(
            {t.value for t in self.notifications.thresholds if t.enabled}
        )


def _load_from_toml(path: Path) -> dict:
    """Load configuration from TOML file."""
    if not path.exists():
        return {}

    with path.open("rb") as f:
        return tomllib.load(f)


def _save_to_toml(data: dict, path: Path) -> None:
    """Save configuration to TOML file."""
    import tomli_w

    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("wb") as f:
        tomli_w.dump(data, f)


def convert_config(data: dict) -> Config:
    """Convert raw dict to Config struct."""
    try:
        return msgspec.convert(data, type=Config)
    except msgspec.ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to config.

    USAGEBAR_ENABLED_PROVIDERS: Comma-separated list of providers
    USAGEBAR_REFRESH_INTERVAL: Refresh interval in seconds
    """
    if "USAGEBAR_ENABLED_PROVIDERS" in os.environ:
        providers_str = os.environ["USAGEBAR_ENABLED_PROVIDERS"]
        enabled = [p.strip() for p in providers_str.split(",") if p.strip()]
        config = msgspec.structs.replace(config, enabled_providers=enabled)

    if interval_str := os.environ.get("USAGEBAR_REFRESH_INTERVAL"):
        try:
            interval = float(interval_str)
        except ValueError as e:
            raise ConfigError(
                f"USAGEBAR_REFRESH_INTERVAL must be a number, got {interval_str!r}"
            ) from e
        refresh = msgspec.structs.replace(config.refresh, interval=interval)
        config = msgspec.structs.replace(config, refresh=refresh)

    return config


# Config state storage (CLI layer only; the core receives plain values)
_config: Config | None = None


def get_config() -> Config:
    """Get the current configuration (singleton)."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def load_config(path: Path | None = None, apply_env: bool = True) -> Config:
    """Load configuration from file with defaults.

    apply_env=False returns the file contents alone, for editing and saving.
    """
    from .paths import config_file

    config_path = path or config_file()

    try:
        raw_data = _load_from_toml(config_path)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Cannot parse {config_path}: {e}") from e

    config = convert_config(raw_data) if raw_data else Config()

    return _apply_env_overrides(config) if apply_env else config


def save_config(config: Config, path: Path | None = None) -> None:
    """Save configuration to file; the next get_config() re-reads it."""
    from .paths import config_file

    config_path = path or config_file()

    data = msgspec.to_builtins(config)

    # Remove None values
    def clean_none(d: dict) -> dict:
        return {
            k: clean_none(v) if isinstance(v, dict) else v
            for k, v in d.items()
            if v is not None
        }

    _save_to_toml(clean_none(data), config_path)

    global _config
    _config = None
