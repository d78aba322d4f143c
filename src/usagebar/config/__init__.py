"""Configuration management for usagebar."""

from usagebar.config.credentials import (
    ChainedCredentialSource,
    Credential,
    CredentialSource,
    FileCredentialSource,
    KeyringCredentialSource,
    default_credential_source,
    parse_credentials,
    read_credential,
)
from usagebar.config.paths import config_dir, config_file
from usagebar.config.settings import (
    Config,
    CredentialsConfig,
    NotificationConfig,
    ProviderConfig,
    RefreshConfig,
    ThresholdConfig,
    UpdatesConfig,
    WatchConfig,
    get_config,
    load_config,
    save_config,
)

__all__ = [
    # paths
    "config_dir",
    "config_file",
    # settings
    "Config",
    "CredentialsConfig",
    "NotificationConfig",
    "ProviderConfig",
    "RefreshConfig",
    "ThresholdConfig",
    "UpdatesConfig",
    "WatchConfig",
    "get_config",
    "load_config",
    "save_config",
    # credentials
    "Credential",
    "CredentialSource",
    "FileCredentialSource",
    "KeyringCredentialSource",
    "ChainedCredentialSource",
    "default_credential_source",
    "parse_credentials",
    "read_credential",
]
