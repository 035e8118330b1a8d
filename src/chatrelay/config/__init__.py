# src/chatrelay/config/__init__.py
"""
Configuration module for chatrelay.

Configuration files:
    - default_config.toml: Packaged defaults
    - User config: ~/.config/chatrelay/config.toml
    - Custom config: load_config(config_file_path=...) or `chatrelay --config`

Environment variables:
    - Prefix: CHATRELAY_
    - Nested keys use double underscores: CHATRELAY_GATEWAY__DEADLINE_SECONDS
"""

from .loader import load_config
from .models import (AppConfig, ClientSettings, CorsSettings, GatewaySettings,
                     ProviderSettings, StorageSettings)

__all__ = [
    "AppConfig",
    "ClientSettings",
    "CorsSettings",
    "GatewaySettings",
    "ProviderSettings",
    "StorageSettings",
    "load_config",
]
