# src/chatrelay/providers/manager.py
"""
Builds the configured completion provider.
"""

import logging
from typing import Dict, Type

from ..config.models import ProviderSettings
from ..exceptions import ConfigError
from .base import BaseProvider
from .openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)

# --- Mapping from config provider type to class ---
PROVIDER_MAP: Dict[str, Type[BaseProvider]] = {
    "together": OpenAIProvider,
    "openai": OpenAIProvider,
}


def create_provider(settings: ProviderSettings) -> BaseProvider:
    """
    Instantiates the provider named by `settings.type`.

    Raises:
        ConfigError: If the type is unknown or the provider cannot be configured
                     (for example, a missing API key).
    """
    provider_cls = PROVIDER_MAP.get(settings.type)
    if provider_cls is None:
        raise ConfigError(
            f"Provider type '{settings.type}' is not recognized. Available: {list(PROVIDER_MAP.keys())}"
        )
    provider_config = {
        "name": settings.type,
        "api_key": settings.resolve_api_key(),
        "api_key_env": settings.api_key_env,
        "base_url": settings.base_url,
        "model": settings.model,
    }
    provider = provider_cls(provider_config, log_raw_payloads=settings.log_raw_payloads)
    logger.info(f"Provider '{provider.get_name()}' initialized with model '{settings.model}'.")
    return provider
