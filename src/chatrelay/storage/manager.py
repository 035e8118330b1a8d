# src/chatrelay/storage/manager.py
"""
Selects a session persistence backend from configuration.
"""

import logging
from typing import Dict, Type

from ..config.models import StorageSettings
from ..exceptions import ConfigError
from .base_session import BaseSessionPersistence
from .json_session import JsonFileSessionPersistence
from .memory_session import InMemorySessionPersistence

logger = logging.getLogger(__name__)

# --- Mapping from config storage type to class ---
PERSISTENCE_MAP: Dict[str, Type[BaseSessionPersistence]] = {
    "json": JsonFileSessionPersistence,
    "memory": InMemorySessionPersistence,
}


def create_persistence(settings: StorageSettings) -> BaseSessionPersistence:
    """
    Builds the persistence backend named by `settings.type`.

    Raises:
        ConfigError: If the type is not a known backend.
    """
    backend_cls = PERSISTENCE_MAP.get(settings.type)
    if backend_cls is None:
        raise ConfigError(
            f"Unknown storage type '{settings.type}'. Available: {list(PERSISTENCE_MAP.keys())}"
        )
    if backend_cls is JsonFileSessionPersistence:
        backend: BaseSessionPersistence = JsonFileSessionPersistence(settings.path, history_limit=settings.history_limit)
    else:
        backend = backend_cls(history_limit=settings.history_limit)
    logger.info("Session persistence initialized: %s", type(backend).__name__)
    return backend
