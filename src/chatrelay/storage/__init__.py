# src/chatrelay/storage/__init__.py
"""
Session persistence for chatrelay.

The persistence port loads and saves the whole session collection as one
record; backends decide where that record lives.
"""

from .base_session import (BaseSessionPersistence, LoadResult, decode_collection,
                           decode_message, encode_collection)
from .json_session import JsonFileSessionPersistence
from .manager import create_persistence
from .memory_session import InMemorySessionPersistence

__all__ = [
    "BaseSessionPersistence",
    "InMemorySessionPersistence",
    "JsonFileSessionPersistence",
    "LoadResult",
    "create_persistence",
    "decode_collection",
    "decode_message",
    "encode_collection",
]
