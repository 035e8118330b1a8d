# src/chatrelay/__init__.py
"""
chatrelay - durable multi-session chat client and deadline-bounded completion gateway.

The client side keeps several independent conversation threads, persists
them between runs, and submits turns to the gateway; the gateway forwards
each turn list to an OpenAI-compatible completion provider under a hard
deadline.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("chatrelay")
except PackageNotFoundError:
    __version__ = "0.0.0"

from .classifier import classify
from .exceptions import (ChatRelayError, ChatValidationError, ConfigError,
                         PersistenceCorruptionError, ProviderError,
                         ProviderTimeoutError, StorageError, TransportError)
from .models import ChatTurn, ContentType, Message, Role, SessionSummary
from .sessions import ChatView, HttpChatTransport, ManagerState, SessionManager, SessionStore
from .storage import (BaseSessionPersistence, InMemorySessionPersistence,
                      JsonFileSessionPersistence, LoadResult)

__all__ = [
    "__version__",
    "BaseSessionPersistence",
    "ChatRelayError",
    "ChatTurn",
    "ChatValidationError",
    "ChatView",
    "ConfigError",
    "ContentType",
    "HttpChatTransport",
    "InMemorySessionPersistence",
    "JsonFileSessionPersistence",
    "LoadResult",
    "ManagerState",
    "Message",
    "PersistenceCorruptionError",
    "ProviderError",
    "ProviderTimeoutError",
    "Role",
    "SessionManager",
    "SessionStore",
    "SessionSummary",
    "StorageError",
    "TransportError",
    "classify",
]
