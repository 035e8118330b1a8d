# src/chatrelay/sessions/__init__.py
"""
Client-side session management for chatrelay.

Components:
    - SessionStore: in-memory collection with the trim policy
    - SessionManager: submit/switch/clear state machine
    - HttpChatTransport: posts turn lists to the request gateway
"""

from .manager import ChatView, ManagerState, SessionManager
from .store import SessionStore
from .transport import ChatTransport, HttpChatTransport

__all__ = [
    "ChatTransport",
    "ChatView",
    "HttpChatTransport",
    "ManagerState",
    "SessionManager",
    "SessionStore",
]
