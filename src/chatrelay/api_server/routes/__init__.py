# src/chatrelay/api_server/routes/__init__.py
"""
API routes for the chatrelay API server.
"""

from .chat import router as chat_router

__all__ = ["chat_router"]
