# src/chatrelay/api_server/middleware/__init__.py
"""
Middleware for the chatrelay API server.
"""

from .observability import REQUEST_ID_HEADER, RequestContextMiddleware, get_current_request_context

__all__ = ["REQUEST_ID_HEADER", "RequestContextMiddleware", "get_current_request_context"]
