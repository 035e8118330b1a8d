# src/chatrelay/api_server/__init__.py
"""
The chatrelay request gateway: a FastAPI application exposing `/chat`.
"""

from .gateway import ChatGateway
from .main import build_gateway, create_app

__all__ = ["ChatGateway", "build_gateway", "create_app"]
