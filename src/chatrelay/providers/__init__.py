# src/chatrelay/providers/__init__.py
"""
Completion provider implementations for chatrelay.
"""

from .base import BaseProvider, CompletionResult
from .manager import PROVIDER_MAP, create_provider
from .openai_provider import OpenAIProvider

__all__ = [
    "BaseProvider",
    "CompletionResult",
    "OpenAIProvider",
    "PROVIDER_MAP",
    "create_provider",
]
