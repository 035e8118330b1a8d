# src/chatrelay/exceptions.py
"""
Custom exceptions for the chatrelay package.

This module defines a hierarchy of exception classes shared by the
client-side session manager and the server-side request gateway, so that
callers can map failures to HTTP statuses or to visible system messages.
"""

from typing import Optional


class ChatRelayError(Exception):
    """Base class for all chatrelay specific errors."""
    def __init__(self, message: str = "An unspecified error occurred in chatrelay."):
        super().__init__(message)


class ConfigError(ChatRelayError):
    """Raised for errors related to configuration loading or validation."""
    def __init__(self, message: str = "Configuration error."):
        super().__init__(message)


class ChatValidationError(ChatRelayError):
    """
    Raised when a chat request body is malformed.

    The gateway answers these with a 400 and never contacts the provider.
    """
    def __init__(self, message: str = "Invalid request body: 'messages' array is required."):
        super().__init__(message)


class ProviderError(ChatRelayError):
    """Raised for errors originating from a completion provider (API errors, empty replies)."""
    def __init__(self, provider_name: str = "Unknown", message: str = "Provider error."):
        self.provider_name = provider_name
        self.detail = message
        super().__init__(f"Error with provider '{provider_name}': {message}")


class ProviderTimeoutError(ProviderError):
    """Raised when a provider call does not finish before the gateway deadline."""
    def __init__(self, provider_name: str = "Unknown", timeout: Optional[float] = None):
        self.timeout = timeout
        if timeout is None:
            message = "Request timed out."
        else:
            message = f"Request timed out after {timeout:g}s."
        super().__init__(provider_name, message)


class StorageError(ChatRelayError):
    """Base class for errors related to session persistence."""
    def __init__(self, message: str = "Storage error."):
        super().__init__(message)


class PersistenceCorruptionError(StorageError):
    """
    Raised when the persisted session record cannot be decoded.

    Persistence backends recover from this locally by discarding the record;
    it never escapes `BaseSessionPersistence.load()`.
    """
    def __init__(self, message: str = "Persisted session data is corrupted."):
        super().__init__(message)


class TransportError(ChatRelayError):
    """Raised by client transports when the gateway call fails."""
    def __init__(self, message: str = "Gateway request failed.", status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)
