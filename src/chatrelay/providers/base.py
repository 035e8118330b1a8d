# src/chatrelay/providers/base.py
"""
Abstract Base Class for completion providers.

A provider takes a model identifier and an ordered turn list and returns
candidate replies. Cancellation is asyncio task cancellation: when the
gateway deadline fires, the task running `chat_completion` is cancelled,
and implementations must let `asyncio.CancelledError` propagate so the
underlying HTTP request is torn down.
"""

import abc
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..models import ChatTurn


@dataclass
class CompletionResult:
    """
    Normalized provider response.

    Attributes:
        model: Model that produced the reply, as reported by the provider.
        candidates: Reply texts in provider order. May be empty.
        raw: Provider-specific response payload, kept for debugging.
    """
    model: str
    candidates: List[str] = field(default_factory=list)
    raw: Optional[Dict[str, Any]] = None

    @property
    def first_text(self) -> str:
        """Text of the first candidate, or an empty string when there is none."""
        return self.candidates[0] if self.candidates else ""


class BaseProvider(abc.ABC):
    """
    Abstract Base Class for completion provider integrations.
    """
    log_raw_payloads_enabled: bool

    def __init__(self, default_model: str, log_raw_payloads: bool = False):
        self.default_model = default_model
        self.log_raw_payloads_enabled = log_raw_payloads

    @abc.abstractmethod
    def get_name(self) -> str:
        """
        Return the identifier name for this provider, e.g. "together".
        """
        pass

    @abc.abstractmethod
    async def chat_completion(
        self,
        turns: Sequence[ChatTurn],
        model: Optional[str] = None,
    ) -> CompletionResult:
        """
        Issue one non-streaming completion request.

        Args:
            turns: Ordered turn list, system instruction included.
            model: Model identifier; None uses the provider's default model.

        Returns:
            The normalized result. An empty candidate list is not an error
            at this level; the gateway decides what counts as usable.

        Raises:
            ProviderError: If the provider call fails.
        """
        pass

    async def close(self) -> None:
        """Release network resources held by the provider."""
        pass
