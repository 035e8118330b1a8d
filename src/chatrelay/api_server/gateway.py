# src/chatrelay/api_server/gateway.py
"""
Deadline-bounded forwarding of one turn list to the completion provider.

The race between the provider call and the deadline is handled by
`asyncio.wait_for`: if the deadline fires first the provider task is
cancelled, and either way no timer outlives the call.
"""

import asyncio
import logging
import time
from typing import List, Optional, Sequence

from ..exceptions import ProviderError, ProviderTimeoutError
from ..models import ChatTurn, Role
from ..providers.base import BaseProvider

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant specializing in code. Respond accurately and concisely."
DEFAULT_DEADLINE_SECONDS = 30.0
NO_CONTENT_MESSAGE = "No content in response"


class ChatGateway:
    """
    Forwards a turn list to a provider under a hard deadline.
    """

    def __init__(
        self,
        provider: BaseProvider,
        *,
        model: Optional[str] = None,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        deadline_seconds: float = DEFAULT_DEADLINE_SECONDS,
    ):
        if deadline_seconds <= 0:
            raise ValueError("deadline_seconds must be positive")
        self.provider = provider
        self.model = model
        self.system_prompt = system_prompt
        self.deadline_seconds = deadline_seconds

    def prepare_turns(self, turns: Sequence[ChatTurn]) -> List[ChatTurn]:
        """Prepends the fixed system instruction to the caller's turns."""
        return [ChatTurn(role=Role.SYSTEM, content=self.system_prompt), *turns]

    async def complete(self, turns: Sequence[ChatTurn]) -> str:
        """
        Returns the reply text for `turns`.

        Raises:
            ProviderTimeoutError: If the provider has not answered within the deadline.
            ProviderError: If the call fails or yields no usable text.
        """
        provider_name = self.provider.get_name()
        prepared = self.prepare_turns(turns)
        started = time.monotonic()
        try:
            result = await asyncio.wait_for(
                self.provider.chat_completion(prepared, model=self.model),
                timeout=self.deadline_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Provider '%s' missed the %.1fs deadline; request cancelled.",
                provider_name, self.deadline_seconds,
            )
            raise ProviderTimeoutError(provider_name, self.deadline_seconds)
        except ProviderError:
            raise
        except Exception as e:
            logger.error("Unexpected error from provider '%s': %s", provider_name, e, exc_info=True)
            raise ProviderError(provider_name, f"Unexpected error: {e}")

        elapsed = time.monotonic() - started
        text = result.first_text
        if not text:
            logger.error(
                "Provider '%s' returned no usable content (%d candidate(s)) after %.2fs.",
                provider_name, len(result.candidates), elapsed,
            )
            raise ProviderError(provider_name, NO_CONTENT_MESSAGE)

        logger.info(
            "Provider '%s' replied with %d chars in %.2fs (model=%s).",
            provider_name, len(text), elapsed, result.model,
        )
        return text
