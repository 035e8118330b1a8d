# src/chatrelay/providers/openai_provider.py
"""
OpenAI-compatible completion provider.

Talks to any service exposing the OpenAI chat completions API. The
default configuration points it at Together AI
(https://api.together.xyz/v1), which hosts the DeepSeek distill models.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

import openai
from openai import AsyncOpenAI

from ..exceptions import ConfigError, ProviderError
from ..models import ChatTurn
from .base import BaseProvider, CompletionResult

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "deepseek-ai/DeepSeek-R1-Distill-Llama-70B-free"
DEFAULT_BASE_URL = "https://api.together.xyz/v1"
DEFAULT_API_KEY_ENV = "TOGETHER_API_KEY"


class OpenAIProvider(BaseProvider):
    """
    Provider for OpenAI-compatible chat completion endpoints.
    """
    _client: AsyncOpenAI

    def __init__(self, config: Dict[str, Any], log_raw_payloads: bool = False):
        """
        Initializes the OpenAIProvider.

        Args:
            config: Provider settings containing:
                    'name' (optional): Name reported in errors and logs (default: "together").
                    'api_key': Resolved API key (see ProviderSettings.resolve_api_key).
                    'api_key_env' (optional): Env var the key was expected in, for error messages.
                    'base_url' (optional): API endpoint URL; None uses the SDK default.
                    'model' (optional): Default model identifier.
            log_raw_payloads: Whether to log raw request/response payloads.

        Raises:
            ConfigError: If no API key is available or the client cannot be built.
        """
        super().__init__(config.get('model') or DEFAULT_MODEL, log_raw_payloads)
        self._name = config.get('name', 'together')
        api_key_env = config.get('api_key_env') or DEFAULT_API_KEY_ENV
        self.api_key = config.get('api_key')
        self.base_url = config.get('base_url', DEFAULT_BASE_URL)

        if not self.api_key:
            raise ConfigError(f"API key not configured. Set '{api_key_env}' or provider.api_key.")

        try:
            # The gateway owns the deadline and never retries.
            self._client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url, max_retries=0)
        except openai.OpenAIError as e:
            logger.error(f"Failed to initialize AsyncOpenAI client: {e}", exc_info=True)
            raise ConfigError(f"{self._name} client initialization failed: {e}")
        logger.debug(f"AsyncOpenAI client initialized for {self.base_url or 'default endpoint'}.")

    def get_name(self) -> str:
        return self._name

    async def chat_completion(
        self,
        turns: Sequence[ChatTurn],
        model: Optional[str] = None,
    ) -> CompletionResult:
        model_name = model or self.default_model
        messages_payload: List[Dict[str, str]] = [turn.to_payload() for turn in turns]

        if self.log_raw_payloads_enabled and logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"RAW LLM REQUEST ({self.get_name()} @ {model_name}): "
                f"{json.dumps({'model': model_name, 'messages': messages_payload}, indent=2)}"
            )
        logger.debug(f"Sending request to {self.get_name()}: model='{model_name}', num_messages={len(messages_payload)}")

        try:
            response = await self._client.chat.completions.create(
                model=model_name,
                messages=messages_payload,  # type: ignore [arg-type]
                stream=False,
            )
        except openai.APIStatusError as e:
            logger.error(f"{self.get_name()} API error: Status {e.status_code} - {e.message}")
            if e.status_code == 401:
                raise ProviderError(self.get_name(), f"Authentication failed (Invalid API Key? Status 401): {e.message}")
            if e.status_code == 429:
                raise ProviderError(self.get_name(), f"Rate limit exceeded (Status 429): {e.message}")
            raise ProviderError(self.get_name(), f"API Error (Status {e.status_code}): {e.message}")
        except openai.APITimeoutError as e:
            logger.error(f"{self.get_name()} request timed out: {e}")
            raise ProviderError(self.get_name(), f"Request timed out: {e}")
        except openai.APIConnectionError as e:
            logger.error(f"{self.get_name()} connection error: {e}")
            raise ProviderError(self.get_name(), f"Connection error: {e}")
        except openai.OpenAIError as e:
            logger.error(f"Unexpected {self.get_name()} SDK error: {e}", exc_info=True)
            raise ProviderError(self.get_name(), f"An unexpected error occurred: {e}")

        if self.log_raw_payloads_enabled and logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"RAW LLM RESPONSE ({self.get_name()} @ {model_name}): {response.model_dump_json(indent=2)}")

        candidates = [
            choice.message.content or ""
            for choice in (response.choices or [])
            if choice.message is not None
        ]
        return CompletionResult(
            model=response.model or model_name,
            candidates=candidates,
            raw=response.model_dump(exclude_none=True),
        )

    async def close(self) -> None:
        await self._client.close()
        logger.debug(f"{self.get_name()} client closed.")
