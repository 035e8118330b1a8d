# src/chatrelay/sessions/transport.py
"""
Client-side transports that carry a turn list to the request gateway.

The SessionManager depends only on the `ChatTransport` protocol, so tests
and alternative front ends can swap in their own implementation.
"""

import logging
from typing import List, Optional, Protocol, Sequence

import httpx

from ..exceptions import TransportError
from ..models import ChatTurn

logger = logging.getLogger(__name__)


class ChatTransport(Protocol):
    async def send(self, turns: Sequence[ChatTurn]) -> str:
        """Deliver the turn list and return the complete reply text. Raise TransportError on failure."""
        ...


class HttpChatTransport:
    """
    Posts `{"messages": [...]}` to the gateway's `/chat` endpoint with httpx.

    A non-2xx status, a network failure or a client-side timeout raises
    TransportError. Nothing is retried.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def send(self, turns: Sequence[ChatTurn]) -> str:
        payload: List[dict] = [turn.to_payload() for turn in turns]
        logger.debug("POST %s with %d turn(s)", self.url, len(payload))
        try:
            response = await self._get_client().post(
                self.url,
                json={"messages": payload},
                headers={"Content-Type": "application/json"},
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"Request to gateway timed out: {e}")
        except httpx.HTTPError as e:
            raise TransportError(f"Request to gateway failed: {e}")

        if not response.is_success:
            raise TransportError(
                f"HTTP error! status: {response.status_code}, body: {response.text}",
                status_code=response.status_code,
            )
        return response.text

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
