# tests/api_server/conftest.py
"""
Pytest configuration and fixtures for API server tests.

Applications are built with `create_app()` around a fake provider, so no
configuration files or network access are involved.
"""

import asyncio
from typing import List, Optional, Sequence

import pytest
from fastapi.testclient import TestClient

from chatrelay.api_server.main import create_app
from chatrelay.config import AppConfig
from chatrelay.models import ChatTurn
from chatrelay.providers.base import BaseProvider, CompletionResult


class FakeProvider(BaseProvider):
    """
    Scripted provider.

    Args:
        candidates: Reply texts to return.
        delay: Seconds to sleep before answering.
        error: Exception to raise instead of answering.
    """

    def __init__(self, candidates=("Hello! How can I help?",), delay: float = 0.0, error: Optional[Exception] = None):
        super().__init__(default_model="fake-model")
        self.candidates = list(candidates)
        self.delay = delay
        self.error = error
        self.calls: List[List[ChatTurn]] = []
        self.models: List[Optional[str]] = []
        self.cancelled = False
        self.closed = False

    def get_name(self) -> str:
        return "fake"

    async def chat_completion(self, turns: Sequence[ChatTurn], model: Optional[str] = None) -> CompletionResult:
        self.calls.append(list(turns))
        self.models.append(model)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error is not None:
            raise self.error
        return CompletionResult(model=model or self.default_model, candidates=self.candidates)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def settings() -> AppConfig:
    return AppConfig.model_validate({
        "provider": {"model": "test-model"},
        "gateway": {"deadline_seconds": 0.2, "system_prompt": "SYSTEM PROMPT"},
    })


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def provider_factory():
    """The FakeProvider class, for tests that need a differently scripted provider."""
    return FakeProvider


@pytest.fixture
def api_client(settings, fake_provider):
    """A TestClient around an app whose gateway uses `fake_provider`."""
    app = create_app(settings, provider=fake_provider)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def make_client(settings):
    """Builds a client around an arbitrary provider."""
    clients = []

    def _make(provider: BaseProvider) -> TestClient:
        client = TestClient(create_app(settings, provider=provider))
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.close()

