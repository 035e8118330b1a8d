# tests/conftest.py
"""
Shared fixtures for the chatrelay test suite.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import pytest

from chatrelay.models import ChatTurn, ContentType, Message, Role

BASE_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_message() -> Callable[..., Message]:
    """
    Factory for messages with predictable timestamps.

    `minute` offsets the creation time from BASE_TIME so tests can control
    which session holds the most recent message.
    """

    def _make(
        content: str = "hello",
        role: Role = Role.USER,
        minute: int = 0,
        msg_id: Optional[str] = None,
        content_type: Optional[ContentType] = None,
    ) -> Message:
        kwargs = {
            "role": role,
            "content": content,
            "created_at": BASE_TIME + timedelta(minutes=minute),
            "content_type": content_type,
        }
        if msg_id is not None:
            kwargs["id"] = msg_id
        return Message(**kwargs)

    return _make


class RecordingTransport:
    """
    A ChatTransport test double.

    Returns queued replies (or raises queued exceptions) in order and keeps
    every turn list it was sent.
    """

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls: List[List[ChatTurn]] = []

    async def send(self, turns: List[ChatTurn]) -> str:
        self.calls.append(list(turns))
        reply = self.replies.pop(0) if self.replies else "ok"
        if isinstance(reply, BaseException):
            raise reply
        return reply


@pytest.fixture
def recording_transport() -> Callable[..., RecordingTransport]:
    return RecordingTransport
