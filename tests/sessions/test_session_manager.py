# tests/sessions/test_session_manager.py
"""
Tests for the SessionManager state machine.

These tests verify:
- Initialization from persisted data (always reaching IDLE)
- The submit lifecycle: optimistic append, reply classification, failures
  recorded as system messages, the single in-flight guard
- Session switching, new sessions and clearing all history
- Ordered background persistence and flush()
"""

import asyncio
import json
from typing import List

import pytest

from chatrelay.exceptions import TransportError
from chatrelay.models import ChatTurn, ContentType, Role
from chatrelay.sessions import ManagerState, SessionManager
from chatrelay.storage import InMemorySessionPersistence


class GatedTransport:
    """Transport whose reply is released by the test."""

    def __init__(self, reply: str = "late reply"):
        self.reply = reply
        self.release = asyncio.Event()
        self.started = asyncio.Event()
        self.calls: List[List[ChatTurn]] = []

    async def send(self, turns):
        self.calls.append(list(turns))
        self.started.set()
        await self.release.wait()
        return self.reply


class ExplodingPersistence(InMemorySessionPersistence):
    async def load(self):
        raise RuntimeError("disk on fire")


def _stored_collection(make_message):
    return json.dumps({
        "older": [make_message("old question", minute=0).to_storage_dict()],
        "newer": [
            make_message("new question", minute=5).to_storage_dict(),
            make_message("answer", role=Role.ASSISTANT, minute=6).to_storage_dict(),
        ],
    })


@pytest.fixture
def persistence():
    return InMemorySessionPersistence()


# =============================================================================
# INITIALIZATION
# =============================================================================


class TestInitialize:
    @pytest.mark.asyncio
    async def test_starts_uninitialized(self, persistence, recording_transport):
        manager = SessionManager(persistence, recording_transport())
        assert manager.state is ManagerState.UNINITIALIZED
        assert manager.is_loading

    @pytest.mark.asyncio
    async def test_empty_store(self, persistence, recording_transport):
        manager = SessionManager(persistence, recording_transport())
        await manager.initialize()
        assert manager.state is ManagerState.IDLE
        assert manager.active_session_id is None
        assert manager.messages == []
        assert manager.sessions == []

    @pytest.mark.asyncio
    async def test_restores_most_recent_session(self, make_message, recording_transport):
        persistence = InMemorySessionPersistence(data=_stored_collection(make_message))
        manager = SessionManager(persistence, recording_transport())
        await manager.initialize()
        assert manager.active_session_id == "newer"
        assert [m.content for m in manager.messages] == ["new question", "answer"]
        assert [s.id for s in manager.sessions] == ["newer", "older"]

    @pytest.mark.asyncio
    async def test_corrupted_store_reaches_idle(self, recording_transport):
        persistence = InMemorySessionPersistence(data="}{")
        manager = SessionManager(persistence, recording_transport())
        await manager.initialize()
        assert manager.state is ManagerState.IDLE
        assert manager.sessions == []
        assert persistence.data is None

    @pytest.mark.asyncio
    async def test_unexpected_load_failure_reaches_idle(self, recording_transport):
        manager = SessionManager(ExplodingPersistence(), recording_transport())
        await manager.initialize()
        assert manager.state is ManagerState.IDLE
        assert manager.active_session_id is None


# =============================================================================
# SUBMIT
# =============================================================================


class TestSubmit:
    @pytest.mark.asyncio
    async def test_first_message_in_blank_state(self, persistence, recording_transport):
        transport = recording_transport("Hello! How can I help?")
        manager = SessionManager(persistence, transport, id_factory=lambda: "session-1")
        await manager.initialize()

        session_id = await manager.submit("  Hi  ")
        await manager.flush()

        assert session_id == "session-1"
        assert manager.active_session_id == "session-1"
        assert [(m.role, m.content) for m in manager.messages] == [
            (Role.USER, "Hi"),
            (Role.ASSISTANT, "Hello! How can I help?"),
        ]
        assert manager.messages[0].content_type == ContentType.TEXT
        assert manager.messages[1].content_type == ContentType.TEXT
        assert [t.to_payload() for t in transport.calls[0]] == [{"role": "user", "content": "Hi"}]
        assert manager.state is ManagerState.IDLE

        stored = json.loads(persistence.data)
        assert [m["content"] for m in stored["session-1"]] == ["Hi", "Hello! How can I help?"]

    @pytest.mark.asyncio
    async def test_uses_input_buffer(self, persistence, recording_transport):
        transport = recording_transport("ok")
        manager = SessionManager(persistence, transport)
        await manager.initialize()
        manager.set_input("from buffer")
        await manager.submit()
        assert manager.input == ""
        assert manager.messages[0].content == "from buffer"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    async def test_empty_submission_ignored(self, persistence, recording_transport, text):
        transport = recording_transport()
        manager = SessionManager(persistence, transport)
        await manager.initialize()
        assert await manager.submit(text) is None
        await manager.flush()
        assert transport.calls == []
        assert manager.sessions == []
        assert persistence.write_count == 0

    @pytest.mark.asyncio
    async def test_submit_before_initialize_ignored(self, persistence, recording_transport):
        transport = recording_transport()
        manager = SessionManager(persistence, transport)
        assert await manager.submit("hello") is None
        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_full_history_sent(self, make_message, recording_transport):
        persistence = InMemorySessionPersistence(data=_stored_collection(make_message))
        transport = recording_transport("sure")
        manager = SessionManager(persistence, transport)
        await manager.initialize()
        await manager.submit("follow up")
        assert [t.content for t in transport.calls[0]] == ["new question", "answer", "follow up"]

    @pytest.mark.asyncio
    async def test_reply_is_classified(self, persistence, recording_transport):
        manager = SessionManager(persistence, recording_transport('{"ok": true}', "```py\nx = 1\n```"))
        await manager.initialize()
        await manager.submit("json please")
        await manager.submit("code please")
        assert [m.content_type for m in manager.messages if m.role == Role.ASSISTANT] == [
            ContentType.JSON,
            ContentType.CODE,
        ]

    @pytest.mark.asyncio
    async def test_transport_failure_becomes_system_message(self, persistence, recording_transport):
        error = TransportError("HTTP error! status: 504, body: Error: timed out", status_code=504)
        manager = SessionManager(persistence, recording_transport(error))
        await manager.initialize()

        session_id = await manager.submit("Hi")

        assert session_id is not None
        assert manager.state is ManagerState.IDLE
        last = manager.messages[-1]
        assert last.role == Role.SYSTEM
        assert last.content.startswith("Sorry, I encountered an error. Please try again.")
        assert "504" in last.content
        assert manager.messages[0].content == "Hi"

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_system_message(self, persistence, recording_transport):
        manager = SessionManager(persistence, recording_transport(RuntimeError("boom")))
        await manager.initialize()
        await manager.submit("Hi")
        assert manager.messages[-1].role == Role.SYSTEM
        assert "boom" in manager.messages[-1].content

    @pytest.mark.asyncio
    async def test_empty_reply_becomes_system_message(self, persistence, recording_transport):
        manager = SessionManager(persistence, recording_transport(""))
        await manager.initialize()
        await manager.submit("Hi")
        assert manager.messages[-1].role == Role.SYSTEM
        assert "empty response" in manager.messages[-1].content

    @pytest.mark.asyncio
    async def test_deeply_nested_reply_is_recorded(self, persistence, recording_transport):
        reply = "[" * 100000 + "]" * 100000
        manager = SessionManager(persistence, recording_transport(reply))
        await manager.initialize()
        session_id = await manager.submit("Hi")
        assert session_id is not None
        assert manager.state is ManagerState.IDLE
        last = manager.messages[-1]
        assert last.role == Role.ASSISTANT
        assert last.content == reply
        assert last.content_type == ContentType.TEXT

    @pytest.mark.asyncio
    async def test_new_session_id_avoids_collisions(self, make_message, recording_transport):
        persistence = InMemorySessionPersistence(data=_stored_collection(make_message))
        ids = iter(["older", "newer", "fresh"])
        manager = SessionManager(persistence, recording_transport(), id_factory=lambda: next(ids))
        await manager.initialize()
        manager.start_new_session()
        assert await manager.submit("hello") == "fresh"
        assert len(manager.sessions) == 3

    @pytest.mark.asyncio
    async def test_history_trimmed(self, recording_transport):
        persistence = InMemorySessionPersistence(history_limit=4)
        manager = SessionManager(persistence, recording_transport("a1", "a2", "a3"))
        await manager.initialize()
        for text in ("q1", "q2", "q3"):
            await manager.submit(text)
        await manager.flush()
        assert [m.content for m in manager.messages] == ["q2", "a2", "q3", "a3"]
        stored = json.loads(persistence.data)
        assert len(stored[manager.active_session_id]) == 4


class TestInFlightGuard:
    @pytest.mark.asyncio
    async def test_concurrent_submit_ignored(self, persistence):
        transport = GatedTransport("done")
        manager = SessionManager(persistence, transport)
        await manager.initialize()

        first = asyncio.create_task(manager.submit("one"))
        await transport.started.wait()

        assert manager.state is ManagerState.SUBMITTING
        assert manager.is_loading
        assert not manager.snapshot().interaction_allowed
        assert [m.content for m in manager.messages] == ["one"]
        assert await manager.submit("two") is None

        transport.release.set()
        await first
        assert len(transport.calls) == 1
        assert [m.content for m in manager.messages] == ["one", "done"]
        assert manager.state is ManagerState.IDLE

    @pytest.mark.asyncio
    async def test_late_reply_lands_in_originating_session(self, make_message):
        persistence = InMemorySessionPersistence(data=_stored_collection(make_message))
        transport = GatedTransport("answer for older")
        manager = SessionManager(persistence, transport)
        await manager.initialize()
        manager.switch_session("older")

        pending = asyncio.create_task(manager.submit("question for older"))
        await transport.started.wait()
        assert manager.switch_session("newer")

        transport.release.set()
        assert await pending == "older"

        assert manager.active_session_id == "newer"
        assert manager.messages[-1].content == "answer"
        assert manager.store.get_messages("older")[-1].content == "answer for older"


# =============================================================================
# SWITCH / NEW / CLEAR
# =============================================================================


class TestNavigation:
    @pytest.mark.asyncio
    async def test_switch_to_known_session(self, make_message, recording_transport):
        persistence = InMemorySessionPersistence(data=_stored_collection(make_message))
        manager = SessionManager(persistence, recording_transport())
        await manager.initialize()
        manager.set_input("draft")
        assert manager.switch_session("older") is True
        assert manager.active_session_id == "older"
        assert manager.input == ""
        assert [m.content for m in manager.messages] == ["old question"]

    @pytest.mark.asyncio
    async def test_switch_to_unknown_session_is_noop(self, make_message, recording_transport, caplog):
        persistence = InMemorySessionPersistence(data=_stored_collection(make_message))
        manager = SessionManager(persistence, recording_transport())
        await manager.initialize()
        assert manager.switch_session("nope") is False
        assert manager.active_session_id == "newer"
        assert "not found" in caplog.text

    @pytest.mark.asyncio
    async def test_start_new_session(self, make_message, recording_transport):
        persistence = InMemorySessionPersistence(data=_stored_collection(make_message))
        manager = SessionManager(persistence, recording_transport(), id_factory=lambda: "brand-new")
        await manager.initialize()
        manager.start_new_session()
        assert manager.active_session_id is None
        assert manager.messages == []
        assert len(manager.sessions) == 2

        await manager.submit("fresh start")
        assert manager.active_session_id == "brand-new"
        assert len(manager.sessions) == 3

    @pytest.mark.asyncio
    async def test_clear_all(self, make_message, recording_transport):
        persistence = InMemorySessionPersistence(data=_stored_collection(make_message))
        manager = SessionManager(persistence, recording_transport())
        await manager.initialize()

        await manager.clear_all()
        await manager.flush()

        assert manager.sessions == []
        assert manager.active_session_id is None
        assert persistence.data is None

        reloaded = SessionManager(persistence, recording_transport())
        await reloaded.initialize()
        assert reloaded.sessions == []


class TestPersistenceOrdering:
    @pytest.mark.asyncio
    async def test_writes_land_in_order(self, persistence, recording_transport):
        manager = SessionManager(persistence, recording_transport("r1", "r2"))
        await manager.initialize()
        await manager.submit("q1")
        await manager.submit("q2")
        await manager.flush()

        assert persistence.write_count == 4
        stored = json.loads(persistence.data)
        assert [m["content"] for m in stored[manager.active_session_id]] == ["q1", "r1", "q2", "r2"]

    @pytest.mark.asyncio
    async def test_save_after_clear_is_kept(self, persistence, recording_transport):
        manager = SessionManager(persistence, recording_transport("r1"))
        await manager.initialize()
        await manager.clear_all()
        await manager.submit("after clear")
        await manager.flush()
        stored = json.loads(persistence.data)
        assert [m["content"] for m in stored[manager.active_session_id]] == ["after clear", "r1"]
