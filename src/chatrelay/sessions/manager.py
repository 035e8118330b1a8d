# src/chatrelay/sessions/manager.py
"""
Session Management for chatrelay.

This module defines the SessionManager class, the client-side state
machine that owns the conversation collection, drives the submit
lifecycle against the request gateway, and records every change through
the injected persistence port.

States: UNINITIALIZED -> IDLE -> SUBMITTING -> IDLE -> ...
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from ..classifier import classify
from ..exceptions import TransportError
from ..models import ContentType, Message, Role, SessionSummary
from ..storage.base_session import BaseSessionPersistence
from .store import SessionStore
from .transport import ChatTransport

logger = logging.getLogger(__name__)

ERROR_MESSAGE_PREFIX = "Sorry, I encountered an error. Please try again."


class ManagerState(str, Enum):
    UNINITIALIZED = "uninitialized"
    IDLE = "idle"
    SUBMITTING = "submitting"


@dataclass
class ChatView:
    """Everything a UI needs to render one frame of the chat."""
    messages: List[Message]
    input: str
    is_loading: bool
    active_session_id: Optional[str]
    sessions: List[SessionSummary] = field(default_factory=list)
    display_username: str = "Guest"
    interaction_allowed: bool = True


def format_failure(error: BaseException) -> str:
    """Text of the system message recorded when a submission fails."""
    detail = str(error)
    if detail:
        return f"{ERROR_MESSAGE_PREFIX} ({detail})"
    return ERROR_MESSAGE_PREFIX


class SessionManager:
    """
    Manages chat sessions and the submit lifecycle.

    All mutations happen on one asyncio event loop. A single in-flight guard
    covers the whole manager: while a submission is outstanding, further
    submits are ignored (not queued), whichever session they target.

    Persistence writes are fire-and-forget. They run as chained background
    tasks so they land in the order the mutations happened; `flush()` waits
    for them.
    """

    def __init__(
        self,
        persistence: BaseSessionPersistence,
        transport: ChatTransport,
        *,
        display_username: str = "Guest",
        interaction_allowed: bool = True,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        """
        Initializes the SessionManager.

        Args:
            persistence: The persistence port. Its `history_limit` is also
                the in-memory trim limit.
            transport: Delivers turn lists to the request gateway.
            display_username: Name shown by the UI for the local user.
            interaction_allowed: Gate flag supplied by an access screen.
            id_factory: Generates session ids; must be collision resistant.
        """
        self._persistence = persistence
        self._transport = transport
        self._store = SessionStore(history_limit=persistence.history_limit)
        self._id_factory = id_factory
        self._state = ManagerState.UNINITIALIZED
        self._active_session_id: Optional[str] = None
        self._input = ""
        self._pending_write: Optional[asyncio.Task] = None
        self.display_username = display_username
        self.interaction_allowed = interaction_allowed
        logger.debug("SessionManager created with persistence backend: %s", type(persistence).__name__)

    # --- Read-only state ---

    @property
    def state(self) -> ManagerState:
        return self._state

    @property
    def is_loading(self) -> bool:
        return self._state is not ManagerState.IDLE

    @property
    def active_session_id(self) -> Optional[str]:
        return self._active_session_id

    @property
    def input(self) -> str:
        return self._input

    @property
    def messages(self) -> List[Message]:
        """Messages of the active session."""
        return self._store.get_messages(self._active_session_id)

    @property
    def sessions(self) -> List[SessionSummary]:
        return self._store.list_sessions()

    @property
    def store(self) -> SessionStore:
        return self._store

    def snapshot(self) -> ChatView:
        return ChatView(
            messages=self.messages,
            input=self._input,
            is_loading=self.is_loading,
            active_session_id=self._active_session_id,
            sessions=self.sessions,
            display_username=self.display_username,
            interaction_allowed=self.interaction_allowed and self._state is ManagerState.IDLE,
        )

    # --- Transitions ---

    async def initialize(self) -> None:
        """
        Loads the stored collection and moves to IDLE.

        IDLE is always reached; an unexpected persistence failure leaves an
        empty collection.
        """
        if self._state is not ManagerState.UNINITIALIZED:
            logger.debug("initialize() called twice; ignoring.")
            return
        try:
            result = await self._persistence.load()
        except Exception as e:
            logger.error("Unexpected error loading chat sessions: %s", e, exc_info=True)
            self._active_session_id = None
        else:
            for session_id, messages in result.sessions.items():
                self._store.upsert(session_id, messages)
            self._active_session_id = result.active_session_id
        self._state = ManagerState.IDLE
        logger.info(
            "SessionManager ready with %d session(s); active session: %s",
            len(self._store), self._active_session_id,
        )

    def set_input(self, text: str) -> None:
        self._input = text

    async def submit(self, text: Optional[str] = None) -> Optional[str]:
        """
        Submits `text` (or the input buffer) as a user turn.

        Ignored, returning None, when the trimmed text is empty or the
        manager is not IDLE. Otherwise returns the id of the session the
        turn (and its reply or error message) was recorded in. Failures are
        recorded as a system message and never raised.
        """
        raw = self._input if text is None else text
        content = raw.strip() if isinstance(raw, str) else ""
        if not content:
            logger.debug("Ignoring empty submission.")
            return None
        if self._state is not ManagerState.IDLE:
            logger.debug("Ignoring submission while %s.", self._state.value)
            return None

        self._state = ManagerState.SUBMITTING
        self._input = ""
        try:
            session_id = self._active_session_id
            if not self._store.contains(session_id):
                session_id = self._new_session_id()
                self._active_session_id = session_id
                logger.info("Starting new session: %s", session_id)

            user_message = Message(role=Role.USER, content=content, content_type=ContentType.TEXT)
            history = self._store.append(session_id, user_message)
            self._schedule_save()

            outcome = await self._request_reply(history)
            self._store.append(session_id, outcome)
            self._schedule_save()
            return session_id
        finally:
            self._state = ManagerState.IDLE

    async def _request_reply(self, history: List[Message]) -> Message:
        try:
            reply = await self._transport.send([message.to_turn() for message in history])
            if not reply:
                raise TransportError("Received empty response content from the gateway.")
            return Message(role=Role.ASSISTANT, content=reply, content_type=classify(reply))
        except Exception as e:
            logger.error("Error during chat submission: %s", e)
            return Message(role=Role.SYSTEM, content=format_failure(e))

    def switch_session(self, session_id: Optional[str]) -> bool:
        """
        Makes `session_id` active (None shows a blank new chat).

        Unknown ids are a logged no-op. Returns whether the switch happened.
        """
        if session_id is None or self._store.contains(session_id):
            self._active_session_id = session_id
            self._input = ""
            return True
        logger.warning("Session ID '%s' not found.", session_id)
        return False

    def start_new_session(self) -> None:
        """Clears the active session; a new id is allocated on the next submit."""
        self._active_session_id = None
        self._input = ""

    async def clear_all(self) -> None:
        """Wipes every session in memory and schedules removal of the stored collection."""
        self._store.wipe_all()
        self._active_session_id = None
        self._input = ""
        self._schedule(self._persistence.clear)
        logger.info("Cleared all chat history.")

    async def flush(self) -> None:
        """Waits until every scheduled persistence write has finished."""
        while self._pending_write is not None and not self._pending_write.done():
            await asyncio.wait([self._pending_write])

    # --- Internals ---

    def _new_session_id(self) -> str:
        session_id = self._id_factory()
        while self._store.contains(session_id):
            session_id = self._id_factory()
        return session_id

    def _schedule_save(self) -> None:
        snapshot = self._store.snapshot()
        self._schedule(lambda: self._persistence.save(snapshot))

    def _schedule(self, operation: Callable[[], Awaitable[object]]) -> None:
        previous = self._pending_write

        async def run() -> None:
            if previous is not None:
                await asyncio.wait([previous])
            await operation()

        task = asyncio.create_task(run())
        task.add_done_callback(_log_write_failure)
        self._pending_write = task


def _log_write_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error("Background persistence write failed: %s", error, exc_info=error)
