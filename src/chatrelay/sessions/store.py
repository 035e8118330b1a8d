# src/chatrelay/sessions/store.py
"""
In-memory session collection used by the SessionManager.
"""

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from ..models import EPOCH, Message, Role, SessionCollection, SessionSummary
from ..storage.base_session import DEFAULT_HISTORY_LIMIT

logger = logging.getLogger(__name__)

FIRST_PROMPT_MAX_CHARS = 50
FIRST_PROMPT_ELLIPSIS = "..."
SESSION_PLACEHOLDER = "Chat Session"


def summarize_first_prompt(messages: Iterable[Message]) -> str:
    """Content of the first user message, truncated for display, or the placeholder."""
    for message in messages:
        if message.role == Role.USER:
            content = message.content
            if len(content) > FIRST_PROMPT_MAX_CHARS:
                return content[:FIRST_PROMPT_MAX_CHARS] + FIRST_PROMPT_ELLIPSIS
            return content
    return SESSION_PLACEHOLDER


class SessionStore:
    """
    Maps session id to an ordered message list.

    Every write keeps only the most recent `history_limit` messages of the
    session, the same cap the persistence port applies, so what is shown
    is always what would be reloaded.
    """

    def __init__(
        self,
        sessions: Optional[Mapping[str, Sequence[Message]]] = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ):
        if history_limit < 1:
            raise ValueError("history_limit must be at least 1")
        self.history_limit = history_limit
        self._sessions: Dict[str, List[Message]] = {}
        for session_id, messages in (sessions or {}).items():
            self.upsert(session_id, messages)

    def __len__(self) -> int:
        return len(self._sessions)

    def contains(self, session_id: Optional[str]) -> bool:
        return session_id is not None and session_id in self._sessions

    def get_messages(self, session_id: Optional[str]) -> List[Message]:
        """Messages of a session (a copy), or an empty list for None/unknown ids."""
        if session_id is None:
            return []
        return list(self._sessions.get(session_id, []))

    def upsert(self, session_id: str, messages: Sequence[Message]) -> List[Message]:
        """Replaces a session's messages, applying the trim policy. Returns the stored list."""
        trimmed = list(messages)[-self.history_limit:]
        self._sessions[session_id] = trimmed
        return list(trimmed)

    def append(self, session_id: str, message: Message) -> List[Message]:
        """Appends one message to a session, creating the session if needed."""
        return self.upsert(session_id, [*self._sessions.get(session_id, []), message])

    def wipe_all(self) -> None:
        count = len(self._sessions)
        self._sessions.clear()
        logger.debug("Wiped %d session(s) from memory.", count)

    def snapshot(self) -> SessionCollection:
        """A shallow copy of the collection, safe to hand to the persistence port."""
        return {session_id: list(messages) for session_id, messages in self._sessions.items()}

    def list_sessions(self) -> List[SessionSummary]:
        """
        Summaries of all sessions, most recently updated first.

        `sorted` is stable, so sessions with equal timestamps keep insertion order.
        """
        summaries = [
            SessionSummary(
                id=session_id,
                first_prompt=summarize_first_prompt(messages),
                last_update=max((m.created_at for m in messages), default=EPOCH),
                message_count=len(messages),
            )
            for session_id, messages in self._sessions.items()
        ]
        return sorted(summaries, key=lambda s: s.last_update, reverse=True)
