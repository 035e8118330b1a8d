# src/chatrelay/storage/base_session.py
"""
Abstract Base Class for session persistence backends.

A backend owns one durable key-value "slot" holding the whole session
collection as a single JSON record:

    {"<session id>": [{"id", "role", "content", "createdAt", "contentType"?}, ...], ...}

Backends implement three raw slot primitives. The load/save/clear
operations built on top of them are shared and never raise: persistence is
best-effort and must not break the chat loop.
"""

import abc
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..exceptions import PersistenceCorruptionError, StorageError
from ..models import ContentType, Message, Role, SessionCollection, coerce_utc_timestamp

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 20


@dataclass
class LoadResult:
    """
    Outcome of `BaseSessionPersistence.load()`.

    Attributes:
        sessions: Session id -> validated messages, in stored order.
        active_session_id: Session holding the most recent message overall,
            or None when no message survived validation.
        dropped_messages: Count of stored messages discarded as malformed.
    """
    sessions: SessionCollection = field(default_factory=dict)
    active_session_id: Optional[str] = None
    dropped_messages: int = 0


def decode_message(item: Any) -> Optional[Message]:
    """
    Validates one stored message record, returning None when it must be dropped.

    Requires a non-empty string id and content and a parsable `createdAt`.
    An unknown role is coerced to `system`; an unknown content type is
    discarded. The legacy `type` key is accepted in place of `contentType`.
    """
    if not isinstance(item, Mapping):
        return None

    msg_id = item.get("id")
    content = item.get("content")
    if not isinstance(msg_id, str) or not msg_id:
        return None
    if not isinstance(content, str) or not content:
        return None

    try:
        created_at = coerce_utc_timestamp(item.get("createdAt"))
    except (ValueError, OverflowError):
        return None

    try:
        role = Role(item.get("role"))
    except ValueError:
        role = Role.SYSTEM

    raw_type = item.get("contentType", item.get("type"))
    try:
        content_type = ContentType(raw_type) if raw_type is not None else None
    except ValueError:
        content_type = None

    return Message(id=msg_id, role=role, content=content, created_at=created_at, content_type=content_type)


def decode_collection(raw: str) -> LoadResult:
    """
    Parses the stored record into a LoadResult with per-message validation.

    Raises:
        PersistenceCorruptionError: If the text is not a JSON object.
    """
    try:
        data = json.loads(raw)
    except (ValueError, RecursionError) as e:
        raise PersistenceCorruptionError(f"Stored sessions are not valid JSON: {e}")
    if not isinstance(data, dict):
        raise PersistenceCorruptionError(
            f"Stored sessions must be a JSON object, got {type(data).__name__}."
        )

    result = LoadResult()
    latest: Optional[datetime] = None
    for session_id, stored_messages in data.items():
        if not isinstance(stored_messages, list):
            logger.debug("Skipping stored session '%s': value is not a list.", session_id)
            continue
        messages: List[Message] = []
        for item in stored_messages:
            message = decode_message(item)
            if message is None:
                result.dropped_messages += 1
                continue
            messages.append(message)
            if latest is None or message.created_at > latest:
                latest = message.created_at
                result.active_session_id = session_id
        result.sessions[session_id] = messages

    if result.dropped_messages:
        logger.debug("Dropped %d malformed stored message(s).", result.dropped_messages)
    return result


def encode_collection(sessions: Mapping[str, Sequence[Message]], history_limit: int) -> str:
    """Serializes the collection, keeping only the last `history_limit` messages per session."""
    record: Dict[str, List[Dict[str, Any]]] = {
        session_id: [message.to_storage_dict() for message in list(messages)[-history_limit:]]
        for session_id, messages in sessions.items()
    }
    return json.dumps(record, ensure_ascii=False)


class BaseSessionPersistence(abc.ABC):
    """
    Abstract Base Class for the session persistence port.

    Concrete implementations decide where the slot lives (a JSON file, an
    in-memory string, ...) by implementing `_read_slot`, `_write_slot` and
    `_remove_slot`.
    """

    def __init__(self, history_limit: int = DEFAULT_HISTORY_LIMIT):
        if history_limit < 1:
            raise ValueError("history_limit must be at least 1")
        self.history_limit = history_limit

    @abc.abstractmethod
    async def _read_slot(self) -> Optional[str]:
        """Return the raw stored record, or None when the slot is empty."""
        pass

    @abc.abstractmethod
    async def _write_slot(self, data: str) -> None:
        """Replace the slot contents with `data` in one atomic write."""
        pass

    @abc.abstractmethod
    async def _remove_slot(self) -> None:
        """Remove the slot. Removing an empty slot is not an error."""
        pass

    async def load(self) -> LoadResult:
        """
        Read and validate the stored session collection.

        Never raises. An unreadable slot yields an empty result; a corrupted
        record is removed from the slot and an empty result is returned.
        """
        try:
            raw = await self._read_slot()
        except PersistenceCorruptionError as e:
            logger.error("Failed to read chat sessions, discarding stored data: %s", e)
            await self.clear()
            return LoadResult()
        except (OSError, StorageError) as e:
            logger.error("Failed to read chat sessions: %s", e)
            return LoadResult()

        if raw is None:
            logger.debug("No stored chat sessions found.")
            return LoadResult()

        try:
            result = decode_collection(raw)
        except (PersistenceCorruptionError, ValueError, TypeError, OverflowError, RecursionError) as e:
            logger.error("Failed to load or parse chat sessions, discarding stored data: %s", e)
            await self.clear()
            return LoadResult()

        logger.info(
            "Loaded %d chat session(s); active session: %s",
            len(result.sessions), result.active_session_id,
        )
        return result

    async def save(self, sessions: Mapping[str, Sequence[Message]]) -> bool:
        """
        Write the whole collection, truncated to `history_limit` messages per session.

        Returns True on success. Failures are logged and swallowed.
        """
        try:
            data = encode_collection(sessions, self.history_limit)
            await self._write_slot(data)
        except (OSError, TypeError, ValueError, StorageError) as e:
            logger.error("Failed to save chat sessions: %s", e)
            return False
        logger.debug("Saved %d chat session(s).", len(sessions))
        return True

    async def clear(self) -> bool:
        """Remove the stored collection. Failures are logged and swallowed."""
        try:
            await self._remove_slot()
        except (OSError, StorageError) as e:
            logger.error("Failed to clear stored chat sessions: %s", e)
            return False
        logger.info("Cleared stored chat sessions.")
        return True
