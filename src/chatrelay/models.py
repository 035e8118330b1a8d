# src/chatrelay/models.py
"""
Core data models for the chatrelay package.

This module defines the Pydantic models used to represent messages, roles,
wire-level chat turns and session summaries. The same `Message` model is
used in memory by the session manager and, through its camelCase aliases,
as the persisted record layout.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    """Returns the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def coerce_utc_timestamp(v: Any) -> datetime:
    """
    Parses an ISO-8601 string or datetime into an aware UTC datetime.

    Naive values are assumed to be UTC. Raises ValueError for anything that
    cannot be interpreted as a timestamp.
    """
    if isinstance(v, datetime):
        parsed = v
    elif isinstance(v, str):
        text = v.strip()
        if not text:
            raise ValueError("Empty datetime string")
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            for fmt in ("%Y-%m-%d %H:%M:%S.%f%z", "%Y-%m-%d %H:%M:%S%z", "%Y-%m-%d %H:%M:%S"):
                try:
                    parsed = datetime.strptime(text, fmt)
                    break
                except ValueError:
                    continue
            else:
                raise ValueError(f"Invalid datetime format: {v}")
    else:
        raise ValueError(f"Unsupported timestamp type: {type(v).__name__}")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except OverflowError as e:
        # e.g. 0001-01-01T00:00:00+05:00 has no UTC equivalent
        raise ValueError(f"Timestamp out of range: {v}") from e


def format_timestamp(dt: datetime) -> str:
    """Formats a datetime the way it is persisted: ISO-8601 with a 'Z' suffix."""
    return coerce_utc_timestamp(dt).isoformat().replace('+00:00', 'Z')


class Role(str, Enum):
    """
    Enumeration of possible roles in a conversation.
    """
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"

    @classmethod
    def _missing_(cls, value: object):  # type: ignore[misc]
        """Handles case-insensitive matching, e.g. "User" maps to Role.USER."""
        if isinstance(value, str):
            lower_value = value.strip().lower()
            for member in cls:
                if member.value == lower_value:
                    return member
        return None


class ContentType(str, Enum):
    """Rendering hint attached to assistant replies by the content classifier."""
    TEXT = "text"
    CODE = "code"
    JSON = "json"


class ChatTurn(BaseModel):
    """
    The wire form of a message: one `{role, content}` entry of a turn list.
    """
    model_config = ConfigDict(extra="ignore")

    role: Role = Field(description="The role of the message sender (system, user, or assistant).")
    content: str = Field(description="The textual content of the turn.")

    def to_payload(self) -> Dict[str, str]:
        """Returns the plain dict form sent over HTTP or to a provider SDK."""
        return {"role": self.role.value, "content": self.content}


class Message(BaseModel):
    """
    Represents a single message within a chat session. Immutable once created.

    Attributes:
        id: A unique identifier for the message.
        role: The role of the entity that produced the message.
        content: The textual content of the message.
        created_at: When the message was created (UTC). Persisted as `createdAt`.
        content_type: Optional rendering hint. Persisted as `contentType`.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), min_length=1, description="Unique identifier for the message.")
    role: Role = Field(description="The role of the message sender (system, user, or assistant).")
    content: str = Field(description="The textual content of the message.")
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt", description="Timestamp of when the message was created (UTC).")
    content_type: Optional[ContentType] = Field(default=None, alias="contentType", description="Optional rendering hint (text, code or json).")

    @field_validator('created_at', mode='before')
    @classmethod
    def ensure_utc_timestamp(cls, v: Any) -> datetime:
        """Ensure the timestamp is timezone-aware and in UTC if naive."""
        if v is None:
            return utc_now()
        return coerce_utc_timestamp(v)

    @field_serializer('created_at')
    def serialize_created_at(self, dt: datetime) -> str:
        return format_timestamp(dt)

    def to_turn(self) -> ChatTurn:
        """Strips the message down to the `{role, content}` pair sent to the gateway."""
        return ChatTurn(role=self.role, content=self.content)

    def to_storage_dict(self) -> Dict[str, Any]:
        """Returns the persisted record form of this message (camelCase keys)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SessionSummary(BaseModel):
    """
    Metadata describing one session, as shown in a session history list.
    """
    id: str = Field(description="The session identifier.")
    first_prompt: str = Field(description="First user prompt, truncated for display.")
    last_update: datetime = Field(description="Most recent message timestamp in the session.")
    message_count: int = Field(default=0, description="Number of messages currently held for the session.")


SessionCollection = Dict[str, List[Message]]
