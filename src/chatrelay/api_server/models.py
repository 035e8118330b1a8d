# src/chatrelay/api_server/models.py
"""
Pydantic models for the chatrelay API server.

The request body is validated by hand in the route (via `parse_chat_request`)
rather than through FastAPI's body injection, so malformed bodies are
answered with a plain-text 400 instead of FastAPI's default 422.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..exceptions import ChatValidationError
from ..models import ChatTurn


class ChatRequest(BaseModel):
    """
    Request model for the chat endpoint.
    """
    model_config = ConfigDict(extra="ignore")

    messages: List[ChatTurn] = Field(description="Ordered conversation turns, oldest first")


class HealthResponse(BaseModel):
    """
    Response model for the health endpoint.
    """
    status: str = Field(description="'healthy' when a provider is configured, else 'degraded'")
    provider: Optional[str] = Field(default=None, description="Name of the configured provider")
    model: Optional[str] = Field(default=None, description="Model identifier forwarded to the provider")
    deadline_seconds: Optional[float] = Field(default=None, description="Provider call deadline")


def parse_chat_request(payload: Any) -> ChatRequest:
    """
    Validates a decoded JSON body.

    Raises:
        ChatValidationError: If the body is not an object, `messages` is
            missing or not a list, or any turn is malformed.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("messages"), list):
        raise ChatValidationError()
    try:
        return ChatRequest.model_validate(payload)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ChatValidationError(f"Invalid request body: {problems}")
