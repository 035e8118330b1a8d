# src/chatrelay/config/models.py
"""
Pydantic models for chatrelay configuration validation.

Every section of the TOML configuration has a model here, so a bad value
fails at startup with a readable message instead of deep inside a request.
"""

import os
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProviderSettings(BaseModel):
    """
    Completion provider configuration.

    Both supported types talk to an OpenAI-compatible chat completions API;
    `together` differs only in its default base URL and key variable.
    """

    type: Literal["together", "openai"] = Field("together", description="Provider implementation to use")
    base_url: Optional[str] = Field(
        "https://api.together.xyz/v1", description="API endpoint; None uses the SDK default"
    )
    model: str = Field(
        "deepseek-ai/DeepSeek-R1-Distill-Llama-70B-free", description="Model identifier sent with every call"
    )
    api_key: Optional[str] = Field(None, description="API key; takes precedence over api_key_env")
    api_key_env: str = Field("TOGETHER_API_KEY", description="Environment variable holding the API key")
    log_raw_payloads: bool = Field(False, description="Log raw request/response payloads at DEBUG")

    def resolve_api_key(self) -> Optional[str]:
        """Returns the configured key, falling back to the named environment variable."""
        return self.api_key or os.environ.get(self.api_key_env) or None


class CorsSettings(BaseModel):
    """Headers advertised by the pre-flight responder."""

    allow_origin: str = Field("*", description="Value of Access-Control-Allow-Origin")
    allow_methods: List[str] = Field(default_factory=lambda: ["POST", "OPTIONS"])
    allow_headers: List[str] = Field(default_factory=lambda: ["Content-Type", "Authorization"])
    max_age: int = Field(86400, ge=0, description="Seconds a browser may cache the pre-flight result")


class GatewaySettings(BaseModel):
    """Server-side request gateway configuration."""

    host: str = Field("127.0.0.1")
    port: int = Field(8000, ge=1, le=65535)
    deadline_seconds: float = Field(30.0, gt=0, description="Hard deadline for one provider call")
    system_prompt: str = Field(
        "You are a helpful AI assistant specializing in code. Respond accurately and concisely.",
        description="Fixed system instruction prepended to every forwarded turn list",
    )
    cors: CorsSettings = Field(default_factory=CorsSettings)


class StorageSettings(BaseModel):
    """Client-side session persistence configuration."""

    type: Literal["json", "memory"] = Field("json")
    path: str = Field("~/.local/share/chatrelay/chat_sessions_v1.json")
    history_limit: int = Field(20, ge=1, description="Messages kept per session (trim limit N)")

    @field_validator("path")
    @classmethod
    def path_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("storage.path must not be empty")
        return v


class ClientSettings(BaseModel):
    """Settings for the client that talks to the gateway."""

    gateway_url: str = Field("http://127.0.0.1:8000/chat")
    request_timeout: float = Field(60.0, gt=0, description="Client-side HTTP timeout in seconds")
    display_username: str = Field("Guest")


class AppConfig(BaseSettings):
    """
    Root configuration model.

    Every setting can be overridden via environment variables with the
    CHATRELAY_ prefix; nested keys use double underscores.
    Example: CHATRELAY_GATEWAY__DEADLINE_SECONDS=20
    """

    model_config = SettingsConfigDict(
        env_prefix="CHATRELAY_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    provider: ProviderSettings = Field(default_factory=ProviderSettings)
    gateway: GatewaySettings = Field(default_factory=GatewaySettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    client: ClientSettings = Field(default_factory=ClientSettings)
    logging: Dict[str, Any] = Field(default_factory=dict, description="Passed to configure_logging()")
