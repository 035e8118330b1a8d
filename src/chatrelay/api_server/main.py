# src/chatrelay/api_server/main.py
"""
Main FastAPI application for the chatrelay request gateway.

`create_app()` builds an application around an optional pre-built
provider (tests inject fakes this way). The module-level `app` is what
`uvicorn chatrelay.api_server.main:app` serves; it loads configuration
and builds the provider during startup.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request

from .. import __version__
from ..config import AppConfig, load_config
from ..exceptions import ConfigError, ProviderError
from ..providers.base import BaseProvider
from ..providers.manager import create_provider
from .gateway import ChatGateway
from .middleware.observability import RequestContextMiddleware
from .models import HealthResponse
from .routes import chat_router

logger = logging.getLogger(__name__)


def build_gateway(settings: AppConfig, provider: Optional[BaseProvider] = None) -> ChatGateway:
    """
    Wires a ChatGateway from configuration.

    Raises:
        ConfigError: If no provider was given and the configured one cannot be built.
    """
    if provider is None:
        provider = create_provider(settings.provider)
    return ChatGateway(
        provider,
        model=settings.provider.model,
        system_prompt=settings.gateway.system_prompt,
        deadline_seconds=settings.gateway.deadline_seconds,
    )


def create_app(settings: Optional[AppConfig] = None, provider: Optional[BaseProvider] = None) -> FastAPI:
    """
    Creates the gateway application.

    Args:
        settings: Application configuration. Loaded from the usual sources at
                  startup when omitted.
        provider: Completion provider to use instead of the configured one.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Builds the gateway on startup if none was injected, and closes the
        provider's network client on shutdown.
        """
        logger.info("API Server starting up...")
        if app.state.gateway is None:
            try:
                if app.state.settings is None:
                    app.state.settings = load_config()
                app.state.gateway = build_gateway(app.state.settings)
                logger.info(f"Gateway ready with provider '{app.state.gateway.provider.get_name()}'")
            except (ConfigError, ProviderError) as e:
                logger.critical(f"Fatal error during gateway initialization: {e}")
                logger.warning("API server will start but chat requests will fail with 500")
                app.state.gateway = None

        yield

        logger.info("API Server shutting down...")
        gateway = app.state.gateway
        if gateway is not None:
            try:
                await gateway.provider.close()
            except Exception as e:
                logger.error(f"Error closing provider: {e}", exc_info=True)
        logger.info("API Server shutdown complete")

    app = FastAPI(
        title="chatrelay API",
        description="Deadline-bounded relay between chat clients and a completion provider",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.gateway = build_gateway(settings or AppConfig(), provider) if provider is not None else None

    app.add_middleware(RequestContextMiddleware, enable_request_logging=True)
    app.include_router(chat_router, tags=["chat"])

    @app.get("/health", response_model=HealthResponse)
    async def health_check(request: Request) -> HealthResponse:
        """Health check endpoint for monitoring."""
        gateway: Optional[ChatGateway] = request.app.state.gateway
        if gateway is None:
            return HealthResponse(status="degraded")
        return HealthResponse(
            status="healthy",
            provider=gateway.provider.get_name(),
            model=gateway.model or gateway.provider.default_model,
            deadline_seconds=gateway.deadline_seconds,
        )

    return app


app = create_app()
