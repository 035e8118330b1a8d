# src/chatrelay/api_server/middleware/observability.py
"""
Request context middleware for the chatrelay API server.

Binds a per-request id (plus method and path) to structlog's context
variables so every structured log line emitted while handling the request
carries it, and echoes the id back in the `X-Request-ID` header.
"""

import time
import uuid
from typing import Awaitable, Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from structlog.contextvars import bind_contextvars, clear_contextvars

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    FastAPI middleware that scopes structured logging context to one request.
    """

    def __init__(self, app, enable_request_logging: bool = True):
        super().__init__(app)
        self.enable_request_logging = enable_request_logging

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        clear_contextvars()
        bind_contextvars(request_id=request_id, method=request.method, path=request.url.path)
        request.state.request_id = request_id
        started = time.monotonic()

        if self.enable_request_logging:
            logger.info("request_started")
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error("request_failed", error=str(e), error_type=type(e).__name__)
            raise
        else:
            response.headers[REQUEST_ID_HEADER] = request_id
            if self.enable_request_logging:
                logger.info(
                    "request_completed",
                    status_code=response.status_code,
                    duration_ms=round((time.monotonic() - started) * 1000, 1),
                )
            return response
        finally:
            clear_contextvars()


def get_current_request_context() -> dict:
    """Context variables bound for the request currently being handled."""
    return structlog.contextvars.get_contextvars()
