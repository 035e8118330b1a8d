# src/chatrelay/api_server/routes/chat.py
"""
Chat routes for the chatrelay API server.

`POST /chat` forwards a turn list to the completion provider through the
ChatGateway and returns the complete reply as a single text block.
`OPTIONS /chat` answers CORS pre-flight requests.

Status mapping:
    400 - malformed body (provider not contacted)
    500 - provider failure, empty reply, or gateway not configured
    504 - provider missed the deadline
"""

import logging
from typing import AsyncIterator, Dict

from fastapi import APIRouter, Request, Response
from fastapi.responses import PlainTextResponse, StreamingResponse

from ...config.models import CorsSettings
from ...exceptions import ChatValidationError, ProviderError, ProviderTimeoutError
from ..gateway import ChatGateway
from ..models import parse_chat_request

logger = logging.getLogger(__name__)

router = APIRouter()

TEXT_MEDIA_TYPE = "text/plain; charset=utf-8"


def _cors_settings(request: Request) -> CorsSettings:
    settings = getattr(request.app.state, "settings", None)
    return settings.gateway.cors if settings is not None else CorsSettings()


def _origin_headers(request: Request) -> Dict[str, str]:
    return {"Access-Control-Allow-Origin": _cors_settings(request).allow_origin}


async def _single_block(body: bytes) -> AsyncIterator[bytes]:
    # The reply is complete before the first byte is sent.
    yield body


@router.post("/chat")
async def handle_chat(request: Request) -> Response:
    """
    Relays one conversation to the completion provider.

    Args:
        request: The FastAPI request; the JSON body must be
                 `{"messages": [{"role": ..., "content": ...}, ...]}`.

    Returns:
        A 200 text response carrying the full reply, or a plain-text error
        response with the status listed in the module docstring.
    """
    headers = _origin_headers(request)

    try:
        payload = await request.json()
    except (ValueError, RecursionError) as e:
        logger.warning(f"Rejected chat request with unparsable JSON body: {e}")
        return PlainTextResponse(ChatValidationError().args[0], status_code=400, headers=headers)

    try:
        chat_request = parse_chat_request(payload)
    except ChatValidationError as e:
        logger.warning(f"Rejected chat request: {e}")
        return PlainTextResponse(str(e), status_code=400, headers=headers)

    gateway: ChatGateway | None = getattr(request.app.state, "gateway", None)
    if gateway is None:
        logger.error("Chat request received but no completion provider is configured.")
        return PlainTextResponse("API key not configured", status_code=500, headers=headers)

    try:
        reply = await gateway.complete(chat_request.messages)
    except ProviderTimeoutError as e:
        return PlainTextResponse(
            f"Error: The completion provider did not respond in time. {e.detail}",
            status_code=504,
            headers=headers,
        )
    except ProviderError as e:
        logger.error(f"Provider error during chat processing: {e}")
        return PlainTextResponse(f"Error: {e.detail}", status_code=500, headers=headers)
    except Exception as e:
        logger.error(f"Unexpected error during chat processing: {e}", exc_info=True)
        return PlainTextResponse(f"Error: {e or 'Unknown error'}", status_code=500, headers=headers)

    return StreamingResponse(_single_block(reply.encode("utf-8")), media_type=TEXT_MEDIA_TYPE, headers=headers)


@router.options("/chat")
async def chat_preflight(request: Request) -> Response:
    """Advertises the methods and headers allowed for cross-origin chat calls."""
    cors = _cors_settings(request)
    methods = ", ".join(cors.allow_methods)
    return Response(
        status_code=204,
        headers={
            "Allow": methods,
            "Access-Control-Allow-Origin": cors.allow_origin,
            "Access-Control-Allow-Methods": methods,
            "Access-Control-Allow-Headers": ", ".join(cors.allow_headers),
            "Access-Control-Max-Age": str(cors.max_age),
        },
    )
