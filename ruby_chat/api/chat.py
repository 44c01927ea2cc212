"""Streaming chat endpoint.

Relays the conversation to the selected vendor and returns its tokens as
Server-Sent Events: ``data: {"content": ...}`` repeated, then ``data: [DONE]``.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from ruby_chat.models.schemas import ChatRequest, ErrorResponse, ModelInfo
from ruby_chat.relay.chat_relay import ChatRelay, get_chat_relay

router = APIRouter(tags=["chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.post(
    "/chat",
    response_class=StreamingResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def chat(
    request: ChatRequest,
    relay: ChatRelay = Depends(get_chat_relay),
) -> StreamingResponse:
    """Stream a chat completion.

    The vendor call is made before the response starts, so a vendor
    rejection is reported as a 500 JSON error rather than a broken stream.

    Args:
        request: Messages plus optional model and provider.
        relay: Chat relay service.

    Returns:
        text/event-stream of content fragments terminated by [DONE].

    Raises:
        400: Empty messages, unknown provider, or model not served by provider.
        500: Vendor call failed.
    """
    stream = await relay.open(request)
    return StreamingResponse(
        relay.stream_events(stream),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
        background=BackgroundTask(stream.aclose),
    )


@router.get("/models", response_model=list[ModelInfo])
async def list_models(relay: ChatRelay = Depends(get_chat_relay)) -> list[ModelInfo]:
    """List the selectable models grouped by provider order."""
    return relay.list_models()
