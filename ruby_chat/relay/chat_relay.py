"""Streaming chat relay with provider dispatch.

Core module for turning a browser conversation into a vendor call and
the vendor's token stream back into normalized Server-Sent Events.

Architecture Decisions:

1. **Open before streaming** - The vendor call is issued and its status
   checked before the HTTP response begins. A rejected call becomes a plain
   500 JSON error instead of a half-written event stream.

2. **Producer/consumer channel** - A producer task pulls vendor fragments
   into a queue of size one; the SSE generator consumes it. When the browser
   goes away the generator is closed, the producer is cancelled, and the
   upstream response is closed with it so no tokens are paid for nobody.

3. **Server-owned persona** - The system instruction is always prepended
   here. Clients only ever send user/assistant turns.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from typing import Any

from ruby_chat.errors import RequestValidationFailed
from ruby_chat.models.schemas import ChatMessage, ChatRequest, ModelInfo, ProviderName, StreamChunk, StreamError
from ruby_chat.relay.config import RelayConfig, get_relay_config
from ruby_chat.relay.providers import SSE_DONE, ChatProvider, FragmentStream, build_providers

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are Ruby, a helpful AI assistant. Guidelines:
- Be concise and direct
- For coding questions: provide code solution first, then brief explanations
- Use markdown with proper code blocks (```language)
- Be friendly but efficient"""

DONE_EVENT = f"data: {SSE_DONE}\n\n"

# Marks the end of the vendor stream inside the channel
_END = object()


def format_event(payload: StreamChunk | StreamError) -> str:
    """Render one SSE data event."""
    return f"data: {payload.model_dump_json()}\n\n"


def to_vendor_message(message: ChatMessage) -> dict[str, Any]:
    """Convert a chat message into the OpenAI-style wire shape.

    A message carrying an inline image becomes a two-part content list
    (text part, then image part), whichever provider receives it.
    """
    if message.image is None:
        if isinstance(message.content, str):
            return {"role": message.role, "content": message.content}
        return {
            "role": message.role,
            "content": [part.model_dump(exclude_none=True) for part in message.content],
        }

    image_part = {"type": "image_url", "image_url": {"url": message.image}}
    if isinstance(message.content, str):
        parts = [{"type": "text", "text": message.content}]
    else:
        parts = [part.model_dump(exclude_none=True) for part in message.content]
    return {"role": message.role, "content": [*parts, image_part]}


class ChatRelay:
    """Relays a conversation to the selected vendor and streams it back."""

    def __init__(
        self,
        config: RelayConfig | None = None,
        providers: dict[ProviderName, ChatProvider] | None = None,
    ) -> None:
        """Initialize the relay.

        Args:
            config: Optional relay configuration.
                    Loads from environment if not provided.
            providers: Optional provider registry, mainly for tests.
        """
        self._config = config or get_relay_config()
        self._providers = providers if providers is not None else build_providers(self._config)

    async def aclose(self) -> None:
        """Close every provider's vendor client."""
        for provider in self._providers.values():
            await provider.aclose()

    def list_models(self) -> list[ModelInfo]:
        """Return every selectable model across providers."""
        return [model for provider in self._providers.values() for model in provider.models]

    def resolve(self, request: ChatRequest) -> tuple[ChatProvider, str]:
        """Pick the provider and model for a request.

        Raises:
            RequestValidationFailed: If the provider is unknown or does not
                serve the requested model.
        """
        provider = self._providers.get(request.provider)
        if provider is None:
            raise RequestValidationFailed(f"Unsupported provider: {request.provider.value}")

        model = request.model or provider.default_model
        if not provider.serves(model):
            raise RequestValidationFailed(
                f"Model '{model}' is not served by provider '{provider.name.value}'"
            )
        return provider, model

    async def open(self, request: ChatRequest) -> FragmentStream:
        """Validate the request and issue the vendor call.

        Args:
            request: Parsed chat request.

        Returns:
            The opened vendor fragment stream.

        Raises:
            RequestValidationFailed: Empty conversation or bad model/provider pair.
            VendorCallFailed: Vendor rejected the call or was unreachable.
        """
        if not request.messages:
            raise RequestValidationFailed("messages must not be empty")

        provider, model = self.resolve(request)
        vendor_messages = [to_vendor_message(m) for m in request.messages]

        logger.info(
            f"Relaying {len(vendor_messages)} messages to {provider.name.value} ({model})"
        )
        return await provider.open_stream(model, SYSTEM_PROMPT, vendor_messages)

    async def stream_events(self, stream: FragmentStream) -> AsyncGenerator[str]:
        """Re-emit vendor fragments as SSE events, then the done sentinel.

        Args:
            stream: An opened vendor stream. It is closed when this
                    generator finishes or is closed early.

        Yields:
            ``data: {"content": ...}`` events, then ``data: [DONE]``.
            A mid-stream vendor failure yields one error event instead of
            the sentinel.
        """
        queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=1)

        async def produce() -> None:
            try:
                async for fragment in stream:
                    if fragment:
                        await queue.put(fragment)
                await queue.put(_END)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                await queue.put(e)
            finally:
                await stream.aclose()

        producer = asyncio.create_task(produce())
        finished = False
        try:
            while True:
                item = await queue.get()
                if item is _END:
                    finished = True
                    yield DONE_EVENT
                    return
                if isinstance(item, Exception):
                    finished = True
                    logger.error(f"Vendor stream failed mid-flight: {item!r}")
                    yield format_event(StreamError(error="Stream interrupted"))
                    return
                yield format_event(StreamChunk(content=item))
        finally:
            if not finished:
                logger.info("Client disconnected, aborting upstream vendor stream")
            if not producer.done():
                producer.cancel()
            try:
                await producer
            except asyncio.CancelledError:
                if not producer.cancelled():
                    raise


# Module-level singleton instance
_chat_relay: ChatRelay | None = None


def get_chat_relay() -> ChatRelay:
    """Get or create the global chat relay.

    Returns:
        The ChatRelay instance.
    """
    global _chat_relay
    if _chat_relay is None:
        _chat_relay = ChatRelay()
    return _chat_relay


async def close_chat_relay() -> None:
    """Release the global relay's vendor connections on shutdown."""
    global _chat_relay
    if _chat_relay is not None:
        await _chat_relay.aclose()
        _chat_relay = None
