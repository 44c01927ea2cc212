"""Unit tests for ChatRelay message shaping, dispatch and SSE streaming."""

import asyncio
import json
from collections.abc import AsyncIterator
from unittest.mock import MagicMock, patch

import pytest
import pytest_check as check

from ruby_chat.api import app
from ruby_chat.api.app import lifespan
from ruby_chat.errors import RequestValidationFailed, VendorCallFailed
from ruby_chat.models.schemas import ChatMessage, ChatRequest, ContentPart, ImageURL, ProviderName
from ruby_chat.relay.chat_relay import (
    DONE_EVENT,
    SYSTEM_PROMPT,
    ChatRelay,
    get_chat_relay,
    to_vendor_message,
)
from ruby_chat.relay.providers import FragmentStream
from tests.conftest import FakeProvider


def parse_events(events: list[str]) -> list[dict | str]:
    """Decode SSE events into payload dicts, keeping the sentinel as a string."""
    parsed: list[dict | str] = []
    for event in events:
        assert event.startswith("data: ") and event.endswith("\n\n")
        data = event[len("data: "):-2]
        parsed.append(data if data == "[DONE]" else json.loads(data))
    return parsed


async def collect(relay: ChatRelay, request: ChatRequest) -> list[str]:
    stream = await relay.open(request)
    return [event async for event in relay.stream_events(stream)]


def user(content: str, image: str | None = None) -> ChatMessage:
    return ChatMessage(role="user", content=content, image=image)


class TestToVendorMessage:
    """Tests for wire-shape conversion of chat messages."""

    def test_plain_message_is_unchanged(self) -> None:
        assert to_vendor_message(user("hi")) == {"role": "user", "content": "hi"}

    def test_image_expands_into_two_parts(self) -> None:
        """Text plus inline image becomes a text part then an image part."""
        result = to_vendor_message(user("what is this?", image="data:image/png;base64,AAA"))

        assert result == {
            "role": "user",
            "content": [
                {"type": "text", "text": "what is this?"},
                {"type": "image_url", "image_url": {"url": "data:image/png;base64,AAA"}},
            ],
        }

    def test_image_appends_to_existing_parts(self) -> None:
        message = ChatMessage(
            role="user",
            content=[ContentPart(type="text", text="compare")],
            image="data:image/png;base64,BBB",
        )

        parts = to_vendor_message(message)["content"]

        check.equal(len(parts), 2)
        check.equal(parts[0], {"type": "text", "text": "compare"})
        check.equal(parts[1]["image_url"], {"url": "data:image/png;base64,BBB"})

    def test_part_list_without_image_is_dumped(self) -> None:
        message = ChatMessage(
            role="assistant",
            content=[ContentPart(type="image_url", image_url=ImageURL(url="https://x/y.png"))],
        )

        assert to_vendor_message(message)["content"] == [
            {"type": "image_url", "image_url": {"url": "https://x/y.png"}}
        ]


class TestResolve:
    """Tests for provider and model selection."""

    def test_defaults_to_groq_and_its_default_model(
        self, chat_relay: ChatRelay, fake_groq: FakeProvider
    ) -> None:
        provider, model = chat_relay.resolve(ChatRequest(messages=[user("hi")]))

        check.is_(provider, fake_groq)
        check.equal(model, "llama-3.3-70b-versatile")

    def test_qwen_selected_explicitly(self, chat_relay: ChatRelay, fake_qwen: FakeProvider) -> None:
        provider, model = chat_relay.resolve(
            ChatRequest(messages=[user("hi")], provider="qwen", model="qwen3-max")
        )

        check.is_(provider, fake_qwen)
        check.equal(model, "qwen3-max")

    def test_model_from_other_provider_is_rejected(self, chat_relay: ChatRelay) -> None:
        """A Groq model id sent with provider=qwen is a validation error."""
        request = ChatRequest(
            messages=[user("hi")], provider="qwen", model="llama-3.3-70b-versatile"
        )

        with pytest.raises(RequestValidationFailed, match="not served by provider 'qwen'"):
            chat_relay.resolve(request)

    def test_unknown_model_is_rejected(self, chat_relay: ChatRelay) -> None:
        with pytest.raises(RequestValidationFailed):
            chat_relay.resolve(ChatRequest(messages=[user("hi")], model="gpt-nonexistent"))

    def test_list_models_spans_providers(self, chat_relay: ChatRelay) -> None:
        providers = {m.provider for m in chat_relay.list_models()}

        assert providers == {ProviderName.GROQ, ProviderName.QWEN}


class TestOpen:
    """Tests for request validation and vendor invocation."""

    async def test_system_prompt_is_always_prepended(
        self, chat_relay: ChatRelay, fake_groq: FakeProvider
    ) -> None:
        await chat_relay.open(ChatRequest(messages=[user("hi")]))

        check.equal(fake_groq.calls[0]["system_prompt"], SYSTEM_PROMPT)
        check.is_in("Ruby", fake_groq.calls[0]["system_prompt"])

    @pytest.mark.parametrize("provider", ["groq", "qwen"])
    async def test_images_are_expanded_for_every_provider(
        self,
        chat_relay: ChatRelay,
        fake_groq: FakeProvider,
        fake_qwen: FakeProvider,
        provider: str,
    ) -> None:
        await chat_relay.open(
            ChatRequest(messages=[user("look", image="data:image/png;base64,CCC")], provider=provider)
        )

        fake = fake_groq if provider == "groq" else fake_qwen
        content = fake.calls[0]["messages"][0]["content"]
        check.equal([part["type"] for part in content], ["text", "image_url"])

    async def test_empty_messages_rejected_before_vendor_call(
        self, chat_relay: ChatRelay, fake_groq: FakeProvider
    ) -> None:
        request = ChatRequest.model_construct(messages=[], model=None, provider=ProviderName.GROQ)

        with pytest.raises(RequestValidationFailed, match="must not be empty"):
            await chat_relay.open(request)

        assert fake_groq.calls == []

    async def test_vendor_failure_propagates(self, chat_relay: ChatRelay, fake_groq: FakeProvider) -> None:
        fake_groq.fail_on_open = True

        with pytest.raises(VendorCallFailed):
            await chat_relay.open(ChatRequest(messages=[user("hi")]))


class TestStreamEvents:
    """Tests for the normalized SSE event stream."""

    async def test_fragments_then_single_sentinel(self, chat_relay: ChatRelay) -> None:
        """Concatenated fragments equal the completion; [DONE] appears exactly once, last."""
        events = parse_events(await collect(chat_relay, ChatRequest(messages=[user("hi")])))

        check.equal(events[-1], "[DONE]")
        check.equal(events.count("[DONE]"), 1)
        check.equal("".join(e["content"] for e in events[:-1]), "Hello, world")

    async def test_order_preserved_and_empty_fragments_dropped(
        self, chat_relay: ChatRelay, fake_groq: FakeProvider
    ) -> None:
        fake_groq.fragments = ["a", "", "b", "", "c"]

        events = parse_events(await collect(chat_relay, ChatRequest(messages=[user("hi")])))

        assert events == [{"content": "a"}, {"content": "b"}, {"content": "c"}, "[DONE]"]

    async def test_stream_closed_after_completion(
        self, chat_relay: ChatRelay, fake_groq: FakeProvider
    ) -> None:
        await collect(chat_relay, ChatRequest(messages=[user("hi")]))

        assert fake_groq.closed is True

    async def test_mid_stream_failure_emits_error_without_sentinel(
        self, chat_relay: ChatRelay, fake_groq: FakeProvider
    ) -> None:
        fake_groq.fail_after = 1

        events = parse_events(await collect(chat_relay, ChatRequest(messages=[user("hi")])))

        check.equal(events[0], {"content": "Hello"})
        check.equal(events[-1], {"error": "Stream interrupted"})
        check.is_not_in("[DONE]", events)
        check.is_true(fake_groq.closed)

    async def test_disconnect_cancels_upstream(self, chat_relay: ChatRelay) -> None:
        """Closing the event generator early cancels the producer and closes the vendor stream."""
        release = asyncio.Event()
        closed = asyncio.Event()

        async def endless() -> AsyncIterator[str]:
            yield "first"
            await release.wait()
            yield "never delivered"

        async def close() -> None:
            closed.set()

        events = chat_relay.stream_events(FragmentStream(endless(), close))
        first = await events.__anext__()
        await events.aclose()

        check.equal(json.loads(first[len("data: "):]), {"content": "first"})
        check.is_true(closed.is_set())

    async def test_disconnect_is_logged(self, chat_relay: ChatRelay) -> None:
        async def slow() -> AsyncIterator[str]:
            yield "x"
            await asyncio.sleep(10)
            yield "y"

        async def close() -> None:
            return None

        with patch("ruby_chat.relay.chat_relay.logger", MagicMock()) as mock_logger:
            events = chat_relay.stream_events(FragmentStream(slow(), close))
            await events.__anext__()
            await events.aclose()

        mock_logger.info.assert_called_once()
        assert "disconnected" in mock_logger.info.call_args.args[0]

    async def test_done_event_format(self) -> None:
        assert DONE_EVENT == "data: [DONE]\n\n"


class TestShutdown:
    """Tests for releasing provider connections."""

    async def test_aclose_releases_every_provider(
        self, chat_relay: ChatRelay, fake_groq: FakeProvider, fake_qwen: FakeProvider
    ) -> None:
        await chat_relay.aclose()

        check.is_true(fake_groq.released)
        check.is_true(fake_qwen.released)

    async def test_app_shutdown_closes_global_relay(
        self,
        monkeypatch: pytest.MonkeyPatch,
        chat_relay: ChatRelay,
        fake_groq: FakeProvider,
    ) -> None:
        monkeypatch.setattr("ruby_chat.relay.chat_relay._chat_relay", chat_relay)

        async with lifespan(app):
            check.is_false(fake_groq.released)

        check.is_true(fake_groq.released)
        check.is_not(get_chat_relay(), chat_relay)
