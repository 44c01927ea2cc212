"""Pytest fixtures and shared test configuration.

Provides reusable fixtures for unit and integration tests.

Fixtures:
    - relay_config: RelayConfig with dummy keys
    - fake_groq / fake_qwen: Scripted providers recording their calls
    - chat_relay: ChatRelay wired to the fake providers
    - async_client: HTTPX client for API testing with dependencies overridden
    - make_pdf / make_docx: In-memory document builders
"""

import io
from collections.abc import AsyncGenerator, AsyncIterator, Callable
from typing import Any

import pytest
from docx import Document as DocxDocument
from httpx import ASGITransport, AsyncClient

from ruby_chat.api import app
from ruby_chat.errors import VendorCallFailed
from ruby_chat.models.schemas import ModelInfo, ProviderName
from ruby_chat.relay.chat_relay import ChatRelay, get_chat_relay
from ruby_chat.relay.config import RelayConfig
from ruby_chat.relay.providers import ChatProvider, FragmentStream


class FakeProvider(ChatProvider):
    """Provider that replays scripted fragments instead of calling a vendor."""

    def __init__(
        self,
        config: RelayConfig,
        name: ProviderName,
        models: tuple[ModelInfo, ...],
        fragments: list[str] | None = None,
        fail_on_open: bool = False,
        fail_after: int | None = None,
    ) -> None:
        super().__init__(config)
        self.name = name
        self.models = models
        self.default_model = models[0].id
        self.fragments = fragments if fragments is not None else ["Hello", ", ", "world"]
        self.fail_on_open = fail_on_open
        self.fail_after = fail_after
        self.calls: list[dict[str, Any]] = []
        self.closed = False
        self.released = False
        self.yielded = 0

    async def aclose(self) -> None:
        self.released = True

    async def open_stream(
        self,
        model: str,
        system_prompt: str,
        messages: list[dict[str, Any]],
    ) -> FragmentStream:
        self.calls.append({"model": model, "system_prompt": system_prompt, "messages": messages})
        if self.fail_on_open:
            raise VendorCallFailed("Fake vendor error: 503", vendor_status=503)

        async def fragments() -> AsyncIterator[str]:
            for i, fragment in enumerate(self.fragments):
                if self.fail_after is not None and i >= self.fail_after:
                    raise RuntimeError("connection reset")
                self.yielded += 1
                yield fragment

        async def close() -> None:
            self.closed = True

        return FragmentStream(fragments(), close)


@pytest.fixture
def relay_config() -> RelayConfig:
    """Relay configuration with placeholder credentials."""
    return RelayConfig(groq_api_key="gsk-test", qwen_api_key="sk-test")


@pytest.fixture
def fake_groq(relay_config: RelayConfig) -> FakeProvider:
    return FakeProvider(
        relay_config,
        ProviderName.GROQ,
        (
            ModelInfo(id="llama-3.3-70b-versatile", name="Llama 3.3 70B", provider=ProviderName.GROQ),
            ModelInfo(id="llama-3.1-8b-instant", name="Llama 3.1 8B", provider=ProviderName.GROQ),
        ),
    )


@pytest.fixture
def fake_qwen(relay_config: RelayConfig) -> FakeProvider:
    return FakeProvider(
        relay_config,
        ProviderName.QWEN,
        (ModelInfo(id="qwen3-max", name="Qwen3 Max", provider=ProviderName.QWEN),),
        fragments=["Qwen", " says", " hi"],
    )


@pytest.fixture
def chat_relay(
    relay_config: RelayConfig, fake_groq: FakeProvider, fake_qwen: FakeProvider
) -> ChatRelay:
    return ChatRelay(
        config=relay_config,
        providers={ProviderName.GROQ: fake_groq, ProviderName.QWEN: fake_qwen},
    )


@pytest.fixture
async def async_client(chat_relay: ChatRelay) -> AsyncGenerator[AsyncClient]:
    """Create async HTTP client for API testing.

    Yields:
        Configured AsyncClient with the chat relay replaced by fakes.
    """
    app.dependency_overrides[get_chat_relay] = lambda: chat_relay
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.clear()


def _build_pdf(text: str | None) -> bytes:
    """Assemble a one-page PDF with a correct xref table."""
    stream = f"BT /F1 12 Tf 20 100 Td ({text}) Tj ET".encode() if text else b""
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 300 200] /Contents 4 0 R "
        b"/Resources << /Font << /F1 5 0 R >> >> >>",
        b"<< /Length " + str(len(stream)).encode() + b" >>\nstream\n" + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]

    out = io.BytesIO()
    out.write(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(out.tell())
        out.write(f"{number} 0 obj\n".encode() + body + b"\nendobj\n")

    xref_offset = out.tell()
    out.write(f"xref\n0 {len(objects) + 1}\n".encode())
    out.write(b"0000000000 65535 f \n")
    for offset in offsets:
        out.write(f"{offset:010d} 00000 n \n".encode())
    out.write(
        f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\n"
        f"startxref\n{xref_offset}\n%%EOF\n".encode()
    )
    return out.getvalue()


@pytest.fixture
def make_pdf() -> Callable[[str | None], bytes]:
    """Factory for small valid PDFs, optionally containing a line of text."""
    return _build_pdf


@pytest.fixture
def make_docx() -> Callable[..., bytes]:
    """Factory for .docx files with paragraphs and an optional table."""

    def build(paragraphs: list[str], table: list[list[str]] | None = None) -> bytes:
        doc = DocxDocument()
        for paragraph in paragraphs:
            doc.add_paragraph(paragraph)
        if table:
            grid = doc.add_table(rows=len(table), cols=len(table[0]))
            for r, row in enumerate(table):
                for c, value in enumerate(row):
                    grid.cell(r, c).text = value
        buffer = io.BytesIO()
        doc.save(buffer)
        return buffer.getvalue()

    return build
