"""Chat vendor adapters.

Each provider owns its request shape, endpoint and model catalogue, and
exposes the same contract: open a completion stream for a system prompt
plus a message list, then yield text fragments as they arrive.

Opening and iterating are separate steps so that a vendor rejection
surfaces before the HTTP response to the browser has started.
"""

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

import groq
import httpx
from groq import AsyncGroq

from ruby_chat.errors import VendorCallFailed
from ruby_chat.models.schemas import ModelInfo, ProviderName
from ruby_chat.relay.config import DEFAULT_GROQ_MODEL, RelayConfig

logger = logging.getLogger(__name__)

SSE_DATA_PREFIX = "data:"
SSE_DONE = "[DONE]"


class FragmentStream:
    """An opened vendor completion.

    Iterate it for text fragments; always ``aclose()`` it so the
    underlying HTTP response is released, even if it was never iterated.
    """

    def __init__(
        self,
        fragments: AsyncIterator[str],
        close: Callable[[], Awaitable[None]],
    ) -> None:
        self._fragments = fragments
        self._close = close
        self._closed = False

    def __aiter__(self) -> AsyncIterator[str]:
        return self._fragments

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._close()


class ChatProvider(ABC):
    """Base class for a chat completion vendor."""

    name: ProviderName
    default_model: str
    models: tuple[ModelInfo, ...] = ()

    def __init__(self, config: RelayConfig) -> None:
        self._config = config

    def serves(self, model: str) -> bool:
        """Check whether a model id belongs to this provider's catalogue."""
        return any(m.id == model for m in self.models)

    @abstractmethod
    async def open_stream(
        self,
        model: str,
        system_prompt: str,
        messages: list[dict[str, Any]],
    ) -> FragmentStream:
        """Issue the vendor call and return its fragment stream.

        Raises:
            VendorCallFailed: If the vendor rejects the call or is unreachable.
        """

    async def aclose(self) -> None:
        """Release vendor connections. Nothing to do by default."""

    def _require_key(self, key: str, env_var: str) -> str:
        if not key:
            raise VendorCallFailed(f"{env_var} is not configured")
        return key


class GroqProvider(ChatProvider):
    """Groq chat completions through the official async SDK."""

    name = ProviderName.GROQ
    models = (
        ModelInfo(id=DEFAULT_GROQ_MODEL, name="Llama 4 Maverick", provider=ProviderName.GROQ),
        ModelInfo(
            id="meta-llama/llama-4-scout-17b-16e-instruct",
            name="Llama 4 Scout",
            provider=ProviderName.GROQ,
        ),
        ModelInfo(id="llama-3.3-70b-versatile", name="Llama 3.3 70B", provider=ProviderName.GROQ),
        ModelInfo(id="llama-3.1-8b-instant", name="Llama 3.1 8B", provider=ProviderName.GROQ),
        ModelInfo(id="mixtral-8x7b-32768", name="Mixtral 8x7B", provider=ProviderName.GROQ),
    )

    def __init__(self, config: RelayConfig, client: AsyncGroq | None = None) -> None:
        super().__init__(config)
        self.default_model = config.default_model
        self._client = client

    def serves(self, model: str) -> bool:
        return model == self.default_model or super().serves(model)

    def _get_client(self) -> AsyncGroq:
        if self._client is None:
            self._client = AsyncGroq(
                api_key=self._require_key(self._config.groq_api_key, "GROQ_API_KEY"),
                timeout=self._config.timeout,
                max_retries=0,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def open_stream(
        self,
        model: str,
        system_prompt: str,
        messages: list[dict[str, Any]],
    ) -> FragmentStream:
        client = self._get_client()
        try:
            completion = await client.chat.completions.create(
                model=model,
                messages=[{"role": "system", "content": system_prompt}, *messages],
                temperature=self._config.temperature,
                max_tokens=self._config.max_tokens,
                stream=True,
            )
        except groq.APIStatusError as e:
            logger.warning(f"Groq rejected request ({e.status_code}): {e.message}")
            raise VendorCallFailed(
                f"Groq API error: {e.status_code}", vendor_status=e.status_code
            ) from e
        except groq.APIError as e:
            logger.warning(f"Groq request failed: {e}")
            raise VendorCallFailed(f"Groq API error: {e}") from e

        async def fragments() -> AsyncIterator[str]:
            async for chunk in completion:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content

        return FragmentStream(fragments(), completion.close)


class QwenProvider(ChatProvider):
    """Qwen models behind an OpenAI-compatible router, called with raw httpx.

    The router takes the system instruction as a leading user turn.
    """

    name = ProviderName.QWEN
    default_model = "qwen3-max"
    models = (
        ModelInfo(id="qwen3-max", name="Qwen3 Max", provider=ProviderName.QWEN),
        ModelInfo(id="qwen3-235b-a22b", name="Qwen3 235B", provider=ProviderName.QWEN),
        ModelInfo(id="qwen3-30b-a3b", name="Qwen3 30B", provider=ProviderName.QWEN),
        ModelInfo(id="qwen3-32b", name="Qwen3 32B", provider=ProviderName.QWEN),
    )

    def __init__(self, config: RelayConfig, client: httpx.AsyncClient | None = None) -> None:
        super().__init__(config)
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._config.timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def open_stream(
        self,
        model: str,
        system_prompt: str,
        messages: list[dict[str, Any]],
    ) -> FragmentStream:
        api_key = self._require_key(self._config.qwen_api_key, "QWEN_API_KEY")
        client = self._get_client()
        request = client.build_request(
            "POST",
            f"{self._config.qwen_base_url}/chat/completions",
            headers={"Authorization": f"Bearer {api_key}"},
            json={
                "model": model,
                "messages": [{"role": "user", "content": system_prompt}, *messages],
                "stream": True,
                "max_tokens": self._config.max_tokens,
            },
        )

        try:
            response = await client.send(request, stream=True)
        except httpx.RequestError as e:
            logger.warning(f"Qwen request failed: {e!r}")
            raise VendorCallFailed(f"Qwen API error: {e}") from e

        if response.is_error:
            body = (await response.aread()).decode("utf-8", errors="replace")
            await response.aclose()
            logger.warning(f"Qwen rejected request ({response.status_code}): {body[:300]}")
            raise VendorCallFailed(
                f"Qwen API error: {response.status_code}",
                vendor_status=response.status_code,
            )

        return FragmentStream(_iter_sse_deltas(response), response.aclose)


async def _iter_sse_deltas(response: httpx.Response) -> AsyncIterator[str]:
    """Extract delta text from an OpenAI-style SSE body."""
    async for line in response.aiter_lines():
        line = line.strip()
        if not line.startswith(SSE_DATA_PREFIX):
            continue
        data = line[len(SSE_DATA_PREFIX):].strip()
        if data == SSE_DONE:
            return
        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            logger.debug(f"Skipping malformed SSE line: {data[:100]}")
            continue
        choices = payload.get("choices") or []
        if not choices:
            continue
        content = (choices[0].get("delta") or {}).get("content")
        if isinstance(content, str) and content:
            yield content


def build_providers(config: RelayConfig) -> dict[ProviderName, ChatProvider]:
    """Create one provider per supported vendor."""
    providers: list[ChatProvider] = [GroqProvider(config), QwenProvider(config)]
    return {provider.name: provider for provider in providers}
