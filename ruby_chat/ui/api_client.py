"""HTTP calls from the chat UI to the Ruby Chat API."""

import json
import os
from collections.abc import Callable
from typing import Any

import httpx

from ruby_chat.models.schemas import (
    ChatMessage,
    GenerationTask,
    MediaType,
    ModelInfo,
    ProviderName,
    TaskStatus,
    UploadResponse,
)
from ruby_chat.ui.session import UploadedDocument

API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000")


class ApiError(Exception):
    """Raised when the API answers with an error body."""


def _error_message(response: httpx.Response, fallback: str) -> str:
    try:
        data = response.json()
    except ValueError:
        return fallback
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return fallback


async def stream_chat_response(
    messages: list[ChatMessage],
    model: str | None,
    provider: ProviderName,
    on_chunk: Callable[[str], None],
    on_error: Callable[[str], None],
    on_complete: Callable[[], None] | None = None,
    client: httpx.AsyncClient | None = None,
) -> None:
    """Consume the SSE stream from the /chat endpoint.

    Each ``data:`` line is parsed as an independent event until the
    ``[DONE]`` sentinel or the end of the body. Exactly one of
    ``on_complete`` and ``on_error`` is called.
    """
    payload = {
        "messages": [m.model_dump(exclude_none=True) for m in messages],
        "model": model,
        "provider": provider.value,
    }
    owned = client is None
    client = client or httpx.AsyncClient(base_url=API_BASE_URL, timeout=120.0)
    try:
        async with client.stream(
            "POST",
            "/chat",
            json=payload,
            headers={"Accept": "text/event-stream"},
        ) as response:
            if response.is_error:
                await response.aread()
                on_error(_error_message(response, f"HTTP {response.status_code}"))
                return
            async for line in response.aiter_lines():
                if not line.startswith("data: "):
                    continue
                data = line[6:].strip()
                if data == "[DONE]":
                    break
                try:
                    event = json.loads(data)
                except json.JSONDecodeError:
                    continue
                if event.get("error"):
                    on_error(event["error"])
                    return
                if content := event.get("content"):
                    on_chunk(content)
    except httpx.HTTPError as e:
        on_error(f"Connection failed: {e}")
        return
    finally:
        if owned:
            await client.aclose()

    if on_complete is not None:
        on_complete()


class RubyChatClient:
    """Request/response calls used by the chat page."""

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client or httpx.AsyncClient(base_url=API_BASE_URL, timeout=120.0)

    @property
    def http(self) -> httpx.AsyncClient:
        return self._client

    async def aclose(self) -> None:
        await self._client.aclose()

    def _json(self, response: httpx.Response, fallback: str) -> Any:
        if response.is_error:
            raise ApiError(_error_message(response, fallback))
        return response.json()

    async def list_models(self) -> list[ModelInfo]:
        response = await self._client.get("/models")
        data = self._json(response, "Failed to load models")
        return [ModelInfo.model_validate(item) for item in data]

    async def upload_document(self, file_name: str, content: bytes) -> UploadedDocument:
        """Send a document to /upload and return its extracted text.

        Raises:
            ApiError: The server rejected or failed to parse the file.
        """
        response = await self._client.post("/upload", files={"file": (file_name, content)})
        data = UploadResponse.model_validate(self._json(response, "Upload failed"))
        return UploadedDocument(
            file_name=data.file_name,
            text=data.text,
            character_count=data.character_count,
        )

    async def submit_generation(
        self,
        prompt: str,
        media_type: MediaType,
        aspect_ratio: str = "1:1",
        resolution: str = "2K",
    ) -> GenerationTask:
        response = await self._client.post(
            "/generate",
            json={
                "prompt": prompt,
                "type": media_type.value,
                "aspectRatio": aspect_ratio,
                "resolution": resolution,
            },
        )
        return GenerationTask.model_validate(self._json(response, "Failed to generate"))

    async def poll_generation(self, task_id: str, media_type: MediaType) -> TaskStatus:
        response = await self._client.get(
            "/generate", params={"taskId": task_id, "type": media_type.value}
        )
        return TaskStatus.model_validate(self._json(response, "Failed to check status"))


# Module-level singleton instance, shared by every page visit
_api_client: RubyChatClient | None = None


def get_api_client() -> RubyChatClient:
    """Get or create the process-wide API client."""
    global _api_client
    if _api_client is None:
        _api_client = RubyChatClient()
    return _api_client


async def close_api_client() -> None:
    """Close the shared API client's connection pool."""
    global _api_client
    if _api_client is not None:
        await _api_client.aclose()
        _api_client = None
