"""Image and video generation through a hosted generation router.

Generation is asynchronous at the vendor: ``submit`` starts a task and
returns its id, ``poll`` reads its status. Nothing is cached locally.
"""

import logging
import os
from typing import Any

import httpx
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ruby_chat.errors import GenerationFailed
from ruby_chat.models.schemas import GenerationTask, MediaType, TaskStatus

load_dotenv()

logger = logging.getLogger(__name__)

# Vendor path per media type, relative to GenerationConfig.base_url
_ENDPOINTS: dict[MediaType, str] = {
    MediaType.IMAGE: "google/v1/nano-banana-pro/generation",
    MediaType.VIDEO: "alibaba/v1/wan2/t2v/generation",
}

VIDEO_WIDTH = 1280
VIDEO_HEIGHT = 720


class GenerationConfig(BaseModel):
    """Configuration for the generation router.

    Attributes:
        api_key: Router API key (falls back to QWEN_API_KEY).
        base_url: Router vendors base URL.
        timeout: Request timeout in seconds.
    """

    model_config = ConfigDict(validate_default=True)

    api_key: str = Field(
        default_factory=lambda: os.getenv("GENERATION_API_KEY") or os.getenv("QWEN_API_KEY", ""),
    )
    base_url: str = Field(
        default_factory=lambda: os.getenv(
            "GENERATION_BASE_URL", "https://api.mulerouter.ai/vendors"
        ),
    )
    timeout: float = Field(default=60.0, gt=0)

    @field_validator("api_key")
    @classmethod
    def strip_api_key(cls, v: str) -> str:
        return v.strip()

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def normalize_task_status(data: dict[str, Any]) -> TaskStatus:
    """Map either vendor status shape onto TaskStatus.

    Image tasks report under ``task_info``; video tasks may report at the
    top level. Nested values win when both are present.
    """
    task_info = _as_dict(data.get("task_info"))
    result = task_info.get("result") or data.get("result")
    url = _as_dict(task_info.get("result")).get("url") or data.get("url")
    return TaskStatus(
        status=task_info.get("status") or data.get("status"),
        result=result,
        url=url,
    )


class GenerationDispatcher:
    """Stateless client for submitting and polling generation tasks."""

    def __init__(
        self,
        config: GenerationConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or GenerationConfig()
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._config.timeout)
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client, if one was created."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _url(self, media_type: MediaType, task_id: str | None = None) -> str:
        url = f"{self._config.base_url}/{_ENDPOINTS[media_type]}"
        return f"{url}/{task_id}" if task_id else url

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._config.api_key}"}

    async def _call(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._get_client().request(
                method, url, headers=self._headers(), **kwargs
            )
        except httpx.RequestError as e:
            logger.error(f"Generation router unreachable: {e!r}")
            raise GenerationFailed(500, str(e)) from e

        if response.is_error:
            logger.error(f"Generation error ({response.status_code}): {response.text[:300]}")
            raise GenerationFailed(response.status_code, response.text)

        try:
            return _as_dict(response.json())
        except ValueError as e:
            logger.error(f"Generation router sent invalid JSON: {response.text[:300]}")
            raise GenerationFailed(502, response.text) from e

    async def submit(
        self,
        prompt: str,
        media_type: MediaType,
        aspect_ratio: str = "1:1",
        resolution: str = "2K",
    ) -> GenerationTask:
        """Start a generation task.

        Args:
            prompt: Text description of the media to generate.
            media_type: Image or video.
            aspect_ratio: Image aspect ratio (ignored for video).
            resolution: Image resolution (ignored for video).

        Returns:
            GenerationTask with the vendor task id and initial status.

        Raises:
            GenerationFailed: Vendor returned non-2xx or was unreachable.
        """
        if media_type is MediaType.IMAGE:
            body: dict[str, Any] = {
                "prompt": prompt,
                "aspect_ratio": aspect_ratio or "1:1",
                "resolution": resolution or "2K",
            }
        else:
            body = {"prompt": prompt, "width": VIDEO_WIDTH, "height": VIDEO_HEIGHT}

        data = await self._call("POST", self._url(media_type), json=body)
        task_info = _as_dict(data.get("task_info"))
        task_id = task_info.get("task_id") or data.get("id")
        if not task_id:
            raise GenerationFailed(502, "Vendor response did not include a task id")

        logger.info(f"Submitted {media_type.value} generation task {task_id}")
        return GenerationTask(
            task_id=str(task_id),
            status=task_info.get("status") or "processing",
            type=media_type,
        )

    async def poll(self, task_id: str, media_type: MediaType) -> TaskStatus:
        """Fetch the current status of a generation task.

        Raises:
            GenerationFailed: Vendor returned non-2xx or was unreachable.
        """
        data = await self._call("GET", self._url(media_type, task_id))
        return normalize_task_status(data)


# Module-level singleton instance
_dispatcher: GenerationDispatcher | None = None


def get_generation_dispatcher() -> GenerationDispatcher:
    """Get or create the global generation dispatcher."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = GenerationDispatcher()
    return _dispatcher


async def close_generation_dispatcher() -> None:
    """Release the global dispatcher's connections on shutdown."""
    global _dispatcher
    if _dispatcher is not None:
        await _dispatcher.aclose()
        _dispatcher = None
