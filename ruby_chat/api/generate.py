"""Image/video generation endpoints.

POST starts a vendor task, GET polls it. Vendor status codes are passed
through on failure.
"""

from fastapi import APIRouter, Depends, Query

from ruby_chat.errors import RequestValidationFailed
from ruby_chat.generation.dispatcher import GenerationDispatcher, get_generation_dispatcher
from ruby_chat.models.schemas import (
    ErrorResponse,
    GenerationRequest,
    GenerationTask,
    MediaType,
    TaskStatus,
)

router = APIRouter(prefix="/generate", tags=["generate"])


def _parse_media_type(value: str) -> MediaType:
    try:
        return MediaType(value)
    except ValueError as e:
        raise RequestValidationFailed('Invalid type. Use "image" or "video"') from e


@router.post("", response_model=GenerationTask, responses={400: {"model": ErrorResponse}})
async def start_generation(
    request: GenerationRequest,
    dispatcher: GenerationDispatcher = Depends(get_generation_dispatcher),
) -> GenerationTask:
    """Submit an image or video generation task.

    Raises:
        400: Missing prompt or invalid type.
        Vendor status: Vendor rejected the task.
    """
    return await dispatcher.submit(
        request.prompt,
        request.type,
        aspect_ratio=request.aspect_ratio,
        resolution=request.resolution,
    )


@router.get("", response_model=TaskStatus, responses={400: {"model": ErrorResponse}})
async def check_generation(
    task_id: str | None = Query(default=None, alias="taskId"),
    media_type: str | None = Query(default=None, alias="type"),
    dispatcher: GenerationDispatcher = Depends(get_generation_dispatcher),
) -> TaskStatus:
    """Poll a generation task for its normalized status."""
    if not task_id or not media_type:
        raise RequestValidationFailed("taskId and type are required")

    return await dispatcher.poll(task_id, _parse_media_type(media_type))
