"""Pydantic models for API requests and responses.

Provides type safety, validation, and automatic OpenAPI documentation.

Models:
    - ChatMessage: Individual message in conversation
    - ChatRequest: Incoming streaming chat request payload
    - StreamChunk / StreamError: SSE event payloads
    - UploadResponse: Extracted document text
    - GenerationRequest / GenerationTask / TaskStatus: Media generation
    - ModelInfo: Selectable chat model
"""

from ruby_chat.models.schemas import (
    ChatMessage,
    ChatRequest,
    ContentPart,
    ErrorResponse,
    GenerationRequest,
    GenerationTask,
    ImageURL,
    MediaType,
    ModelInfo,
    ProviderName,
    StreamChunk,
    StreamError,
    TaskStatus,
    UploadResponse,
)

__all__ = [
    "ChatMessage",
    "ChatRequest",
    "ContentPart",
    "ErrorResponse",
    "GenerationRequest",
    "GenerationTask",
    "ImageURL",
    "MediaType",
    "ModelInfo",
    "ProviderName",
    "StreamChunk",
    "StreamError",
    "TaskStatus",
    "UploadResponse",
]
