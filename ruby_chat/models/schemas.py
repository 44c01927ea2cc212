from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel


class ProviderName(str, Enum):
    """Chat vendors the relay can dispatch to."""

    GROQ = "groq"
    QWEN = "qwen"


class MediaType(str, Enum):
    """Media kinds the generation router can produce."""

    IMAGE = "image"
    VIDEO = "video"


class CamelModel(BaseModel):
    """Base model exchanging camelCase JSON with the browser."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ImageURL(BaseModel):
    url: str


class ContentPart(BaseModel):
    """A typed piece of multimodal message content.

    Attributes:
        type: Either "text" or "image_url".
        text: Text payload for text parts.
        image_url: Image reference (usually a data URL) for image parts.
    """

    type: Literal["text", "image_url"]
    text: str | None = None
    image_url: ImageURL | None = None


class ChatMessage(BaseModel):
    """A single chat message in the conversation.

    Attributes:
        role: The speaker identifier (user or assistant).
        content: Message text, or an ordered list of content parts.
        image: Optional inline image (data URL) attached to the message.
    """

    role: Literal["user", "assistant"] = Field(..., description="Message role: 'user' or 'assistant'")
    content: str | list[ContentPart] = Field(..., description="The message content")
    image: str | None = Field(None, description="Inline image as a data URL")


class ChatRequest(BaseModel):
    """Request payload for the streaming chat endpoint.

    Attributes:
        messages: Conversation so far, oldest first. Must not be empty.
        model: Vendor model id; provider default when omitted.
        provider: Which vendor serves the request.
    """

    messages: list[ChatMessage] = Field(..., min_length=1)
    model: str | None = None
    provider: ProviderName = ProviderName.GROQ

    @field_validator("provider", mode="before")
    @classmethod
    def default_provider(cls, v: Any) -> Any:
        """Treat an explicit null provider as the default one."""
        return ProviderName.GROQ if v is None else v

    @field_validator("model", mode="before")
    @classmethod
    def blank_model_is_default(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class StreamChunk(BaseModel):
    """A fragment of streamed response text."""

    content: str


class StreamError(BaseModel):
    """Terminal error event sent when a stream breaks mid-flight."""

    error: str


class ErrorResponse(BaseModel):
    error: str


class ModelInfo(BaseModel):
    """A selectable chat model.

    Attributes:
        id: Vendor model identifier.
        name: Human readable label for the picker.
        provider: Vendor serving the model.
    """

    id: str
    name: str
    provider: ProviderName


class UploadResponse(CamelModel):
    """Response after document upload processing.

    Attributes:
        success: Whether extraction succeeded.
        file_name: Original name of the uploaded file.
        text: Normalized (and possibly truncated) document text.
        character_count: Length of ``text``.
    """

    success: bool
    file_name: str
    text: str
    character_count: int = Field(ge=0)


class GenerationRequest(CamelModel):
    """Request payload for starting an image or video generation task."""

    prompt: str = Field(..., min_length=1)
    type: MediaType
    aspect_ratio: str = "1:1"
    resolution: str = "2K"

    @field_validator("prompt", mode="before")
    @classmethod
    def strip_prompt(cls, v: str) -> str:
        """Strip whitespace from prompt before validation."""
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("aspect_ratio", "resolution", mode="before")
    @classmethod
    def empty_uses_default(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None or v == "":
            return "1:1" if info.field_name == "aspect_ratio" else "2K"
        return v


class GenerationTask(CamelModel):
    """A submitted generation task awaiting polling."""

    success: bool = True
    task_id: str
    status: str
    type: MediaType


class TaskStatus(BaseModel):
    """Normalized status of a generation task, whatever the vendor shape.

    Attributes:
        status: Vendor status string (e.g. processing, completed, failed).
        result: Raw vendor result payload, if any.
        url: Direct link to the generated media once available.
    """

    status: str | None = None
    result: Any = None
    url: str | None = None
