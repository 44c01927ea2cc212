"""Per-page conversation state for the chat UI.

The conversation is append-only, except that the trailing assistant
placeholder is replaced wholesale while a stream is in flight. Attachments
are single slots: one uploaded document, one pasted image.
"""

import time
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from ruby_chat.models.schemas import ChatMessage, MediaType, ModelInfo, ProviderName, TaskStatus

DEFAULT_IMAGE_PROMPT = "What do you see in this image?"
APOLOGY = "Sorry, something went wrong. Please try again."

# Vendor statuses after which a generation task stops being polled
TERMINAL_STATUSES = {"completed", "succeeded", "success", "failed", "error", "cancelled"}

PROVIDER_LABELS = {ProviderName.GROQ: "Groq Models", ProviderName.QWEN: "Qwen Models"}


class ChatState(str, Enum):
    """Lifecycle of one exchange."""

    IDLE = "idle"
    COMPOSING = "composing"
    SENDING = "sending"
    STREAMING = "streaming"
    ERRORED = "errored"


class SessionBusy(Exception):
    """Raised when sending while a previous exchange is still in flight."""


class UploadedDocument(BaseModel):
    file_name: str
    text: str
    character_count: int = Field(ge=0)


class PastedImage(BaseModel):
    data: str
    name: str


class DisplayMessage(BaseModel):
    """A message as shown in the message list."""

    role: str
    content: str
    image: str | None = None
    time: str = Field(default_factory=lambda: datetime.now().strftime("%I:%M %p"))

    def to_wire(self) -> ChatMessage:
        return ChatMessage(role=self.role, content=self.content, image=self.image)


def merge_document(document: UploadedDocument, question: str) -> str:
    """Prefix a question with the full text of an attached document."""
    return (
        f"[Document: {document.file_name}]\n\n"
        f"Document Content:\n{document.text}\n\n"
        f"---\n\nUser Question: {question}"
    )


class ChatSession:
    """Manages chat state for a user session."""

    def __init__(self, models: list[ModelInfo] | None = None) -> None:
        self.messages: list[DisplayMessage] = []
        self.models: list[ModelInfo] = list(models or [])
        self.model_id: str | None = self.models[0].id if self.models else None
        self.document: UploadedDocument | None = None
        self.pasted_image: PastedImage | None = None
        self.state = ChatState.IDLE
        self._streamed = ""

    @property
    def is_busy(self) -> bool:
        return self.state in (ChatState.SENDING, ChatState.STREAMING)

    @property
    def provider(self) -> ProviderName:
        """Provider of the selected model, Groq when unknown."""
        for model in self.models:
            if model.id == self.model_id:
                return model.provider
        return ProviderName.GROQ

    @property
    def model_name(self) -> str:
        for model in self.models:
            if model.id == self.model_id:
                return model.name
        return self.model_id or "No models"

    def model_groups(self) -> list[tuple[str, list[ModelInfo]]]:
        """Models grouped under a per-provider header, in catalogue order."""
        groups: dict[ProviderName, list[ModelInfo]] = {}
        for model in self.models:
            groups.setdefault(model.provider, []).append(model)
        return [(PROVIDER_LABELS.get(p, p.value), models) for p, models in groups.items()]

    def select_model(self, model_id: str) -> None:
        if not any(m.id == model_id for m in self.models):
            raise ValueError(f"Unknown model: {model_id}")
        self.model_id = model_id

    def update_draft(self, text: str) -> None:
        if self.is_busy:
            return
        self.state = ChatState.COMPOSING if text.strip() else ChatState.IDLE

    def attach_document(self, document: UploadedDocument) -> None:
        self.document = document

    def remove_document(self) -> None:
        self.document = None

    def attach_image(self, data_url: str) -> PastedImage:
        self.pasted_image = PastedImage(
            data=data_url, name=f"screenshot-{int(time.time() * 1000)}.png"
        )
        return self.pasted_image

    def remove_image(self) -> None:
        self.pasted_image = None

    def can_send(self, text: str) -> bool:
        return bool(text.strip() or self.pasted_image) and not self.is_busy

    def compose_outgoing(self, text: str) -> list[ChatMessage]:
        """Append the user's message and build the request payload.

        The attached document is merged into the outgoing text only on the
        first turn; the displayed message never contains it. The pasted
        image is consumed.

        Args:
            text: Raw textarea content.

        Returns:
            The full wire conversation to send to /chat.

        Raises:
            SessionBusy: A previous exchange is still in flight.
            ValueError: Nothing to send.
        """
        if self.is_busy:
            raise SessionBusy("A response is still streaming")
        if not self.can_send(text):
            raise ValueError("Nothing to send")

        question = text.strip()
        image = self.pasted_image.data if self.pasted_image else None

        outgoing = question
        if self.document is not None and not self.messages:
            outgoing = merge_document(self.document, question)
        if image and not outgoing:
            outgoing = DEFAULT_IMAGE_PROMPT

        history = [m.to_wire() for m in self.messages]
        self.messages.append(
            DisplayMessage(role="user", content=question or DEFAULT_IMAGE_PROMPT, image=image)
        )
        self.pasted_image = None
        self.state = ChatState.SENDING

        return [*history, ChatMessage(role="user", content=outgoing, image=image)]

    def begin_stream(self) -> None:
        """Append the empty assistant placeholder."""
        self._streamed = ""
        self.messages.append(DisplayMessage(role="assistant", content=""))
        self.state = ChatState.STREAMING

    def apply_fragment(self, fragment: str) -> str:
        """Replace the placeholder with the cumulative streamed text."""
        self._streamed += fragment
        self._replace_placeholder(self._streamed)
        return self._streamed

    def fail(self) -> None:
        """Replace the placeholder (or add one) with the apology text."""
        if self.messages and self.messages[-1].role == "assistant" and self.state is ChatState.STREAMING:
            self._replace_placeholder(APOLOGY)
        else:
            self.messages.append(DisplayMessage(role="assistant", content=APOLOGY))
        self.state = ChatState.ERRORED

    def finish(self) -> None:
        self.state = ChatState.IDLE

    def clear(self) -> None:
        """Start a new chat: drop messages and the attached document."""
        self.messages.clear()
        self.document = None
        self.pasted_image = None
        self._streamed = ""
        self.state = ChatState.IDLE

    def _replace_placeholder(self, content: str) -> None:
        placeholder = self.messages[-1]
        self.messages[-1] = DisplayMessage(role="assistant", content=content, time=placeholder.time)


class GenerationWatch:
    """The generation task the dialog is currently polling, if any."""

    def __init__(self) -> None:
        self.task_id: str | None = None
        self.media_type: MediaType | None = None

    @property
    def active(self) -> bool:
        return self.task_id is not None

    def start(self, task_id: str, media_type: MediaType) -> None:
        self.task_id = task_id
        self.media_type = media_type

    def observe(self, status: TaskStatus) -> bool:
        """Record a poll result and report whether polling should continue.

        Polling ends once the media URL is known or the status is terminal.
        """
        if not self.active:
            return False
        if status.url or (status.status or "").lower() in TERMINAL_STATUSES:
            self.stop()
            return False
        return True

    def stop(self) -> None:
        self.task_id = None
        self.media_type = None
