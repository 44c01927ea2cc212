"""Media generation task submission and status polling."""

from ruby_chat.generation.dispatcher import (
    GenerationConfig,
    GenerationDispatcher,
    close_generation_dispatcher,
    get_generation_dispatcher,
    normalize_task_status,
)

__all__ = [
    "GenerationConfig",
    "GenerationDispatcher",
    "close_generation_dispatcher",
    "get_generation_dispatcher",
    "normalize_task_status",
]
