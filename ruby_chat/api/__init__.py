"""FastAPI endpoints for Ruby Chat.

HTTP and streaming routes with async request handling.
Supports Server-Sent Events for real-time chat streaming.

Endpoints:
    - GET /health: Service health status
    - POST /chat: Streaming chat completion
    - GET /models: Selectable models per provider
    - POST /upload: Document text extraction
    - POST /generate, GET /generate: Media generation tasks
"""

from ruby_chat.api.app import app, create_app

__all__ = ["app", "create_app"]
