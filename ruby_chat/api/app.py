"""FastAPI application factory and configuration.

Main application entry point with lifespan management, middleware,
error handlers and router registration.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ruby_chat.api.chat import router as chat_router
from ruby_chat.api.generate import router as generate_router
from ruby_chat.api.upload import router as upload_router
from ruby_chat.errors import RubyChatError
from ruby_chat.generation.dispatcher import close_generation_dispatcher
from ruby_chat.relay.chat_relay import close_chat_relay

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application startup and shutdown lifecycle.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control to the application while it runs.
    """
    # Startup
    logger.info("Starting Ruby Chat API...")
    yield
    # Shutdown
    logger.info("Shutting down Ruby Chat API...")
    await close_chat_relay()
    await close_generation_dispatcher()


async def handle_app_error(request: Request, exc: RubyChatError) -> JSONResponse:
    """Render application errors as ``{"error": message}``."""
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request validation failures as 400 ``{"error": message}``."""
    details = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        details.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    message = "; ".join(details) or "Invalid request"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    application = FastAPI(
        title="Ruby Chat API",
        description=(
            "Chat assistant API relaying conversations to hosted LLM vendors "
            "(Groq, Qwen) as Server-Sent Events, with document text extraction "
            "and image/video generation."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
    )

    application.add_exception_handler(RubyChatError, handle_app_error)
    application.add_exception_handler(RequestValidationError, handle_validation_error)

    application.include_router(chat_router)
    application.include_router(upload_router)
    application.include_router(generate_router)

    @application.get("/health")
    async def health_check() -> dict[str, str]:
        """Check service health status."""
        return {"status": "healthy", "service": "ruby-chat"}

    return application


app = create_app()
