"""
Parley - Main FastAPI Application
Multi-provider LLM chat with streamed replies, guest access and shareable threads.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Optional
import logging

from .ai.manager import AIManager
from .config import Settings, settings as default_settings
from .context import AppContext
from .errors import ParleyError
from .routers import (
    api_chat_router,
    api_share_router,
    api_summarize_router,
    auth_router,
    chat_pages_router
)


logger = logging.getLogger(__name__)


def configure_logging(settings: Settings):
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
    )


def create_app(settings: Optional[Settings] = None, ai_manager: Optional[AIManager] = None) -> FastAPI:
    """Build the application; tests pass their own settings and provider manager."""
    settings = settings or default_settings
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events."""
        context = await AppContext.start(settings, ai_manager)
        app.state.context = context

        yield

        await context.stop()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Chat with OpenAI and Gemini models, streamed over server-sent events",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ParleyError)
    async def parley_error_handler(request: Request, exc: ParleyError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %r", request.method, request.url.path, exc)
        else:
            logger.warning("%s %s rejected (%d): %s", request.method, request.url.path, exc.status_code, exc.message)
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse({"error": "Internal server error", "success": False}, status_code=500)

    app.include_router(auth_router)
    app.include_router(api_chat_router)
    app.include_router(api_summarize_router)
    app.include_router(api_share_router)
    app.include_router(chat_pages_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION
        }

    return app


app = create_app()
