"""
Chat API: provider info, blocking and streamed completions, title updates.
"""

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging

from ..ai.manager import AIManager
from ..ai.types import ChatOptions
from ..context import get_ai_manager, get_current_session, get_settings
from ..config import Settings
from ..database import get_db
from ..errors import AuthError, NotFoundError, ProviderUnavailableError, RateLimitedError
from ..schemas.chat import (
    ChatRequest,
    ChatResponse,
    ProviderInfo,
    ProvidersResponse,
    TitleRequest,
    TitleResponse,
)
from ..schemas.user import ExtendedSession
from ..services.stream_service import SSE_HEADERS, StreamService
from ..services.thread_store import ThreadStore
from ..services.title_service import TitleService
from ..utils.http import model_response, read_body


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["Chat"])


@router.get("")
async def list_providers(ai_manager: AIManager = Depends(get_ai_manager)):
    """Configured providers with their display names and models."""
    providers = [
        ProviderInfo(
            id=provider,
            name=ai_manager.get_provider_display_name(provider),
            models=ai_manager.get_available_models(provider),
            is_configured=ai_manager.is_provider_available(provider)
        )
        for provider in ai_manager.get_available_providers()
    ]
    return model_response(ProvidersResponse(
        providers=providers,
        default_provider=ai_manager.get_default_provider()
    ))


@router.post("")
async def chat(
    request: Request,
    stream: bool = False,
    update_title: bool = Query(False, alias="updateTitle"),
    session: Optional[ExtendedSession] = Depends(get_current_session),
    ai_manager: AIManager = Depends(get_ai_manager),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db)
):
    """Send messages to a provider and return the reply, or stream it with ?stream=true."""
    if update_title:
        return await _update_title(request, session, ai_manager, settings, db)

    chat_request = await read_body(request, ChatRequest, "Messages array is required")

    if session is not None and session.is_rate_limited:
        raise RateLimitedError("Guest message limit reached, sign in to continue")

    provider = chat_request.provider or ai_manager.get_default_provider()
    if not ai_manager.is_provider_available(provider):
        raise ProviderUnavailableError(provider, ai_manager.get_available_providers())

    options = ChatOptions(
        model=chat_request.model,
        temperature=chat_request.temperature,
        max_tokens=chat_request.max_tokens
    )

    if stream:
        stream_service = StreamService(ai_manager)
        return StreamingResponse(
            stream_service.stream_events(chat_request.messages, provider, options),
            media_type="text/event-stream",
            headers=SSE_HEADERS
        )

    response = await ai_manager.chat(chat_request.messages, provider, options)
    return model_response(ChatResponse(
        response=response.content,
        model=response.model,
        provider=provider,
        usage=response.usage
    ))


async def _update_title(
    request: Request,
    session: Optional[ExtendedSession],
    ai_manager: AIManager,
    settings: Settings,
    db: AsyncSession
):
    if session is None:
        raise AuthError("Unauthorized")

    title_request = await read_body(request, TitleRequest, "threadId and message are required")

    store = ThreadStore(db, settings.THREAD_WRITE_RETRIES)
    thread = await store.get_by_uuid(title_request.thread_id)
    if thread is None:
        raise NotFoundError("Thread not found")
    if thread.user_id != session.user_id:
        raise AuthError("Access denied", status_code=403)

    title = await TitleService(ai_manager).generate_title(title_request.message)
    await store.update_by_uuid(thread.uuid, title=title)
    logger.info("Updated title of thread %s", thread.uuid)

    return model_response(TitleResponse(title=title))
