"""
Chat page routes.

Pages are returned as JSON page data for the frontend to render. Visitors
without a session get a guest identity and a session cookie on first contact.
"""

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from urllib.parse import quote
import logging

from ..ai.manager import AIManager, normalize_provider
from ..ai.model_mapping import get_model_version_from_provider
from ..config import Settings
from ..context import get_ai_manager, get_session_service, get_settings
from ..database import get_db
from ..errors import NotFoundError, ValidationError
from ..models.thread import Thread
from ..schemas.thread import ThreadListItem, ThreadResponse
from ..schemas.user import ExtendedSession, PageData, PageUser
from ..services.chat_service import ChatService
from ..services.session_service import SessionService
from ..services.thread_store import ThreadStore
from ..utils.security import set_session_cookie


logger = logging.getLogger(__name__)

router = APIRouter(tags=["Pages"])


def guest_limit_message(settings: Settings) -> str:
    return (
        f"You've reached the {settings.GUEST_MESSAGE_LIMIT} message limit for guest accounts. "
        "Please sign in with Google to continue chatting!"
    )


async def render_page(
    session: ExtendedSession,
    store: ThreadStore,
    settings: Settings,
    current_thread: Optional[Thread] = None,
    error: Optional[str] = None,
    status_code: int = 200,
    token: Optional[str] = None
) -> JSONResponse:
    threads = await store.list_by_owner(session.user_id)
    data = PageData(
        user=PageUser.from_session(session),
        threads=[ThreadListItem.model_validate(t) for t in threads],
        current_thread=ThreadResponse.from_thread(current_thread) if current_thread else None,
        is_owner=current_thread is not None and current_thread.user_id == session.user_id,
        error=error
    )
    response = JSONResponse(data.model_dump(mode="json", by_alias=True), status_code=status_code)
    if token:
        set_session_cookie(response, token, settings)
    return response


def redirect(url: str, settings: Settings, token: Optional[str] = None) -> RedirectResponse:
    response = RedirectResponse(url, status_code=302)
    if token:
        set_session_cookie(response, token, settings)
    return response


@router.get("/")
async def index(
    request: Request,
    session_service: SessionService = Depends(get_session_service),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db)
):
    """Landing page: the caller's threads."""
    session, token = await session_service.get_or_create_session(request)
    return await render_page(session, ThreadStore(db), settings, token=token)


@router.get("/chat/new")
async def new_chat_page(
    request: Request,
    session_service: SessionService = Depends(get_session_service),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db)
):
    session, token = await session_service.get_or_create_session(request)
    return await render_page(session, ThreadStore(db), settings, token=token)


@router.post("/chat/new")
async def create_chat(
    request: Request,
    message: str = Form(""),
    provider: str = Form("google"),
    session_service: SessionService = Depends(get_session_service),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db)
):
    """Create an empty thread and hand the first message to the client via the URL."""
    if not message.strip():
        raise ValidationError("Message is required")

    session, token = await session_service.get_or_create_session(request)
    store = ThreadStore(db, settings.THREAD_WRITE_RETRIES)

    if session.is_guest and session.is_rate_limited:
        logger.info("Rejected new chat from rate-limited guest %s", session.user_id)
        return await render_page(
            session, store, settings,
            error=guest_limit_message(settings),
            status_code=429,
            token=token
        )

    provider = normalize_provider(provider)
    thread = await store.create(
        owner_id=session.user_id,
        title="New Conversation",
        messages="[]",
        provider=provider,
        model_version=get_model_version_from_provider(provider),
        is_public=False
    )

    return redirect(f"/chat/{thread.uuid}?message={quote(message.strip())}", settings, token)


@router.get("/chat/{thread_uuid}")
async def chat_page(
    thread_uuid: str,
    request: Request,
    session_service: SessionService = Depends(get_session_service),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db)
):
    """A single thread; public threads are readable by anyone."""
    session, token = await session_service.get_or_create_session(request)
    store = ThreadStore(db)
    thread = await store.get_by_uuid(thread_uuid)

    readable = thread is not None and (thread.user_id == session.user_id or thread.public)

    # A brand-new guest cannot own anything yet, so send them home.
    if token is not None and not readable:
        return redirect("/", settings, token)

    if thread is None:
        return await render_page(session, store, settings, error="Thread not found", status_code=404)

    if not readable:
        return await render_page(session, store, settings, error="Access denied", status_code=403)

    return await render_page(session, store, settings, current_thread=thread, token=token)


@router.post("/chat/{thread_uuid}")
async def post_message(
    thread_uuid: str,
    request: Request,
    message: str = Form(""),
    ai_response: str = Form(""),
    is_streamed: str = Form("false"),
    provider: str = Form(""),
    session_service: SessionService = Depends(get_session_service),
    ai_manager: AIManager = Depends(get_ai_manager),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db)
):
    """
    Append an exchange to a thread.

    A streamed reply arrives pre-generated (`is_streamed=true`) and is stored
    as-is; otherwise the provider is called here.
    """
    session, token = await session_service.get_or_create_session(request)
    store = ThreadStore(db, settings.THREAD_WRITE_RETRIES)

    thread = await store.get_by_uuid(thread_uuid)
    if thread is None or thread.user_id != session.user_id:
        raise NotFoundError("Thread not found")

    if not message.strip():
        raise ValidationError("Message is required")

    if session.is_guest and session.is_rate_limited:
        logger.info("Rejected message from rate-limited guest %s", session.user_id)
        return await render_page(
            session, store, settings,
            current_thread=thread,
            error=guest_limit_message(settings),
            status_code=429,
            token=token
        )

    provider = normalize_provider(provider) if provider else thread.llm_provider
    chat_service = ChatService(db, ai_manager, settings)
    thread = await chat_service.record_exchange(
        thread,
        message,
        provider,
        ai_response=ai_response,
        is_streamed=is_streamed == "true"
    )

    session = await session_service.extend_with_rate_limit(session)
    return await render_page(session, store, settings, current_thread=thread, token=token)
