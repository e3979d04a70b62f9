"""
Thread sharing endpoint.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from ..config import Settings
from ..context import get_settings, require_session
from ..database import get_db
from ..errors import AuthError, NotFoundError
from ..schemas.chat import ShareResponse, ThreadUuidRequest
from ..schemas.user import ExtendedSession
from ..services.thread_store import ThreadStore
from ..utils.http import model_response, read_body


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/share", tags=["Share"])


@router.post("")
async def share_thread(
    request: Request,
    session: ExtendedSession = Depends(require_session),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db)
):
    """Make a thread public and return its link."""
    body = await read_body(request, ThreadUuidRequest, "Thread UUID is required")

    store = ThreadStore(db)
    thread = await store.get_by_uuid(body.thread_uuid)
    if thread is None:
        raise NotFoundError("Thread not found")
    if thread.user_id != session.user_id:
        raise AuthError("Access denied", status_code=403)

    await store.set_public(thread.uuid)
    logger.info("Thread %s shared by user %s", thread.uuid, session.user_id)

    origin = settings.PUBLIC_URL or str(request.base_url)
    return model_response(ShareResponse(share_url=f"{origin.rstrip('/')}/chat/{thread.uuid}"))
