"""
Thread summarization endpoint.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..ai.manager import AIManager
from ..config import Settings
from ..context import get_ai_manager, get_settings, require_session
from ..database import get_db
from ..schemas.chat import SummarizeResponse, ThreadUuidRequest
from ..schemas.thread import ThreadResponse
from ..schemas.user import ExtendedSession
from ..services.summarize_service import SummarizeService
from ..utils.http import model_response, read_body


router = APIRouter(prefix="/api/summarize", tags=["Summarize"])


@router.post("")
async def summarize_thread(
    request: Request,
    session: ExtendedSession = Depends(require_session),
    ai_manager: AIManager = Depends(get_ai_manager),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db)
):
    """Summarize a thread's long messages and store the result."""
    body = await read_body(request, ThreadUuidRequest, "Thread UUID is required")

    service = SummarizeService(db, ai_manager, settings)
    result = await service.summarize(body.thread_uuid, session)

    return model_response(SummarizeResponse(
        message=result.message,
        summaries_generated=result.summaries_generated,
        thread=ThreadResponse.from_thread(result.thread),
        usage=result.usage
    ))
