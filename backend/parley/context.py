"""
Process-scoped application state and the dependencies that hand it to routes.

Everything that must live for the whole process (settings, database engine,
session map, AI manager) is built once in the lifespan hook and stored on
`app.state.context`; nothing is kept in module globals.
"""

from dataclasses import dataclass, field
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from typing import Optional
import logging

from .ai.manager import AIManager
from .config import Settings
from .database import create_engine, create_session_factory, init_db, close_db, get_db
from .errors import AuthError
from .schemas.user import ExtendedSession
from .services.session_service import SessionService
from .utils.security import SessionStore


logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker
    ai_manager: AIManager
    sessions: SessionStore = field(default_factory=SessionStore)

    @classmethod
    async def start(cls, settings: Settings, ai_manager: Optional[AIManager] = None) -> "AppContext":
        engine = create_engine(settings.database_url)
        await init_db(engine)
        context = cls(
            settings=settings,
            engine=engine,
            session_factory=create_session_factory(engine),
            ai_manager=ai_manager or AIManager.from_settings(settings)
        )
        logger.info("%s %s started", settings.APP_NAME, settings.APP_VERSION)
        return context

    async def stop(self):
        self.sessions.clear()
        await self.ai_manager.close()
        await close_db(self.engine)


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_settings(context: AppContext = Depends(get_context)) -> Settings:
    return context.settings


def get_ai_manager(context: AppContext = Depends(get_context)) -> AIManager:
    return context.ai_manager


def get_session_service(
    context: AppContext = Depends(get_context),
    db: AsyncSession = Depends(get_db)
) -> SessionService:
    return SessionService(db, context.sessions, context.settings)


async def get_current_session(
    request: Request,
    session_service: SessionService = Depends(get_session_service)
) -> Optional[ExtendedSession]:
    """The caller's session with its guest allowance, if any."""
    return await session_service.get_extended_session(request)


async def require_session(
    session: Optional[ExtendedSession] = Depends(get_current_session)
) -> ExtendedSession:
    if session is None:
        raise AuthError("Unauthorized")
    return session
