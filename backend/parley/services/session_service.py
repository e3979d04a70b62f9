"""
Identity resolution, guest users and the guest message allowance.
"""

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select
from typing import Optional, Tuple
import logging

from ..config import Settings
from ..models.user import User
from ..schemas.user import SessionData, ExtendedSession
from ..utils.security import SessionStore, client_ip, guest_fingerprint
from .thread_store import ThreadStore


logger = logging.getLogger(__name__)


class SessionService:
    """Maps requests to users, creating guest users on first sight."""

    def __init__(self, db: AsyncSession, sessions: SessionStore, settings: Settings):
        self.db = db
        self.sessions = sessions
        self.settings = settings

    def resolve_identity(self, request: Request) -> Optional[SessionData]:
        """Session behind the request's cookie, or None."""
        token = request.cookies.get(self.settings.SESSION_COOKIE_NAME)
        if not token:
            return None
        return self.sessions.get(token)

    async def get_user_by_oauth_id(self, oauth_id: str, oauth_type: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).filter(User.oauth_id == oauth_id, User.oauth_type == oauth_type)
        )
        return result.scalar_one_or_none()

    async def _get_or_create_user(self, oauth_id: str, oauth_type: str, **fields) -> User:
        user = await self.get_user_by_oauth_id(oauth_id, oauth_type)
        if user:
            return user

        user = User(oauth_id=oauth_id, oauth_type=oauth_type, **fields)
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            # Another request created the same identity first
            await self.db.rollback()
            user = await self.get_user_by_oauth_id(oauth_id, oauth_type)
            if user is None:
                raise
            return user

        await self.db.refresh(user)
        logger.info("Created %s user %s", oauth_type, user.id)
        return user

    async def get_or_create_guest_user(self, request: Request) -> User:
        """Same IP and user agent always map to the same guest record."""
        fingerprint = guest_fingerprint(
            self.settings.SECRET_KEY,
            client_ip(request, self.settings.TRUST_FORWARDED_FOR),
            request.headers.get("user-agent", "")
        )
        return await self._get_or_create_user(
            fingerprint,
            "guest",
            email=f"guest-{fingerprint}@guest.local",
            name=f"Guest {fingerprint[:6]}"
        )

    async def get_or_create_google_user(
        self,
        google_id: str,
        email: str,
        name: str,
        avatar_url: Optional[str] = None
    ) -> User:
        return await self._get_or_create_user(
            google_id,
            "google",
            email=email,
            name=name,
            avatar_url=avatar_url
        )

    def create_session(self, user: User) -> Tuple[SessionData, str]:
        data = SessionData(
            user_id=user.id,
            email=user.email,
            name=user.name,
            oauth_type=user.oauth_type
        )
        return data, self.sessions.create(data)

    async def create_guest_identity(self, request: Request) -> Tuple[User, SessionData, str]:
        user = await self.get_or_create_guest_user(request)
        data, token = self.create_session(user)
        return user, data, token

    async def extend_with_rate_limit(self, session: SessionData) -> ExtendedSession:
        """Attach the guest allowance; authenticated users have no limit."""
        base = session.model_dump(include=set(SessionData.model_fields))
        if not session.is_guest:
            return ExtendedSession(**base, is_logged_in=True)

        store = ThreadStore(self.db)
        count = await store.count_user_messages(session.user_id)
        limit = self.settings.GUEST_MESSAGE_LIMIT
        return ExtendedSession(
            **base,
            is_logged_in=False,
            message_count=count,
            message_limit=limit,
            messages_remaining=max(0, limit - count),
            is_rate_limited=count >= limit
        )

    async def get_extended_session(self, request: Request) -> Optional[ExtendedSession]:
        session = self.resolve_identity(request)
        if session is None:
            return None
        return await self.extend_with_rate_limit(session)

    async def get_or_create_session(self, request: Request) -> Tuple[ExtendedSession, Optional[str]]:
        """
        Resolve the request's session, falling back to a guest identity.

        The second item is a new session token the caller must set as a
        cookie, or None when the request already had a session.
        """
        extended = await self.get_extended_session(request)
        if extended is not None:
            return extended, None

        _, data, token = await self.create_guest_identity(request)
        return await self.extend_with_rate_limit(data), token

    async def can_guest_send_message(self, user_id: int) -> bool:
        store = ThreadStore(self.db)
        return await store.count_user_messages(user_id) < self.settings.GUEST_MESSAGE_LIMIT
