"""
Session tokens, cookies and guest fingerprints.
"""

from fastapi import Request, Response
from typing import Dict, Optional
import hashlib
import secrets

from ..config import Settings
from ..schemas.user import SessionData


class SessionStore:
    """In-memory token -> session map; sessions end with the process."""

    def __init__(self):
        self._sessions: Dict[str, SessionData] = {}

    def create(self, data: SessionData) -> str:
        token = secrets.token_urlsafe(32)
        self._sessions[token] = data
        return token

    def get(self, token: str) -> Optional[SessionData]:
        return self._sessions.get(token)

    def delete(self, token: str):
        self._sessions.pop(token, None)

    def clear(self):
        self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)


def client_ip(request: Request, trust_forwarded: bool = False) -> str:
    """Peer address, or the first X-Forwarded-For hop when running behind a trusted proxy."""
    if trust_forwarded:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"



def guest_fingerprint(secret: str, ip: str, user_agent: str) -> str:
    """Salted hash of IP + user agent. Not a strong identity."""
    return hashlib.sha256(f"{secret}:{ip}:{user_agent}".encode("utf-8")).hexdigest()


def set_session_cookie(response: Response, token: str, settings: Settings):
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.session_max_age,
        path="/",
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax"
    )


def clear_session_cookie(response: Response, settings: Settings):
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value="",
        max_age=0,
        path="/",
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax"
    )
