"""
Google sign-in: authorization URL and code exchange.
"""

import aiohttp
import asyncio
import logging
from jose import JWTError, jwt
from pydantic import BaseModel
from typing import Callable, Optional
from urllib.parse import urlencode

from ..config import Settings
from ..errors import AuthError


logger = logging.getLogger(__name__)


GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"


class GoogleIdentity(BaseModel):
    google_id: str
    email: str
    name: str
    picture: Optional[str] = None


class GoogleOAuthService:
    """Authorization-code flow against Google's OpenID Connect endpoints."""

    def __init__(self, settings: Settings, session_factory: Optional[Callable[..., aiohttp.ClientSession]] = None):
        self.settings = settings
        self._session_factory = session_factory or aiohttp.ClientSession

    @property
    def redirect_uri(self) -> str:
        return f"{self.settings.HOST_URL.rstrip('/')}/auth/callback"

    def authorization_url(self, state: str) -> str:
        if not self.settings.GOOGLE_CLIENT_ID:
            raise AuthError("Google sign-in is not configured", status_code=503)
        params = {
            "client_id": self.settings.GOOGLE_CLIENT_ID,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": "openid email profile",
            "state": state,
            "prompt": "select_account"
        }
        return f"{GOOGLE_AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> GoogleIdentity:
        """Trade the authorization code for tokens and read the identity from the id_token."""
        try:
            async with self._session_factory() as session:
                async with session.post(
                    GOOGLE_TOKEN_URL,
                    data={
                        "client_id": self.settings.GOOGLE_CLIENT_ID or "",
                        "client_secret": self.settings.GOOGLE_CLIENT_SECRET or "",
                        "code": code,
                        "grant_type": "authorization_code",
                        "redirect_uri": self.redirect_uri
                    },
                    timeout=aiohttp.ClientTimeout(total=30)
                ) as response:
                    if response.status >= 400:
                        logger.error("Google token exchange failed with HTTP %s", response.status)
                        raise AuthError("Authentication failed")
                    token_data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("Google token exchange failed: %s", e)
            raise AuthError("Authentication failed") from e

        id_token = token_data.get("id_token") if isinstance(token_data, dict) else None
        if not id_token:
            raise AuthError("Authentication failed")

        # Received directly from Google's token endpoint over TLS, so the
        # claims are read without re-verifying the signature.
        try:
            claims = jwt.get_unverified_claims(id_token)
        except JWTError as e:
            raise AuthError("Authentication failed") from e

        if not claims.get("sub") or not claims.get("email"):
            raise AuthError("Authentication failed")

        return GoogleIdentity(
            google_id=str(claims["sub"]),
            email=claims["email"],
            name=claims.get("name") or claims["email"],
            picture=claims.get("picture")
        )
