"""
Authentication routes.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
import logging
import secrets

from ..config import Settings
from ..context import get_context, get_session_service, get_settings, AppContext
from ..errors import AuthError, ValidationError
from ..services.oauth_service import GoogleOAuthService
from ..services.session_service import SessionService
from ..utils.security import clear_session_cookie, set_session_cookie


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

STATE_COOKIE = "oauth_state"


def get_oauth_service(settings: Settings = Depends(get_settings)) -> GoogleOAuthService:
    return GoogleOAuthService(settings)


@router.get("/login")
async def login(
    settings: Settings = Depends(get_settings),
    oauth: GoogleOAuthService = Depends(get_oauth_service)
):
    """Redirect to Google's consent screen."""
    state = secrets.token_urlsafe(16)
    response = RedirectResponse(oauth.authorization_url(state), status_code=302)
    response.set_cookie(
        STATE_COOKIE, state, max_age=600, path="/auth", httponly=True,
        secure=settings.SESSION_COOKIE_SECURE, samesite="lax"
    )
    return response


@router.get("/callback")
async def callback(
    request: Request,
    code: str = "",
    state: str = "",
    settings: Settings = Depends(get_settings),
    oauth: GoogleOAuthService = Depends(get_oauth_service),
    session_service: SessionService = Depends(get_session_service)
):
    """Finish Google sign-in and start a session."""
    if not code:
        raise ValidationError("Missing authorization code")

    expected_state = request.cookies.get(STATE_COOKIE)
    if not expected_state or not secrets.compare_digest(expected_state, state):
        raise AuthError("Invalid sign-in state", status_code=400)

    identity = await oauth.exchange_code(code)
    user = await session_service.get_or_create_google_user(
        identity.google_id, identity.email, identity.name, identity.picture
    )
    _, token = session_service.create_session(user)
    logger.info("User %s signed in with Google", user.id)

    response = RedirectResponse("/", status_code=302)
    set_session_cookie(response, token, settings)
    response.delete_cookie(STATE_COOKIE, path="/auth")
    return response


@router.get("/logout")
async def logout(request: Request, context: AppContext = Depends(get_context)):
    """Drop the session and clear the cookie."""
    token = request.cookies.get(context.settings.SESSION_COOKIE_NAME)
    if token:
        context.sessions.delete(token)

    response = RedirectResponse("/", status_code=302)
    clear_session_cookie(response, context.settings)
    return response
