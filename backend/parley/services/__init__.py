"""
Services package.
"""

from .chat_service import ChatService
from .oauth_service import GoogleOAuthService
from .session_service import SessionService
from .stream_service import StreamService
from .summarize_service import SummarizeService
from .thread_store import ThreadStore
from .title_service import TitleService

__all__ = [
    "ChatService",
    "GoogleOAuthService",
    "SessionService",
    "StreamService",
    "SummarizeService",
    "ThreadStore",
    "TitleService"
]
