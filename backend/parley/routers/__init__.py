"""
API Routers package.
"""

from .api_chat import router as api_chat_router
from .api_share import router as api_share_router
from .api_summarize import router as api_summarize_router
from .auth import router as auth_router
from .chat_pages import router as chat_pages_router

__all__ = [
    "api_chat_router",
    "api_share_router",
    "api_summarize_router",
    "auth_router",
    "chat_pages_router"
]
