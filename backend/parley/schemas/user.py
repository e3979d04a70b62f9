"""
Session and page schemas.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional

from .thread import ThreadListItem, ThreadResponse


class SessionData(BaseModel):
    """What a session cookie resolves to."""
    user_id: int
    email: str
    name: str
    oauth_type: str = "google"  # "google", "guest"

    @property
    def is_guest(self) -> bool:
        return self.oauth_type == "guest"


class ExtendedSession(SessionData):
    """Session plus the derived guest allowance; never stored."""
    is_logged_in: bool = True
    message_count: Optional[int] = None
    message_limit: Optional[int] = None
    messages_remaining: Optional[int] = None
    is_rate_limited: bool = False


class PageUser(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    name: str
    email: str
    is_logged_in: bool = Field(..., serialization_alias="isLoggedIn")
    message_count: Optional[int] = Field(None, serialization_alias="messageCount")
    message_limit: Optional[int] = Field(None, serialization_alias="messageLimit")
    messages_remaining: Optional[int] = Field(None, serialization_alias="messagesRemaining")
    is_rate_limited: bool = Field(False, serialization_alias="isRateLimited")

    @classmethod
    def from_session(cls, session: ExtendedSession) -> "PageUser":
        return cls(
            id=session.user_id,
            name=session.name,
            email=session.email,
            is_logged_in=session.is_logged_in,
            message_count=session.message_count,
            message_limit=session.message_limit,
            messages_remaining=session.messages_remaining,
            is_rate_limited=session.is_rate_limited
        )


class PageData(BaseModel):
    """Everything the chat page needs to render."""
    model_config = ConfigDict(populate_by_name=True)

    user: Optional[PageUser] = None
    threads: List[ThreadListItem] = []
    current_thread: Optional[ThreadResponse] = Field(None, serialization_alias="currentThread")
    is_owner: bool = Field(False, serialization_alias="isOwner")
    error: Optional[str] = None
