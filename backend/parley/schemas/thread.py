"""
Thread and stored-message schemas.
"""

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from typing import List, Optional
from datetime import datetime
import json
import uuid

from ..utils.time import iso_now


class StoredMessage(BaseModel):
    """One element of a thread's message log."""
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = Field(default_factory=lambda: str(uuid.uuid4()))
    type: str  # "user" or the model version that produced it
    content: Optional[str] = None
    summary: Optional[str] = None
    timestamp: str = Field(default_factory=iso_now)

    @property
    def is_user(self) -> bool:
        return self.type == "user"


MessageLog = TypeAdapter(List[StoredMessage])


def parse_messages(raw: Optional[str]) -> List[StoredMessage]:
    """Decode a persisted log; raises ValueError for anything but an array of messages."""
    return MessageLog.validate_json(raw or "[]")


def dump_messages(messages: List[StoredMessage]) -> str:
    return json.dumps([m.model_dump() for m in messages], ensure_ascii=False)


class ThreadResponse(BaseModel):
    """Thread as returned to clients, with the log decoded."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    uuid: str
    user_id: int
    title: str
    messages: List[StoredMessage] = []
    llm_provider: str
    llm_model_version: Optional[str] = None
    public: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_thread(cls, thread) -> "ThreadResponse":
        return cls(
            id=thread.id,
            uuid=thread.uuid,
            user_id=thread.user_id,
            title=thread.title,
            messages=parse_messages(thread.messages),
            llm_provider=thread.llm_provider,
            llm_model_version=thread.llm_model_version,
            public=bool(thread.public),
            created_at=thread.created_at,
            updated_at=thread.updated_at
        )


class ThreadListItem(BaseModel):
    """Sidebar entry."""
    model_config = ConfigDict(from_attributes=True)

    uuid: str
    title: str
    llm_provider: str
    llm_model_version: Optional[str] = None
    public: bool = False
    updated_at: Optional[datetime] = None
