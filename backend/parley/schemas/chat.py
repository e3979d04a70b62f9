"""
Chat API request/response schemas.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional

from ..ai.types import AIMessage, AIStreamResponse, Usage
from .thread import ThreadResponse


class ChatRequest(BaseModel):
    """Body of POST /api/chat."""
    model_config = ConfigDict(populate_by_name=True)

    messages: List[AIMessage] = Field(..., min_length=1)
    provider: Optional[str] = None
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = Field(None, alias="maxTokens")


class ChatResponse(BaseModel):
    """Non-streaming chat response."""
    success: bool = True
    response: str
    model: str
    provider: str
    usage: Optional[Usage] = None


class TitleRequest(BaseModel):
    """Body of POST /api/chat?updateTitle=true."""
    model_config = ConfigDict(populate_by_name=True)

    thread_id: str = Field(..., alias="threadId", min_length=1)
    message: str = Field(..., min_length=1)


class TitleResponse(BaseModel):
    success: bool = True
    title: str


class ThreadUuidRequest(BaseModel):
    """Body of POST /api/summarize and POST /api/share."""
    model_config = ConfigDict(populate_by_name=True)

    thread_uuid: str = Field(..., alias="threadUuid", min_length=1)


class SummarizeResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    summaries_generated: int = Field(0, serialization_alias="summariesGenerated")
    thread: ThreadResponse
    usage: Optional[Usage] = None


class ShareResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    share_url: str = Field(..., serialization_alias="shareUrl")


class ProviderInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    models: List[str]
    is_configured: bool = Field(..., serialization_alias="isConfigured")


class ProvidersResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    providers: List[ProviderInfo]
    default_provider: str = Field(..., serialization_alias="defaultProvider")


class StreamEvent(BaseModel):
    """One SSE `data:` payload: a chunk, the completion marker or an error."""
    type: str  # "chunk", "complete", "error"
    data: Optional[AIStreamResponse] = None
    provider: Optional[str] = None
    error: Optional[str] = None

    def encode(self) -> str:
        return f"data: {self.model_dump_json(exclude_none=True)}\n\n"
