"""
Provider-agnostic message, option and response types.
"""

from abc import ABC, abstractmethod
from pydantic import BaseModel
from typing import AsyncIterator, List, Literal, Optional


class AIMessage(BaseModel):
    """Canonical chat message sent to any provider."""
    role: Literal["user", "assistant", "system"]
    content: str
    timestamp: Optional[str] = None


class ChatOptions(BaseModel):
    """Per-request overrides; unset fields fall back to the client's defaults."""
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


class Usage(BaseModel):
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None


class AIResponse(BaseModel):
    content: str
    model: str
    usage: Optional[Usage] = None


class StreamDelta(BaseModel):
    content: Optional[str] = None
    role: Optional[str] = None


class AIStreamResponse(BaseModel):
    """One incremental unit of model output."""
    id: str
    model: str
    delta: StreamDelta = StreamDelta()
    finish_reason: Optional[str] = None
    usage: Optional[Usage] = None


class AIClient(ABC):
    """A single provider's translation between canonical types and its wire format."""

    provider: str
    default_model: str

    @abstractmethod
    def is_configured(self) -> bool:
        """True when the credential the provider needs is present."""

    @abstractmethod
    async def chat(self, messages: List[AIMessage], options: Optional[ChatOptions] = None) -> AIResponse:
        """Single-shot completion."""

    @abstractmethod
    def chat_stream(
        self,
        messages: List[AIMessage],
        options: Optional[ChatOptions] = None
    ) -> AsyncIterator[AIStreamResponse]:
        """Incremental completion, yielded in the order the provider produces it."""

    async def close(self):
        """Release network resources held by the client."""
