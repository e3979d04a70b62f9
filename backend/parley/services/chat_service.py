"""
Recording a user/assistant exchange on a thread.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
import logging

from ..ai.manager import AIManager
from ..ai.model_mapping import get_model_version_from_provider
from ..ai.types import AIMessage
from ..config import Settings
from ..errors import ParleyError
from ..models.thread import Thread
from ..schemas.thread import StoredMessage
from .thread_store import ThreadStore


logger = logging.getLogger(__name__)


def to_ai_messages(messages: List[StoredMessage]) -> List[AIMessage]:
    """Stored log -> canonical history; anything not typed "user" came from a model."""
    return [
        AIMessage(
            role="user" if m.is_user else "assistant",
            content=m.content or "",
            timestamp=m.timestamp
        )
        for m in messages
    ]


class ChatService:
    """Appends one exchange, calling the provider unless the reply was already streamed."""

    def __init__(self, db: AsyncSession, ai_manager: AIManager, settings: Settings):
        self.store = ThreadStore(db, settings.THREAD_WRITE_RETRIES)
        self.ai_manager = ai_manager

    @staticmethod
    def model_type_for(thread: Thread, provider: str) -> str:
        if provider == thread.llm_provider and thread.llm_model_version:
            return thread.llm_model_version
        return get_model_version_from_provider(provider) or provider

    async def _generate_reply(self, thread: Thread, user_message: StoredMessage, provider: str) -> StoredMessage:
        history = self.store.load_messages(thread) + [user_message]
        try:
            response = await self.ai_manager.chat(to_ai_messages(history), provider)
        except ParleyError as e:
            logger.error("Provider %s failed for thread %s: %r", provider, thread.uuid, e)
            return StoredMessage(
                type=self.model_type_for(thread, provider),
                content=f"Sorry, I encountered an error with {provider}. {e.message or 'Please try again later.'}"
            )
        return StoredMessage(type=response.model, content=response.content)

    async def record_exchange(
        self,
        thread: Thread,
        message: str,
        provider: str,
        ai_response: Optional[str] = None,
        is_streamed: bool = False
    ) -> Thread:
        """Persist the user message and the assistant reply in one write."""
        user_message = StoredMessage(type="user", content=message.strip())

        if is_streamed and ai_response:
            reply = StoredMessage(type=self.model_type_for(thread, provider), content=ai_response)
        else:
            reply = await self._generate_reply(thread, user_message, provider)

        fields = {"llm_provider": provider}
        if provider != thread.llm_provider:
            fields["llm_model_version"] = get_model_version_from_provider(provider) or None

        return await self.store.append_messages(thread.uuid, [user_message, reply], **fields)
