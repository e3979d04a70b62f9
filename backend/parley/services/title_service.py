"""
Thread title generation.
"""

import logging

from ..ai.manager import AIManager
from ..ai.types import AIMessage, ChatOptions
from ..errors import ParleyError


logger = logging.getLogger(__name__)


TITLE_PROMPT = (
    "Generate a very short title (max 6 words) for a conversation that starts "
    "with the following message. Only respond with the title, nothing else."
)


def fallback_title(first_message: str) -> str:
    """First five words, or the first 50 characters of a short message."""
    words = first_message.split()[:5]
    if len(words) >= 5:
        return " ".join(words) + "..."
    if len(first_message) > 50:
        return first_message[:50] + "..."
    return first_message.strip() or "New Conversation"


class TitleService:
    """Asks the default provider for a title, falling back to the message itself."""

    def __init__(self, ai_manager: AIManager):
        self.ai_manager = ai_manager

    async def generate_title(self, first_message: str) -> str:
        if not self.ai_manager.is_provider_available(self.ai_manager.get_default_provider()):
            return fallback_title(first_message)

        try:
            response = await self.ai_manager.chat(
                [
                    AIMessage(role="system", content=TITLE_PROMPT),
                    AIMessage(role="user", content=first_message[:500])
                ],
                options=ChatOptions(temperature=0.3, max_tokens=50)
            )
        except ParleyError as e:
            logger.warning("Title generation failed, using fallback: %r", e)
            return fallback_title(first_message)

        title = response.content.strip().strip('"\'').strip()
        return title[:100] or fallback_title(first_message)
