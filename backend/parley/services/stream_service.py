"""
Server half of a streamed chat: provider events in, SSE frames out.
"""

from typing import AsyncIterator, List, Optional
import logging

from ..ai.manager import AIManager
from ..ai.types import AIMessage, ChatOptions
from ..errors import ParleyError
from ..schemas.chat import StreamEvent


logger = logging.getLogger(__name__)


SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no"
}


class StreamService:
    """Relays one upstream stream as `chunk` events followed by `complete` or `error`."""

    def __init__(self, ai_manager: AIManager):
        self.ai_manager = ai_manager

    async def stream_events(
        self,
        messages: List[AIMessage],
        provider: Optional[str] = None,
        options: Optional[ChatOptions] = None
    ) -> AsyncIterator[str]:
        served_by = provider or self.ai_manager.get_default_provider()
        chunks = 0
        logger.info("Stream requested from %s (%d messages)", served_by, len(messages))

        try:
            async for chunk in self.ai_manager.chat_stream(messages, provider, options):
                chunks += 1
                yield StreamEvent(type="chunk", data=chunk).encode()
        except ParleyError as e:
            logger.error("Stream from %s failed after %d chunks: %r", served_by, chunks, e)
            yield StreamEvent(type="error", error=e.message).encode()
            return
        except Exception as e:
            logger.exception("Stream from %s crashed after %d chunks", served_by, chunks)
            yield StreamEvent(type="error", error=str(e) or "An error occurred during streaming").encode()
            return

        logger.info("Stream from %s completed with %d chunks", served_by, chunks)
        yield StreamEvent(type="complete", provider=served_by).encode()
