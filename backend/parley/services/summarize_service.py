"""
Thread summarization.

Long messages without a summary are sent to the summary provider in one
batch; the model answers with a JSON array that is merged back onto the
thread's log. Nothing is written unless that answer parses.
"""

from pydantic import BaseModel, ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, List, Optional, Tuple
import json
import logging
import re

from ..ai.manager import AIManager
from ..ai.types import AIMessage, ChatOptions, Usage
from ..config import Settings
from ..errors import (
    AuthError,
    NotFoundError,
    ProviderUnavailableError,
    SummaryParseError,
    ThreadConflictError,
    ValidationError,
)
from ..models.thread import Thread
from ..schemas.thread import StoredMessage
from ..schemas.user import SessionData
from .thread_store import ThreadStore


logger = logging.getLogger(__name__)


SUMMARY_PROMPT = """You write short, faithful summaries of chat messages.

You are given a JSON array of messages, each shaped like:
{{"id": "MESSAGE-ID", "type": "user_OR_MODEL", "content": "MESSAGE_BODY", "timestamp": "ISO-8601"}}

Return ONLY a JSON array with one element per input message, shaped like:
{{"id": "SAME-ID", "type": "SAME-TYPE", "timestamp": "SAME-TIMESTAMP", "summary": "SUMMARY"}}

Rules:
- Copy "id", "type" and "timestamp" unchanged from the input element.
- Write "summary" in the language of "content", keeping its key facts.
- Each summary must be more than 80 and at most 200 characters.
- Output must be valid JSON and nothing else.

Messages:
```json
{messages}
```"""


class SummaryItem(BaseModel):
    summary: str
    type: Optional[str] = None
    timestamp: Optional[str] = None
    id: Optional[str] = None


class SummaryResult(BaseModel):
    thread: Any
    summaries_generated: int = 0
    usage: Optional[Usage] = None
    message: str = "Messages summarized successfully"


def build_prompt(messages: List[StoredMessage]) -> str:
    payload = [
        {"id": m.id, "type": m.type, "content": m.content, "timestamp": m.timestamp}
        for m in messages
    ]
    return SUMMARY_PROMPT.format(messages=json.dumps(payload, ensure_ascii=False))


def parse_summaries(content: Optional[str]) -> List[SummaryItem]:
    """Pull the first bracketed array out of the reply, tolerating fences and prose."""
    if not content or not content.strip():
        raise SummaryParseError("No response from AI model")

    match = re.search(r"\[.*\]", content, re.DOTALL)
    candidate = match.group(0) if match else content

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError:
        raise SummaryParseError("Failed to parse AI response", content)

    if not isinstance(data, list):
        raise SummaryParseError("AI response is not an array", content)

    items = []
    for raw in data:
        try:
            item = SummaryItem.model_validate(raw)
        except PydanticValidationError:
            continue
        if item.summary and (item.id or (item.type and item.timestamp)):
            items.append(item)
    return items


def merge_summaries(messages: List[StoredMessage], summaries: List[SummaryItem]) -> List[StoredMessage]:
    """
    Attach summaries by message id, falling back to (type, timestamp).

    Every message comes out with a summary: its generated one, the one it
    already had, or its own content.
    """
    by_id: Dict[str, str] = {}
    by_key: Dict[Tuple[str, str], str] = {}
    for item in summaries:
        if item.id:
            by_id[item.id] = item.summary
        if item.type and item.timestamp:
            by_key[(item.type, item.timestamp)] = item.summary

    merged = []
    for message in messages:
        summary = by_id.get(message.id) if message.id else None
        if summary is None:
            summary = by_key.get((message.type, message.timestamp))
        if summary is None:
            summary = message.summary if message.summary else message.content
        merged.append(message.model_copy(update={"summary": summary}))
    return merged


class SummarizeService:
    """Generates and stores summaries for a thread's long messages."""

    def __init__(self, db: AsyncSession, ai_manager: AIManager, settings: Settings):
        self.store = ThreadStore(db, settings.THREAD_WRITE_RETRIES)
        self.ai_manager = ai_manager
        self.settings = settings

    async def _load(self, thread_uuid: str, requester: SessionData) -> Tuple[Thread, List[StoredMessage]]:
        thread = await self.store.get_by_uuid(thread_uuid)
        if thread is None:
            raise NotFoundError("Thread not found")

        if thread.user_id != requester.user_id and not thread.public:
            raise AuthError("Access denied", status_code=403)

        try:
            messages = self.store.load_messages(thread)
        except ValueError:
            raise ValidationError("Invalid thread messages format")
        return thread, messages

    async def _request_summaries(self, pending: List[StoredMessage]) -> Tuple[List[SummaryItem], Optional[Usage]]:
        provider = self.settings.SUMMARY_PROVIDER
        if not self.ai_manager.is_provider_available(provider):
            raise ProviderUnavailableError(
                provider,
                self.ai_manager.get_available_providers(),
                message="Summary provider is not available or not configured",
                status_code=503
            )

        response = await self.ai_manager.chat(
            [AIMessage(role="user", content=build_prompt(pending))],
            provider,
            ChatOptions(model=self.settings.SUMMARY_MODEL)
        )
        return parse_summaries(response.content), response.usage

    async def summarize(self, thread_uuid: str, requester: SessionData) -> SummaryResult:
        thread, messages = await self._load(thread_uuid, requester)

        if not messages:
            return SummaryResult(thread=thread, message="No messages to summarize")

        pending = [
            m for m in messages
            if m.content and len(m.content) > self.settings.SUMMARY_MIN_LENGTH and not m.summary
        ]

        summaries: List[SummaryItem] = []
        usage = None
        if pending:
            summaries, usage = await self._request_summaries(pending)

        # Merge onto the latest log so exchanges appended meanwhile are kept.
        for _ in range(self.store.write_retries):
            thread, messages = await self._load(thread_uuid, requester)
            try:
                thread = await self.store.update_by_uuid(
                    thread_uuid,
                    expected_version=thread.version,
                    messages=merge_summaries(messages, summaries)
                )
                break
            except ThreadConflictError:
                logger.warning("Summary merge for thread %s raced a write, retrying", thread_uuid)
        else:
            raise ThreadConflictError(f"Thread {thread_uuid} is being modified concurrently, try again")

        logger.info(
            "Summarized thread %s: %d of %d messages sent to the model",
            thread_uuid, len(pending), len(messages)
        )
        return SummaryResult(thread=thread, summaries_generated=len(summaries), usage=usage)
