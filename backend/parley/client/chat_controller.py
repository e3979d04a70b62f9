"""
Client half of a streamed chat.

`ChatStreamController` drives one thread page against a running server: it
shows the user's message optimistically, relays `POST /api/chat?stream=true`
into a growing `streaming_message`, persists the finished exchange once with
`POST /chat/{uuid}` and then swaps its optimistic state for the thread the
server confirmed.
"""

from enum import Enum
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit
import aiohttp
import asyncio
import codecs
import json
import logging

from ..utils.time import iso_now


logger = logging.getLogger(__name__)


class ControllerState(str, Enum):
    COMPOSING = "composing"
    SUBMITTING = "submitting"
    STREAMING = "streaming"
    RECONCILED = "reconciled"
    ROLLED_BACK = "rolled_back"


class StreamOpenError(Exception):
    """The stream request failed before any event could be read."""


class SSELineBuffer:
    """Re-assembles `data:` payloads from arbitrarily split network reads."""

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    def feed(self, data: bytes) -> List[str]:
        self._pending += self._decoder.decode(data)
        *lines, self._pending = self._pending.split("\n")
        payloads = []
        for line in lines:
            line = line.rstrip("\r")
            if line.startswith("data:"):
                payloads.append(line[5:].lstrip())
        return payloads


class ChatStreamController:
    """
    State machine for sending one message at a time on a thread.

    Args:
        base_url: Server root, e.g. ``http://localhost:8000``.
        thread: The thread as served in page data (`currentThread`).
        session: An aiohttp session carrying the session cookie. One is
            created on first use when omitted and closed by `close()`.
        timeout: Total seconds allowed for one request on the session
            created here; matches the server's provider timeout.
    """

    def __init__(
        self,
        base_url: str,
        thread: Dict[str, Any],
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 600
    ):
        self.base_url = base_url.rstrip("/")
        self.thread = thread
        self._session = session
        self._owns_session = session is None
        self._timeout = timeout

        self.state = ControllerState.COMPOSING
        self.optimistic_messages: List[Dict[str, Any]] = []
        self.streaming_message = ""
        self.input_text = ""
        self.title: str = thread.get("title", "")
        self.current_url: Optional[str] = None
        self.last_error: Optional[str] = None
        self._auto_submitted = False

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self._timeout))
        return self._session

    @property
    def stored_messages(self) -> List[Dict[str, Any]]:
        return self.thread.get("messages") or []

    @property
    def all_messages(self) -> List[Dict[str, Any]]:
        """What the page shows: confirmed messages followed by optimistic ones."""
        return self.stored_messages + self.optimistic_messages

    @property
    def is_busy(self) -> bool:
        return self.state in (ControllerState.SUBMITTING, ControllerState.STREAMING)

    @property
    def show_placeholder(self) -> bool:
        return self.is_busy and not self.streaming_message

    def _history(self) -> List[Dict[str, str]]:
        return [
            {
                "role": "user" if m.get("type") == "user" else "assistant",
                "content": m.get("content") or ""
            }
            for m in self.all_messages
        ]

    async def submit(self, text: Optional[str] = None) -> ControllerState:
        """Send `text` (or the current input) and stream the reply."""
        text = (text if text is not None else self.input_text).strip()
        if not text or self.is_busy:
            return self.state

        self.state = ControllerState.SUBMITTING
        self.last_error = None
        self.streaming_message = ""
        user_message = {"type": "user", "content": text, "timestamp": iso_now()}
        self.optimistic_messages.append(user_message)
        self.input_text = ""

        title_task = None
        if not self.stored_messages:
            title_task = asyncio.ensure_future(self._update_title(text))

        try:
            try:
                completed = await self._stream(self._history())
            except StreamOpenError as e:
                logger.error("Could not open stream for thread %s: %s", self.thread.get("uuid"), e)
                self.optimistic_messages.remove(user_message)
                self.last_error = str(e)
                self.state = ControllerState.ROLLED_BACK
                return self.state

            if completed:
                await self._persist_and_reconcile(text, self.streaming_message)
            else:
                self.state = ControllerState.COMPOSING
        finally:
            # Never leave the controller busy, whatever escaped above.
            if self.is_busy:
                self.state = ControllerState.COMPOSING
            await self._finish_title(title_task)

        return self.state

    async def _stream(self, history: List[Dict[str, str]]) -> bool:
        """Relay the stream into `streaming_message`; True once `complete` arrives."""
        payload = {"messages": history, "provider": self.thread.get("llm_provider")}
        buffer = SSELineBuffer()
        completed = False

        try:
            async with self.session.post(
                f"{self.base_url}/api/chat",
                params={"stream": "true"},
                json=payload
            ) as response:
                if response.status >= 400:
                    raise StreamOpenError(f"HTTP {response.status}")
                if response.content is None:
                    raise StreamOpenError("Response has no body")

                self.state = ControllerState.STREAMING
                async for data in response.content.iter_any():
                    for line in buffer.feed(data):
                        completed = self._handle_event(line) or completed
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            reason = str(e) or "Request timed out"
            if self.state == ControllerState.SUBMITTING:
                raise StreamOpenError(reason) from e
            logger.error("Stream for thread %s broke off: %s", self.thread.get("uuid"), reason)
            self.last_error = reason
            return False

        if not completed and self.last_error is None:
            logger.warning("Stream for thread %s ended without completing", self.thread.get("uuid"))
            self.last_error = "Stream ended unexpectedly"
        return completed

    def _handle_event(self, line: str) -> bool:
        if not line or line == "[DONE]":
            return False
        try:
            event = json.loads(line)
        except json.JSONDecodeError:
            logger.warning("Skipping malformed stream line: %.80s", line)
            return False
        if not isinstance(event, dict):
            return False

        kind = event.get("type")
        if kind == "chunk":
            delta = (event.get("data") or {}).get("delta") or {}
            content = delta.get("content")
            if content:
                self.streaming_message += content
        elif kind == "complete":
            return True
        elif kind == "error":
            logger.error("Stream error for thread %s: %s", self.thread.get("uuid"), event.get("error"))
            self.last_error = event.get("error") or "Streaming error"
        return False

    async def _persist_and_reconcile(self, message: str, reply: str):
        form = {
            "message": message,
            "ai_response": reply,
            "is_streamed": "true",
            "provider": self.thread.get("llm_provider") or ""
        }
        url = f"{self.base_url}/chat/{self.thread['uuid']}"

        try:
            async with self.session.post(url, data=form) as response:
                status = response.status
                page = await response.json(content_type=None) if status < 400 else None
            if status >= 400:
                self._keep_unsaved(reply, f"HTTP {status}")
                return

            confirmed = (page or {}).get("currentThread")
            if confirmed is None:
                async with self.session.get(url) as response:
                    page = await response.json(content_type=None)
                confirmed = (page or {}).get("currentThread")
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            self._keep_unsaved(reply, str(e))
            return

        if confirmed:
            self.thread = confirmed
            self.title = confirmed.get("title", self.title)
        self.optimistic_messages = []
        self.streaming_message = ""
        self.state = ControllerState.RECONCILED

    def _keep_unsaved(self, reply: str, reason: str):
        """The reply stays on screen as an optimistic message when saving fails."""
        logger.error("Failed to save exchange on thread %s: %s", self.thread.get("uuid"), reason)
        self.optimistic_messages.append({
            "type": self.thread.get("llm_model_version") or "assistant",
            "content": reply,
            "timestamp": iso_now()
        })
        self.streaming_message = ""
        self.last_error = "Failed to save message"
        self.state = ControllerState.COMPOSING

    async def _update_title(self, message: str) -> Optional[str]:
        try:
            async with self.session.post(
                f"{self.base_url}/api/chat",
                params={"updateTitle": "true"},
                json={"threadId": self.thread.get("uuid"), "message": message}
            ) as response:
                if response.status >= 400:
                    logger.warning("Title update for thread %s failed with HTTP %s",
                                   self.thread.get("uuid"), response.status)
                    return None
                data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.warning("Title update for thread %s failed: %s", self.thread.get("uuid"), e)
            return None
        return (data or {}).get("title")

    async def _finish_title(self, task: Optional["asyncio.Future"]):
        if task is None:
            return
        title = await task
        if title:
            self.title = title
            self.thread["title"] = title

    async def auto_submit_from_url(self, url: str) -> bool:
        """
        Submit the `message` carried by a freshly created thread's URL.

        Only fires once, only on an empty thread, and only when idle. The
        URL without the parameter is kept in `current_url`.
        """
        parts = urlsplit(url)
        query = parse_qsl(parts.query, keep_blank_values=True)
        message = next((v for k, v in query if k == "message"), None)

        if self._auto_submitted or message is None or self.stored_messages or self.is_busy:
            return False

        remaining = [(k, v) for k, v in query if k != "message"]
        self.current_url = urlunsplit(parts._replace(query=urlencode(remaining)))
        self._auto_submitted = True
        await self.submit(message)
        return True

    async def close(self):
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
