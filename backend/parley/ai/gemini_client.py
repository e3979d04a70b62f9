"""
Google Gemini generateContent client.
"""

import aiohttp
import asyncio
import logging
import uuid
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from .errors import AIProviderError
from .json_stream import IncrementalJSONParser
from .types import AIClient, AIMessage, AIResponse, AIStreamResponse, ChatOptions, StreamDelta, Usage


logger = logging.getLogger(__name__)


class GeminiClient(AIClient):
    """Gemini has no system role and streams a JSON array split across reads."""

    provider = "google"
    default_model = "gemini-2.5-flash"

    def __init__(
        self,
        api_key: Optional[str],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 100000,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 600,
        session_factory: Optional[Callable[..., aiohttp.ClientSession]] = None
    ):
        self.api_key = api_key
        self.model = model or self.default_model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session_factory = session_factory or aiohttp.ClientSession

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _resolve(self, options: Optional[ChatOptions]):
        options = options or ChatOptions()
        model = options.model or self.model
        temperature = options.temperature if options.temperature is not None else self.temperature
        max_tokens = options.max_tokens if options.max_tokens is not None else self.max_tokens
        return model, temperature, max_tokens

    @staticmethod
    def convert_messages(messages: List[AIMessage]) -> List[Dict[str, Any]]:
        """Map canonical messages onto Gemini `contents`."""
        contents = []
        for message in messages:
            if message.role == "system":
                # No system role, so system text rides along as a marked user turn
                contents.append({
                    "role": "user",
                    "parts": [{"text": f"System: {message.content}"}]
                })
            else:
                contents.append({
                    "role": "model" if message.role == "assistant" else "user",
                    "parts": [{"text": message.content}]
                })
        return contents

    def _payload(self, messages: List[AIMessage], temperature: float, max_tokens: int) -> Dict[str, Any]:
        return {
            "contents": self.convert_messages(messages),
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_tokens
            }
        }

    @staticmethod
    def _usage(data: Dict[str, Any]) -> Optional[Usage]:
        metadata = data.get("usageMetadata")
        if not metadata:
            return None
        return Usage(
            prompt_tokens=metadata.get("promptTokenCount"),
            completion_tokens=metadata.get("candidatesTokenCount"),
            total_tokens=metadata.get("totalTokenCount")
        )

    @staticmethod
    def _first_candidate(data: Dict[str, Any]) -> Dict[str, Any]:
        candidates = data.get("candidates") or []
        return candidates[0] if candidates and isinstance(candidates[0], dict) else {}

    @classmethod
    def _candidate_text(cls, data: Dict[str, Any]) -> Optional[str]:
        parts = (cls._first_candidate(data).get("content") or {}).get("parts") or []
        if parts and isinstance(parts[0], dict):
            return parts[0].get("text")
        return None

    async def _raise_for_status(self, response):
        if response.status < 400:
            return
        try:
            error_data = await response.json(content_type=None)
        except (aiohttp.ContentTypeError, ValueError):
            error_data = {}
        error = error_data.get("error") if isinstance(error_data, dict) else None
        error = error if isinstance(error, dict) else {}
        raise AIProviderError(
            error.get("message") or f"HTTP {response.status}: {response.reason}",
            self.provider,
            status_code=response.status,
            error_type=error.get("status")
        )

    async def chat(self, messages: List[AIMessage], options: Optional[ChatOptions] = None) -> AIResponse:
        """Non-streaming chat response."""
        if not self.is_configured():
            raise AIProviderError("Gemini API key not configured", self.provider)

        model, temperature, max_tokens = self._resolve(options)

        try:
            async with self._session_factory() as session:
                async with session.post(
                    f"{self.base_url}/models/{model}:generateContent",
                    params={"key": self.api_key},
                    json=self._payload(messages, temperature, max_tokens),
                    timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as response:
                    await self._raise_for_status(response)
                    data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise AIProviderError(f"Gemini API error: {e}", self.provider) from e

        text = self._candidate_text(data) if isinstance(data, dict) else None
        if not text:
            raise AIProviderError("Invalid response format from Gemini", self.provider)

        return AIResponse(content=text, model=model, usage=self._usage(data))

    async def chat_stream(
        self,
        messages: List[AIMessage],
        options: Optional[ChatOptions] = None
    ) -> AsyncIterator[AIStreamResponse]:
        """Stream chat response, recovering objects as their bytes arrive."""
        if not self.is_configured():
            raise AIProviderError("Gemini API key not configured", self.provider)

        model, temperature, max_tokens = self._resolve(options)
        parser = IncrementalJSONParser()

        try:
            async with self._session_factory() as session:
                async with session.post(
                    f"{self.base_url}/models/{model}:streamGenerateContent",
                    params={"key": self.api_key},
                    json=self._payload(messages, temperature, max_tokens),
                    timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as response:
                    await self._raise_for_status(response)

                    async for raw in response.content.iter_any():
                        for data in parser.feed(raw):
                            text = self._candidate_text(data)
                            finish_reason = self._first_candidate(data).get("finishReason")
                            usage = self._usage(data)

                            if text:
                                yield AIStreamResponse(
                                    id=str(uuid.uuid4()),
                                    model=model,
                                    delta=StreamDelta(content=text, role="assistant"),
                                    finish_reason=finish_reason,
                                    usage=usage
                                )

                            if finish_reason:
                                yield AIStreamResponse(
                                    id=str(uuid.uuid4()),
                                    model=model,
                                    delta=StreamDelta(),
                                    finish_reason=finish_reason,
                                    usage=usage
                                )
                                return

                    if parser.has_partial:
                        logger.warning("Gemini stream ended inside an unfinished object")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise AIProviderError(f"Gemini API streaming error: {e}", self.provider) from e
