"""
OpenAI chat completions client.
"""

from openai import AsyncOpenAI, APIStatusError, OpenAIError
from typing import Any, AsyncIterator, Dict, List, Optional
import logging

from .errors import AIProviderError
from .types import AIClient, AIMessage, AIResponse, AIStreamResponse, ChatOptions, StreamDelta, Usage


logger = logging.getLogger(__name__)


class OpenAIClient(AIClient):
    """Flat role/content message list; streaming is SSE framed by the SDK."""

    provider = "openai"
    default_model = "gpt-4o-2024-08-06"

    def __init__(
        self,
        api_key: Optional[str],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 16384,
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 600,
        client: Optional[AsyncOpenAI] = None
    ):
        self.api_key = api_key
        self.model = model or self.default_model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.base_url = base_url

        # Retries are left to the caller, so the SDK must not retry on its own.
        if client is None and api_key:
            client = AsyncOpenAI(base_url=base_url, api_key=api_key, timeout=timeout, max_retries=0)
        self.client = client

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _resolve(self, options: Optional[ChatOptions]):
        options = options or ChatOptions()
        model = options.model or self.model
        temperature = options.temperature if options.temperature is not None else self.temperature
        max_tokens = options.max_tokens if options.max_tokens is not None else self.max_tokens
        return model, temperature, max_tokens

    @staticmethod
    def _build_messages(messages: List[AIMessage]) -> List[Dict[str, Any]]:
        return [{"role": msg.role, "content": msg.content} for msg in messages]

    @staticmethod
    def _usage(usage) -> Optional[Usage]:
        if usage is None:
            return None
        return Usage(
            prompt_tokens=getattr(usage, "prompt_tokens", None),
            completion_tokens=getattr(usage, "completion_tokens", None),
            total_tokens=getattr(usage, "total_tokens", None)
        )

    def _wrap_error(self, error: Exception) -> AIProviderError:
        if isinstance(error, APIStatusError):
            return AIProviderError(
                error.message or f"HTTP {error.status_code}",
                self.provider,
                status_code=error.status_code,
                error_type=getattr(error, "type", None)
            )
        return AIProviderError(f"OpenAI API error: {error}", self.provider)

    async def chat(self, messages: List[AIMessage], options: Optional[ChatOptions] = None) -> AIResponse:
        """Non-streaming chat response."""
        if not self.is_configured():
            raise AIProviderError("OpenAI API key not configured", self.provider)

        model, temperature, max_tokens = self._resolve(options)

        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=self._build_messages(messages),
                temperature=temperature,
                max_tokens=max_tokens,
                stream=False
            )
        except OpenAIError as e:
            raise self._wrap_error(e) from e

        if not response.choices or not response.choices[0].message.content:
            raise AIProviderError("Invalid response format from OpenAI", self.provider)

        return AIResponse(
            content=response.choices[0].message.content,
            model=response.model or model,
            usage=self._usage(response.usage)
        )

    async def chat_stream(
        self,
        messages: List[AIMessage],
        options: Optional[ChatOptions] = None
    ) -> AsyncIterator[AIStreamResponse]:
        """Stream chat response from the API."""
        if not self.is_configured():
            raise AIProviderError("OpenAI API key not configured", self.provider)

        model, temperature, max_tokens = self._resolve(options)

        try:
            stream = await self.client.chat.completions.create(
                model=model,
                messages=self._build_messages(messages),
                temperature=temperature,
                max_tokens=max_tokens,
                stream=True,
                stream_options={"include_usage": True}
            )

            async for chunk in stream:
                usage = self._usage(chunk.usage)
                chunk_model = chunk.model or model

                # The usage-only chunk at the end carries no choices.
                if not chunk.choices:
                    if usage is not None:
                        yield AIStreamResponse(id=chunk.id, model=chunk_model, usage=usage)
                    continue

                choice = chunk.choices[0]
                if choice.delta.content is None and choice.finish_reason is None:
                    continue

                yield AIStreamResponse(
                    id=chunk.id,
                    model=chunk_model,
                    delta=StreamDelta(content=choice.delta.content, role=choice.delta.role),
                    finish_reason=choice.finish_reason,
                    usage=usage
                )
        except OpenAIError as e:
            raise self._wrap_error(e) from e

    async def close(self):
        if self.client is not None:
            await self.client.close()
