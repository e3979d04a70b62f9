"""
Provider registry and the unified chat entry points.
"""

from typing import AsyncIterator, Dict, List, Optional
import logging

from ..config import Settings
from ..errors import ProviderUnavailableError
from .gemini_client import GeminiClient
from .openai_client import OpenAIClient
from .types import AIClient, AIMessage, AIResponse, AIStreamResponse, ChatOptions


logger = logging.getLogger(__name__)


PROVIDER_DISPLAY_NAMES = {
    "openai": "OpenAI GPT-4o",
    "google": "Google Gemini 2.5 Flash",
}

PROVIDER_MODELS = {
    "openai": ["gpt-4o-2024-08-06", "gpt-4", "gpt-4-turbo", "gpt-3.5-turbo"],
    "google": ["gemini-2.5-flash", "gemini-1.5-flash", "gemini-1.5-pro", "gemini-pro"],
}


def normalize_provider(provider: Optional[str]) -> str:
    """Map legacy provider spellings onto canonical ids, defaulting to openai."""
    value = (provider or "").strip().lower()
    if value in ("openai", "gpt", "gpt-4"):
        return "openai"
    if value in ("gemini", "google"):
        return "google"
    return "openai"


class AIManager:
    """Holds one client per configured provider for the life of the process."""

    def __init__(self, clients: Optional[Dict[str, AIClient]] = None, default_provider: str = "openai"):
        self.clients: Dict[str, AIClient] = dict(clients or {})
        self.default_provider = default_provider

    @classmethod
    def from_settings(cls, settings: Settings) -> "AIManager":
        """Build clients for every provider whose API key is set."""
        clients: Dict[str, AIClient] = {}
        if settings.OPENAI_API_KEY:
            clients["openai"] = OpenAIClient(
                api_key=settings.OPENAI_API_KEY,
                base_url=settings.OPENAI_BASE_URL,
                timeout=settings.PROVIDER_TIMEOUT_SECONDS
            )
        if settings.GEMINI_API_KEY:
            clients["google"] = GeminiClient(
                api_key=settings.GEMINI_API_KEY,
                base_url=settings.GEMINI_BASE_URL,
                timeout=settings.PROVIDER_TIMEOUT_SECONDS
            )

        logger.info("AI providers configured: %s", ", ".join(clients) or "none")
        return cls(clients, default_provider=normalize_provider(settings.DEFAULT_PROVIDER))

    def get_available_providers(self) -> List[str]:
        return list(self.clients.keys())

    def is_provider_available(self, provider: Optional[str]) -> bool:
        client = self.clients.get(provider) if provider else None
        return client is not None and client.is_configured()

    def get_client(self, provider: str) -> Optional[AIClient]:
        return self.clients.get(provider)

    def get_default_provider(self) -> str:
        return self.default_provider

    def set_default_provider(self, provider: str):
        if not self.is_provider_available(provider):
            raise ProviderUnavailableError(provider, self.get_available_providers())
        self.default_provider = provider

    def _require_client(self, provider: Optional[str]) -> AIClient:
        target = provider or self.default_provider
        client = self.clients.get(target)
        if client is None:
            raise ProviderUnavailableError(
                target,
                self.get_available_providers(),
                message=f"AI provider {target} is not available"
            )
        if not client.is_configured():
            raise ProviderUnavailableError(
                target,
                self.get_available_providers(),
                message=f"AI provider {target} is not properly configured"
            )
        return client

    async def chat(
        self,
        messages: List[AIMessage],
        provider: Optional[str] = None,
        options: Optional[ChatOptions] = None
    ) -> AIResponse:
        """Send a chat request using the specified or default provider."""
        client = self._require_client(provider)
        return await client.chat(messages, options)

    async def chat_stream(
        self,
        messages: List[AIMessage],
        provider: Optional[str] = None,
        options: Optional[ChatOptions] = None
    ) -> AsyncIterator[AIStreamResponse]:
        """Stream a chat request using the specified or default provider."""
        client = self._require_client(provider)
        async for chunk in client.chat_stream(messages, options):
            yield chunk

    @staticmethod
    def get_provider_display_name(provider: str) -> str:
        return PROVIDER_DISPLAY_NAMES.get(provider, provider)

    @staticmethod
    def get_available_models(provider: str) -> List[str]:
        return list(PROVIDER_MODELS.get(provider, []))

    async def close(self):
        for client in self.clients.values():
            await client.close()
