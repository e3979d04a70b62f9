"""
AI provider clients and the provider manager.
"""

from .errors import AIProviderError
from .manager import AIManager, normalize_provider
from .types import AIClient, AIMessage, AIResponse, AIStreamResponse, ChatOptions, StreamDelta, Usage

__all__ = [
    "AIProviderError",
    "AIManager",
    "normalize_provider",
    "AIClient",
    "AIMessage",
    "AIResponse",
    "AIStreamResponse",
    "ChatOptions",
    "StreamDelta",
    "Usage",
]
