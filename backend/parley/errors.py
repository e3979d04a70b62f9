"""
Application error types.

Route handlers map these onto JSON error bodies; each carries the HTTP status
it should surface as.
"""

from typing import Any, Dict, List, Optional


class ParleyError(Exception):
    """Base class for errors that are reported to the client."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "success": False}


class ValidationError(ParleyError):
    """Missing or malformed request fields."""
    status_code = 400


class AuthError(ParleyError):
    """No valid session (401) or not allowed to touch the resource (403)."""
    status_code = 401


class NotFoundError(ParleyError):
    status_code = 404


class RateLimitedError(ParleyError):
    """Guest identity has used up its message allowance."""
    status_code = 429


class ProviderUnavailableError(ParleyError):
    """Requested AI provider is not configured."""

    status_code = 400

    def __init__(
        self,
        provider: str,
        available_providers: List[str],
        message: Optional[str] = None,
        status_code: Optional[int] = None
    ):
        super().__init__(message or f"Provider {provider} is not available", status_code)
        self.provider = provider
        self.available_providers = available_providers

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["availableProviders"] = self.available_providers
        return data


class SummaryParseError(ParleyError):
    """The model's summary response could not be used."""

    status_code = 500

    def __init__(self, message: str, ai_response: Optional[str] = None):
        super().__init__(message)
        self.ai_response = ai_response

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.ai_response is not None:
            data["aiResponse"] = self.ai_response
        return data


class ThreadConflictError(ParleyError):
    """A conditional thread update lost against a concurrent writer."""
    status_code = 409
