"""
Provider error type.
"""

from typing import Any, Dict, Optional

from ..errors import ParleyError


class AIProviderError(ParleyError):
    """Upstream failure: missing key, non-success status or an unexpected payload."""

    status_code = 500

    def __init__(
        self,
        message: str,
        provider: str,
        status_code: Optional[int] = None,
        error_type: Optional[str] = None
    ):
        super().__init__(message)
        self.provider = provider
        self.upstream_status = status_code
        self.error_type = error_type

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["provider"] = self.provider
        return data

    def __repr__(self) -> str:
        return (
            f"AIProviderError(provider={self.provider!r}, status={self.upstream_status!r}, "
            f"type={self.error_type!r}, message={self.message!r})"
        )
