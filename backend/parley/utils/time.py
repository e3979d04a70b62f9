"""
Timestamp helpers.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def iso_now() -> str:
    """ISO-8601 timestamp with millisecond precision and a Z suffix."""
    return utcnow().isoformat(timespec="milliseconds").replace("+00:00", "Z")
