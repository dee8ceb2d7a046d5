"""
Date/time helpers — framework-agnostic.

Every timestamp the service stores or compares is timezone-aware UTC.
Services take a ``clock`` callable (default ``utcnow``) so tests can move
time forward without patching the datetime module.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Serialise a datetime for the data store (ISO 8601, UTC)."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat()
