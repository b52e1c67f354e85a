"""UTC helpers. All timestamps are timezone-aware."""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_now() -> str:
    """Current UTC time as an ISO 8601 string."""
    return utc_now().isoformat()
