from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Return aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_aware_utc(value: datetime) -> datetime:
    """
    Ensure datetime is timezone-aware in UTC.

    - If naive, assume it is UTC and attach tzinfo.
    - If aware, convert to UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def iso_utc(value: datetime) -> str:
    """Canonical ISO-8601 text with millisecond precision and a trailing Z."""
    aware = ensure_aware_utc(value)
    return aware.strftime("%Y-%m-%dT%H:%M:%S.") + f"{aware.microsecond // 1000:03d}Z"


def parse_provider_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse provider timestamps ('2025-01-18 15:00:00' or ISO with offset) into aware UTC."""
    if not value:
        return None
    raw = str(value).strip().replace("Z", "+00:00")
    try:
        return ensure_aware_utc(datetime.fromisoformat(raw))
    except ValueError:
        return None
