# snapybara/utils/datetime.py
from __future__ import annotations

from datetime import UTC, datetime


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        # naive values are treated as UTC
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)
