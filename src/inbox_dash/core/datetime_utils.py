"""Datetime helpers shared across the application."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

from .models import DateRange

__all__ = [
    "date_range_threshold",
    "ensure_utc",
    "is_expired",
    "parse_datetime",
]

_RANGE_DAYS: dict[str, int] = {"week": 7, "month": 30}


def ensure_utc(value: datetime | None) -> datetime | None:
    """Return ``value`` converted to UTC, treating naive values as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_datetime(value: str | None, *, assume_utc: bool = False) -> datetime | None:
    """Parse an ISO 8601 string (``Z`` suffix allowed) into a ``datetime``."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None and assume_utc:
        return parsed.replace(tzinfo=UTC)
    return parsed


def is_expired(expires_at: datetime | None, *, now: datetime | None = None) -> bool:
    """Return ``True`` when ``expires_at`` lies in the past."""
    if expires_at is None:
        return False
    current = ensure_utc(now) or datetime.now(tz=UTC)
    return current >= (ensure_utc(expires_at) or expires_at)


def date_range_threshold(
    date_range: DateRange, *, now: datetime | None = None
) -> date | None:
    """Return the earliest date admitted by a coarse date range."""
    if date_range == "all":
        return None
    current = now or datetime.now().astimezone()
    if date_range == "today":
        return current.date()
    return (current - timedelta(days=_RANGE_DAYS[date_range])).date()
