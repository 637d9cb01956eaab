from __future__ import annotations

import calendar
from datetime import datetime, timedelta, timezone
from typing import Optional


UTC = timezone.utc


def utcnow() -> datetime:
    """
    Returns timezone-aware current UTC time.
    """
    return datetime.now(UTC)


def ensure_aware(dt: datetime, assume_utc: bool = True) -> datetime:
    """
    Ensure a datetime is timezone-aware. If naive and assume_utc is True,
    interpret as UTC; otherwise raise ValueError.
    """
    if dt.tzinfo is not None:
        return dt.astimezone(UTC)
    if assume_utc:
        return dt.replace(tzinfo=UTC)
    raise ValueError("Naive datetime provided and assume_utc=False")


def add_minutes(dt: datetime, minutes: int) -> datetime:
    """
    Add minutes to a (aware or naive) datetime and return UTC-aware datetime.
    """
    return ensure_aware(dt) + timedelta(minutes=minutes)


def add_months(dt: datetime, months: int) -> datetime:
    """
    Calendar-month arithmetic. The day of month is kept when the target
    month has it, otherwise it is clamped to the target month's last day
    (Jan 31 + 1 month -> Feb 28, or Feb 29 in a leap year).
    """
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return dt.replace(year=year, month=month, day=min(dt.day, last_day))


def whole_hours_between(start: datetime, end: datetime) -> int:
    """
    Floor of the hours elapsed from start to end, never negative.
    """
    seconds = (ensure_aware(end) - ensure_aware(start)).total_seconds()
    return max(0, int(seconds // 3600))


def humanize_delta(seconds: int) -> str:
    """
    Simple humanization for durations like '2d 3h 5m', '1h 25m' or '17m'.
    """
    if seconds < 0:
        seconds = 0
    minutes, _ = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    days, hours = divmod(hours, 24)
    parts: list[str] = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    parts.append(f"{minutes}m")
    return " ".join(parts)
