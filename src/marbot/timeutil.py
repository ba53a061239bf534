from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable

# Indonesian Western Time; all civil-time reasoning happens in this offset.
WIB = timezone(timedelta(hours=7), "WIB")

Clock = Callable[[], datetime]


def wib_now() -> datetime:
    return datetime.now(WIB)


def to_wib(dt: datetime) -> datetime:
    """Naive datetimes are taken to already be WIB civil time."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=WIB)
    return dt.astimezone(WIB)


def to_utc(dt: datetime) -> datetime:
    return to_wib(dt).astimezone(timezone.utc)


def age_label(created_at: datetime, now: datetime) -> str:
    """Human readable age, e.g. '12 min ago' or '3 days ago'."""
    minutes = int((to_utc(now) - to_utc(created_at)).total_seconds() // 60)
    if minutes < 60:
        return f"{max(minutes, 0)} min ago"
    if minutes < 24 * 60:
        return f"{minutes // 60} hr ago"
    return f"{minutes // (24 * 60)} days ago"


def truncate_for_log(text: str, max_len: int = 60) -> str:
    clean = (text or "").replace("\n", " ")
    if len(clean) <= max_len:
        return clean
    return f"{clean[:max_len]}..."
