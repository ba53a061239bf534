from __future__ import annotations

from datetime import datetime
from typing import Optional

from marbot.timeutil import to_wib

_MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "Mei", "Jun", "Jul", "Agu", "Sep", "Okt", "Nov", "Des")
_DAY_NAMES = ("Senin", "Selasa", "Rabu", "Kamis", "Jumat", "Sabtu", "Minggu")


def sanitize_wa_md(text: str) -> str:
    """Neutralize WhatsApp markdown characters in user-provided text."""
    return (
        (text or "")
        .replace("*", "×")
        .replace("_", " ")
        .replace("~", "-")
        .replace("`", "'")
    )


def format_deadline(deadline: Optional[datetime]) -> str:
    if deadline is None:
        return "-"
    local = to_wib(deadline)
    return (
        f"{_DAY_NAMES[local.weekday()]}, {local.day} {_MONTH_ABBR[local.month - 1]} "
        f"{local.year} {local.strftime('%H:%M')} WIB"
    )


def days_left(deadline: datetime, now: datetime) -> int:
    """Whole calendar days between today and the deadline, in WIB."""
    return (to_wib(deadline).date() - to_wib(now).date()).days


def humanize_deadline(deadline: Optional[datetime], now: datetime) -> str:
    if deadline is None:
        return "⚠️ Belum ada deadline"
    local = to_wib(deadline)
    stamp = f"{local.day} {_MONTH_ABBR[local.month - 1]} {local.year} {local.strftime('%H:%M')}"
    days = days_left(deadline, now)
    if days == 0:
        label = "Hari ini"
    elif days == 1:
        label = "Besok"
    elif days > 1:
        label = f"H-{days}"
    elif days == -1:
        label = "Kemarin"
    else:
        label = f"lewat {-days} hari"
    return f"{label} ({stamp})"


def preview_text(text: str, max_chars: int) -> str:
    """Single-line preview, cut at `max_chars` with an ellipsis."""
    flat = " ".join((text or "").split())
    if len(flat) <= max_chars:
        return flat
    return flat[:max_chars].rstrip() + "…"


def status_dot(deadline: Optional[datetime], now: datetime) -> str:
    if deadline is None:
        return "⚪"
    days = days_left(deadline, now)
    if days < 1:
        return "🔴"
    if days == 1:
        return "🟠"
    if days == 2:
        return "🟡"
    return "🟢"
