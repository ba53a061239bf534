"""
Flexible, deterministic date/time parsing for clarification replies.

Users answer deadline questions in many shapes: "15 Januari 23:59",
"15/01", "1501", "jan 15". The parser only needs an ambient year from the
caller and never looks at the wall clock.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import List, Optional, Tuple

from marbot.timeutil import WIB, to_utc

MONTHS = {
    # Indonesian
    "januari": 1, "februari": 2, "maret": 3, "april": 4, "mei": 5, "juni": 6,
    "juli": 7, "agustus": 8, "september": 9, "oktober": 10, "november": 11, "desember": 12,
    # English
    "january": 1, "february": 2, "march": 3, "may": 5, "june": 6,
    "july": 7, "august": 8, "october": 10, "december": 12,
    # 3-letter abbreviations (both languages)
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "jun": 6, "jul": 7,
    "agu": 8, "agt": 8, "aug": 8, "sep": 9, "okt": 10, "oct": 10,
    "nov": 11, "des": 12, "dec": 12,
}

# End of day is the default for deadlines that arrive without a time.
DEFAULT_DEADLINE_TIME = time(23, 59)

_TIME_TOKEN = re.compile(r"(?<!\d)(\d{1,2})[:.](\d{1,2})(?!\d)")
_TIME_ONLY = re.compile(r"^(\d{1,2})[:.](\d{2})$")
_TOKEN_PUNCT = ".,;:!?()[]{}\"'`*_-/"
_ISO_DEADLINE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[ T](\d{1,2}):(\d{2})(?::\d{2})?)?")


class DeadlineParseError(ValueError):
    pass


@dataclass(frozen=True)
class ParsedDeadline:
    day: date
    at: Optional[time] = None

    def __str__(self) -> str:
        if self.at is None:
            return self.day.isoformat()
        return f"{self.day.isoformat()} {self.at.strftime('%H:%M')}"

    def to_utc(self) -> datetime:
        """Civil WIB deadline as a UTC datetime (date-only means 23:59)."""
        local = datetime.combine(self.day, self.at or DEFAULT_DEADLINE_TIME, tzinfo=WIB)
        return to_utc(local)


def _valid_time(hour: int, minute: int) -> bool:
    return 0 <= hour < 24 and 0 <= minute < 60


def parse_time_only(text: str) -> Optional[time]:
    """Return the time when the whole text is exactly `HH:MM` or `HH.MM`."""
    m = _TIME_ONLY.match((text or "").strip())
    if not m:
        return None
    hour, minute = int(m.group(1)), int(m.group(2))
    if not _valid_time(hour, minute):
        return None
    return time(hour, minute)


def extract_time(text: str) -> Tuple[Optional[time], str]:
    """Pull the first valid time token out of the text.

    Returns the time (or None) and the text with that token removed.
    """
    for m in _TIME_TOKEN.finditer(text):
        hour, minute = int(m.group(1)), int(m.group(2))
        if _valid_time(hour, minute):
            remaining = f"{text[:m.start()]} {text[m.end():]}"
            return time(hour, minute), " ".join(remaining.split())
    return None, text


def _day_number(token: str) -> Optional[int]:
    token = token.strip(_TOKEN_PUNCT)
    if not token.isdigit():
        return None
    n = int(token)
    return n if 1 <= n <= 31 else None


def _make_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _by_month_name(text: str, year: int) -> Optional[date]:
    tokens = text.split()
    for i, raw in enumerate(tokens):
        month = MONTHS.get(raw.strip(_TOKEN_PUNCT).lower())
        if month is None:
            continue
        neighbours: List[str] = []
        if i > 0:
            neighbours.append(tokens[i - 1])
        if i + 1 < len(tokens):
            neighbours.append(tokens[i + 1])
        for candidate in neighbours:
            day = _day_number(candidate)
            if day is not None:
                return _make_date(year, month, day)
    return None


def _numeric_tokens(text: str) -> List[str]:
    normalized = re.sub(r"[-/.,]", " ", text)
    return [t for t in normalized.split() if t.isdigit()]


def _by_two_numbers(numbers: List[str], year: int) -> Optional[date]:
    if len(numbers) < 2:
        return None
    day, month = int(numbers[0]), int(numbers[1])
    if 1 <= day <= 31 and 1 <= month <= 12:
        return _make_date(year, month, day)
    return None


def _by_concatenated_number(numbers: List[str], year: int) -> Optional[date]:
    if len(numbers) != 1 or not 3 <= len(numbers[0]) <= 4:
        return None
    n = int(numbers[0])
    if not 101 <= n <= 3112:
        return None
    day, month = n // 100, n % 100
    if 1 <= day <= 31 and 1 <= month <= 12:
        return _make_date(year, month, day)
    return None


def parse_flexible_deadline(text: str, current_year: int) -> ParsedDeadline:
    """Parse a free-text deadline.

    Attempts, in order: month name with an adjacent day, two separate
    numbers (day then month), one concatenated DDMM number. The first
    match wins; the optional time token is attached to it.
    """
    at, date_text = extract_time(text or "")

    parsed = _by_month_name(date_text, current_year)
    if parsed is None:
        numbers = _numeric_tokens(date_text)
        parsed = _by_two_numbers(numbers, current_year)
        if parsed is None:
            parsed = _by_concatenated_number(numbers, current_year)

    if parsed is None:
        raise DeadlineParseError(f"unrecognized date: {text!r}")
    return ParsedDeadline(day=parsed, at=at)


def parse_model_deadline(value: Optional[str]) -> Optional[datetime]:
    """Convert a model-produced `YYYY-MM-DD[ HH:MM]` (WIB) into UTC.

    Returns None for missing or unreadable values.
    """
    if not value:
        return None
    m = _ISO_DEADLINE.match(value.strip())
    if not m:
        return None
    day = _make_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    if day is None:
        return None
    at = None
    if m.group(4) is not None:
        hour, minute = int(m.group(4)), int(m.group(5))
        if not _valid_time(hour, minute):
            return None
        at = time(hour, minute)
    return ParsedDeadline(day=day, at=at).to_utc()
