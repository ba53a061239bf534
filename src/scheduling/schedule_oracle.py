"""
Weekly class timetable lookup.

Answers "when does this course/parallel meet next?" so that deadlines
phrased as "next meeting" can be turned into a concrete date and time.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import date, timedelta
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from marbot.models import ScheduleEntry, ScheduleSlot

logger = logging.getLogger(__name__)

DEFAULT_SCHEDULE_PATH = Path(__file__).parent / "schedule.json"
SCHEDULE_PATH = os.getenv("SCHEDULE_PATH", str(DEFAULT_SCHEDULE_PATH))

WEEKDAYS = {
    "senin": 0, "selasa": 1, "rabu": 2, "kamis": 3, "jumat": 4, "sabtu": 5, "minggu": 6,
    "monday": 0, "tuesday": 1, "wednesday": 2, "thursday": 3, "friday": 4,
    "saturday": 5, "sunday": 6,
}

# course code -> names and nicknames students use for it
COURSE_ALIASES: Dict[str, Tuple[str, ...]] = {
    "kom1221": ("metode kuantitatif", "metkuan", "mk"),
    "kom120d": ("matematika komputasi", "matkom", "pengantar matematika"),
    "kom120c": ("pemrograman", "pemrog"),
    "kom120g": ("organisasi dan arsitektur komputer", "orkom", "oaak"),
    "kom120h": ("struktur data", "sd", "strukdat"),
    "kom1231": ("rekayasa perangkat lunak", "rpl"),
    "kom1232": ("desain pengalaman pengguna", "ux", "uxd", "dpp"),
    "kom1304": ("grafika komputer dan visualisasi", "grafkom", "gkv"),
}

_SHORT_ALIAS_LEN = 3


class ScheduleLoadError(ValueError):
    pass


def course_matches(course_code: str, course_name: str) -> bool:
    """True when `course_name` refers to the course with `course_code`.

    Long aliases match as substrings, short ones (e.g. "sd", "ux") only as
    whole words.
    """
    code = (course_code or "").lower()
    name = (course_name or "").lower()
    words = set(name.replace("-", " ").split())
    for known_code, aliases in COURSE_ALIASES.items():
        if known_code not in code:
            continue
        for alias in aliases:
            if len(alias) <= _SHORT_ALIAS_LEN:
                if alias in words:
                    return True
            elif alias in name:
                return True
    return False


def days_until_weekday(from_weekday: int, to_weekday: int) -> int:
    """Days until the next `to_weekday`; the same weekday means next week."""
    delta = (to_weekday - from_weekday) % 7
    return delta or 7


class ScheduleOracle:
    def __init__(self, entries: Iterable[ScheduleEntry]):
        self.entries: List[ScheduleEntry] = list(entries)

    @classmethod
    def from_timetable(cls, data: Mapping[str, list]) -> "ScheduleOracle":
        """Build from `{"Senin": [{"course", "parallel", "schedule"}, ...], ...}`."""
        slots: Dict[Tuple[str, str], List[ScheduleSlot]] = {}
        for day_name, rows in data.items():
            weekday = WEEKDAYS.get(day_name.strip().lower())
            if weekday is None:
                raise ScheduleLoadError(f"Unknown weekday in timetable: {day_name!r}")
            for row in rows or []:
                try:
                    course_code = row["course"].split(" - ", 1)[0].strip()
                    parallel = row["parallel"].strip().lower()
                    start_time = row["schedule"].split("-", 1)[0].strip()
                except (KeyError, AttributeError) as e:
                    raise ScheduleLoadError(f"Malformed timetable row on {day_name}: {row!r}") from e
                slots.setdefault((course_code, parallel), []).append(
                    ScheduleSlot(weekday=weekday, start_time=start_time)
                )

        entries = [
            ScheduleEntry(course_code=code, parallel_code=parallel, slots=s)
            for (code, parallel), s in slots.items()
        ]
        logger.info(f"Loaded timetable with {len(entries)} course/parallel entries")
        return cls(entries)

    @classmethod
    def load_from_file(cls, path: Optional[str] = None) -> "ScheduleOracle":
        schedule_path = Path(path or SCHEDULE_PATH)
        try:
            data = json.loads(schedule_path.read_text(encoding="utf-8"))
        except OSError as e:
            raise ScheduleLoadError(f"Failed to read schedule file {schedule_path}: {e}") from e
        except json.JSONDecodeError as e:
            raise ScheduleLoadError(f"Failed to parse schedule JSON {schedule_path}: {e}") from e
        if not isinstance(data, dict):
            raise ScheduleLoadError("Schedule JSON must be an object keyed by weekday")
        return cls.from_timetable(data)

    def find_entry(self, course_name: str, parallel_code: str) -> Optional[ScheduleEntry]:
        parallel = (parallel_code or "").strip().lower()
        for entry in self.entries:
            if entry.parallel_code == parallel and course_matches(entry.course_code, course_name):
                return entry
        return None

    def next_meeting(
        self, course_name: str, parallel_code: str, from_date: date
    ) -> Optional[Tuple[date, str]]:
        """Earliest meeting strictly after `from_date` as (date, "HH:MM")."""
        entry = self.find_entry(course_name, parallel_code)
        if entry is None or not entry.slots:
            return None

        current = from_date.weekday()
        meetings = [
            (from_date + timedelta(days=days_until_weekday(current, slot.weekday)), slot.start_time)
            for slot in entry.slots
        ]
        return min(meetings)
