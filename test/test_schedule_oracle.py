import json
from datetime import date

import pytest

from scheduling.schedule_oracle import (
    ScheduleLoadError,
    ScheduleOracle,
    course_matches,
    days_until_weekday,
)

TIMETABLE = {
    "Senin": [
        {"course": "KOM120C - Pemrograman", "parallel": "K1", "schedule": "08:00-09:40"},
        {"course": "KOM120H - Struktur Data", "parallel": "K2", "schedule": "10:00-11:40"},
    ],
    "Kamis": [
        {"course": "KOM120C - Pemrograman", "parallel": "K1", "schedule": "13:00-14:40"},
    ],
}

# Wednesday
WEDNESDAY = date(2026, 1, 14)


@pytest.fixture
def oracle():
    return ScheduleOracle.from_timetable(TIMETABLE)


@pytest.mark.parametrize(
    "from_day, to_day, expected",
    [(0, 2, 2), (4, 0, 3), (2, 2, 7), (6, 0, 1)],
)
def test_days_until_weekday(from_day, to_day, expected):
    assert days_until_weekday(from_day, to_day) == expected


@pytest.mark.parametrize(
    "code, name, expected",
    [
        ("KOM120H", "Struktur Data", True),
        ("KOM120H", "strukdat", True),
        ("KOM120H", "SD", True),
        ("KOM120H", "tugas sd minggu ini", True),
        ("KOM120H", "sdm", False),
        ("KOM1232", "ux design", True),
        ("KOM1232", "linux", False),
        ("KOM120C", "Pemrograman", True),
        ("KOM120C", "Struktur Data", False),
        ("KOM9999", "Pemrograman", False),
    ],
)
def test_course_matches(code, name, expected):
    assert course_matches(code, name) is expected


def test_next_meeting_picks_earliest_slot(oracle):
    assert oracle.next_meeting("Pemrograman", "k1", WEDNESDAY) == (date(2026, 1, 15), "13:00")


def test_next_meeting_next_week(oracle):
    assert oracle.next_meeting("strukdat", "K2", WEDNESDAY) == (date(2026, 1, 19), "10:00")


def test_same_weekday_means_next_week(oracle):
    monday = date(2026, 1, 12)
    assert oracle.next_meeting("Struktur Data", "k2", monday) == (date(2026, 1, 19), "10:00")


def test_next_meeting_unknown(oracle):
    assert oracle.next_meeting("Struktur Data", "k1", WEDNESDAY) is None
    assert oracle.next_meeting("Sejarah", "k1", WEDNESDAY) is None


def test_unknown_weekday():
    with pytest.raises(ScheduleLoadError):
        ScheduleOracle.from_timetable({"Funday": []})


def test_malformed_row():
    with pytest.raises(ScheduleLoadError):
        ScheduleOracle.from_timetable({"Senin": [{"course": "KOM120C - Pemrograman"}]})


def test_load_from_file(tmp_path):
    path = tmp_path / "schedule.json"
    path.write_text(json.dumps(TIMETABLE), encoding="utf-8")
    oracle = ScheduleOracle.load_from_file(str(path))
    assert len(oracle.entries) == 2


def test_load_from_file_errors(tmp_path):
    with pytest.raises(ScheduleLoadError):
        ScheduleOracle.load_from_file(str(tmp_path / "missing.json"))
    bad = tmp_path / "bad.json"
    bad.write_text("[1, 2", encoding="utf-8")
    with pytest.raises(ScheduleLoadError):
        ScheduleOracle.load_from_file(str(bad))


def test_bundled_timetable_loads():
    oracle = ScheduleOracle.load_from_file()
    assert oracle.find_entry("Pemrograman", "k2") is not None
