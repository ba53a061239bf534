from datetime import date, datetime, time, timezone

import pytest

from clarification.deadline_parser import (
    DeadlineParseError,
    ParsedDeadline,
    parse_flexible_deadline,
    parse_model_deadline,
    parse_time_only,
)


@pytest.mark.parametrize("text", ["15 01", "1501", "15 Januari", "15 Jan", "jan 15", "15/01", "15-01"])
def test_day_month_forms(text):
    assert str(parse_flexible_deadline(text, 2026)) == "2026-01-15"


@pytest.mark.parametrize("text", ["15 01 23:59", "1501 23:59", "15 Januari 23:59", "15 Jan 23.59"])
def test_day_month_with_time(text):
    assert str(parse_flexible_deadline(text, 2026)) == "2026-01-15 23:59"


def test_english_and_indonesian_month_names():
    assert parse_flexible_deadline("3 Agustus", 2026).day == date(2026, 8, 3)
    assert parse_flexible_deadline("3 august", 2026).day == date(2026, 8, 3)
    assert parse_flexible_deadline("25 Des", 2026).day == date(2026, 12, 25)
    assert parse_flexible_deadline("1 okt", 2026).day == date(2026, 10, 1)


def test_concatenated_edges():
    assert parse_flexible_deadline("0101", 2026).day == date(2026, 1, 1)
    assert parse_flexible_deadline("3112", 2026).day == date(2026, 12, 31)


@pytest.mark.parametrize("text", ["", "besok", "32 13", "31 02", "99999", "kapan-kapan"])
def test_unparseable(text):
    with pytest.raises(DeadlineParseError):
        parse_flexible_deadline(text, 2026)


def test_time_only():
    assert parse_time_only("08:00") == time(8, 0)
    assert parse_time_only(" 8.30 ") == time(8, 30)
    assert parse_time_only("24:00") is None
    assert parse_time_only("08:60") is None
    assert parse_time_only("8:3") is None
    assert parse_time_only("15 Jan 08:00") is None


def test_date_only_means_end_of_day_wib():
    utc = ParsedDeadline(day=date(2026, 1, 15)).to_utc()
    assert utc == datetime(2026, 1, 15, 16, 59, tzinfo=timezone.utc)


def test_model_deadline():
    assert parse_model_deadline("2026-01-15 08:00") == datetime(2026, 1, 15, 1, 0, tzinfo=timezone.utc)
    assert parse_model_deadline("2026-01-15T08:00:00") == datetime(2026, 1, 15, 1, 0, tzinfo=timezone.utc)
    assert parse_model_deadline("2026-01-15") == datetime(2026, 1, 15, 16, 59, tzinfo=timezone.utc)
    assert parse_model_deadline(None) is None
    assert parse_model_deadline("besok") is None
    assert parse_model_deadline("2026-02-30") is None
