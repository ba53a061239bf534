from datetime import datetime
from uuid import UUID, uuid4

import pytest

from clarification.engine import build_template_message
from clarification.reply_parser import (
    MissingDateError,
    UnparseableReplyError,
    extract_assignment_id,
    parse_clarification_response,
)
from marbot.models import Assignment, FieldId
from marbot.timeutil import WIB

EXISTING = datetime(2026, 1, 14, 23, 59, tzinfo=WIB)


def parse(text, existing=None):
    return parse_clarification_response(text, current_year=2026, existing_deadline=existing)


def test_time_only_reply_keeps_existing_date():
    reply = parse("08:00", EXISTING)
    assert reply.updates == {FieldId.DEADLINE: "2026-01-14 08:00"}


def test_time_only_reply_without_date():
    with pytest.raises(MissingDateError) as exc:
        parse("08:00")
    assert exc.value.kind == "no_date"


@pytest.mark.parametrize("text", ["batal", "Batal", " gak jadi ", "cancel"])
def test_cancel_words(text):
    assert parse(text).cancelled


@pytest.mark.parametrize("text", ["", "   ", "ok"])
def test_nothing_usable(text):
    with pytest.raises(UnparseableReplyError) as exc:
        parse(text)
    assert exc.value.kind == "no_data"


def test_structured_reply_with_copied_id_line():
    text = (
        f"🆔 ID: `{uuid4()}`\n"
        "Matkul: Struktur Data\n"
        "Deadline: 20-01 23:59\n"
        "Paralel: K2\n"
        "Keterangan: Kerjakan soal bab 3"
    )
    assert parse(text).updates == {
        FieldId.COURSE_NAME: "Struktur Data",
        FieldId.DEADLINE: "2026-01-20 23:59",
        FieldId.PARALLEL_CODE: "k2",
        FieldId.DESCRIPTION: "Kerjakan soal bab 3",
    }


def test_key_synonyms_and_emoji_bullets():
    text = "📝 *Judul*: Kuis 2\n⏰ due: 21 Januari\nkelas: semua"
    assert parse(text).updates == {
        FieldId.TITLE: "Kuis 2",
        FieldId.DEADLINE: "2026-01-21",
        FieldId.PARALLEL_CODE: "all",
    }


def test_structured_time_only_deadline():
    assert parse("Deadline: 08:00", EXISTING).updates == {FieldId.DEADLINE: "2026-01-14 08:00"}


def test_placeholders_are_skipped():
    text = "Judul: [judul tugas]\nDeadline: 21 Januari"
    assert parse(text).updates == {FieldId.DEADLINE: "2026-01-21"}


def test_unmodified_template_is_unparseable():
    template = build_template_message(Assignment(), [FieldId.COURSE_NAME, FieldId.DEADLINE, FieldId.PARALLEL_CODE])
    with pytest.raises(UnparseableReplyError):
        parse(template)


def test_example_suffix_from_template_is_ignored():
    text = "Deadline: 21-01 10:00 (contoh: 15-01 23:59, 15 Januari 23:59, atau 1501)"
    assert parse(text).updates == {FieldId.DEADLINE: "2026-01-21 10:00"}


def test_bad_deadline_line_is_skipped():
    assert parse("Deadline: kapan aja\nParalel: k1").updates == {FieldId.PARALLEL_CODE: "k1"}


def test_unstructured_parallel():
    assert parse("k2").updates == {FieldId.PARALLEL_CODE: "k2"}
    assert parse("semua kelas").updates == {FieldId.PARALLEL_CODE: "all"}


def test_unstructured_all_keyword_wins_over_description():
    assert parse("kerjakan semua soal bab 3").updates == {FieldId.PARALLEL_CODE: "all"}
    keyed = parse("Keterangan: kerjakan semua soal bab 3").updates
    assert keyed == {FieldId.DESCRIPTION: "kerjakan semua soal bab 3"}


def test_unstructured_deadline():
    assert parse("deadlinenya 20/01").updates == {FieldId.DEADLINE: "2026-01-20"}


def test_unstructured_text_becomes_description():
    text = "Kerjakan laporan praktikum bab dua"
    assert parse(text).updates == {FieldId.DESCRIPTION: text}


def test_extract_id_from_template():
    a = Assignment(title="LKP 14")
    assert extract_assignment_id(build_template_message(a, [FieldId.DEADLINE])) == a.id


def test_extract_bare_uuid():
    uid = "12345678-1234-5678-1234-567812345678"
    assert extract_assignment_id(f"tolong update {uid} ya") == UUID(uid)


def test_extract_id_absent():
    assert extract_assignment_id("halo semua") is None
    assert extract_assignment_id("") is None
