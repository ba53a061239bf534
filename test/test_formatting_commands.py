import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from conftest import NOW, course_named

from api.commands import PERIOD_FOOTER, STORE_ERROR_REPLY, CommandHandler
from classification.message_classifier import classify_message
from marbot.formatting import (
    format_deadline,
    humanize_deadline,
    preview_text,
    sanitize_wa_md,
    status_dot,
)
from marbot.models import Assignment
from marbot.timeutil import WIB
from storage.memory_store import InMemoryAssignmentStore


def test_sanitize_wa_md():
    assert sanitize_wa_md("*a*_b_~c~`d`") == "×a× b -c-'d'"
    assert sanitize_wa_md(None) == ""


def test_format_deadline():
    assert format_deadline(datetime(2026, 1, 14, 16, 59, tzinfo=timezone.utc)) == "Rabu, 14 Jan 2026 23:59 WIB"
    assert format_deadline(None) == "-"


@pytest.mark.parametrize(
    "deadline, expected",
    [
        (datetime(2026, 1, 14, 23, 59, tzinfo=WIB), "Hari ini (14 Jan 2026 23:59)"),
        (datetime(2026, 1, 15, 8, 0, tzinfo=WIB), "Besok (15 Jan 2026 08:00)"),
        (datetime(2026, 1, 17, 23, 59, tzinfo=WIB), "H-3 (17 Jan 2026 23:59)"),
        (datetime(2026, 1, 13, 23, 59, tzinfo=WIB), "Kemarin (13 Jan 2026 23:59)"),
        (datetime(2026, 1, 10, 23, 59, tzinfo=WIB), "lewat 4 hari (10 Jan 2026 23:59)"),
        (None, "⚠️ Belum ada deadline"),
    ],
)
def test_humanize_deadline(deadline, expected):
    assert humanize_deadline(deadline, NOW) == expected


def test_status_dot():
    assert status_dot(None, NOW) == "⚪"
    assert status_dot(NOW, NOW) == "🔴"
    assert status_dot(NOW + timedelta(days=1), NOW) == "🟠"
    assert status_dot(NOW + timedelta(days=2), NOW) == "🟡"
    assert status_dot(NOW + timedelta(days=5), NOW) == "🟢"


def test_preview_text():
    assert preview_text("a  b\nc", 10) == "a b c"
    assert preview_text("abcdefghij klm", 10) == "abcdefghij…"


@pytest.fixture
def filled_store(courses):
    store = InMemoryAssignmentStore(courses, clock=lambda: NOW)
    pemrog = course_named(courses, "Pemrograman")
    older = Assignment(
        course_id=pemrog.id, title="LKP 14", description="Programming lab assignment 14",
        deadline=datetime(2026, 1, 20, 23, 59, tzinfo=WIB), parallel_code="k1",
        created_at=NOW - timedelta(hours=2),
    )
    newer = Assignment(
        title="Kuis *2*", deadline=datetime(2026, 1, 15, 8, 0, tzinfo=WIB),
        created_at=NOW - timedelta(hours=1),
    )
    expired = Assignment(title="Laporan 1", deadline=datetime(2026, 1, 10, tzinfo=WIB), created_at=NOW)
    for a in (older, newer, expired):
        asyncio.run(store.create_assignment(a))
    return store


def run(handler, text, sender="628111@c.us"):
    return asyncio.run(handler.handle(classify_message(text, "#"), sender))


def test_list_command(filled_store, clock):
    reply = run(CommandHandler(filled_store, clock), "#tugas")
    assert reply.startswith("*[Daftar Tugas Aktif]*")
    assert "🟠 *[1] Kuis ×2×*" in reply
    assert "🟢 *[2] LKP 14*" in reply
    assert "📌 Pemrograman" in reply
    assert "🧩 Kode: K1" in reply
    assert "Laporan 1" not in reply


def test_done_removes_from_personal_todo(filled_store, clock):
    handler = CommandHandler(filled_store, clock)
    assert run(handler, "#done 2") == "✅ Mantap! Tugas *LKP 14* selesai."
    todo = run(handler, "#todo")
    assert "LKP 14" not in todo
    assert "Kuis" in todo
    assert "LKP 14" in run(handler, "#todo", sender="628222@c.us")
    assert "LKP 14" in run(handler, "#tugas")


def test_expand(filled_store, clock):
    reply = run(CommandHandler(filled_store, clock), "#2")
    assert reply.startswith("🧾 *Detail Tugas #2*")
    assert "⏰ Deadline: Selasa, 20 Jan 2026 23:59 WIB (H-6 (20 Jan 2026 23:59))" in reply
    assert "📝 Programming lab assignment 14" in reply


def test_expand_out_of_range(filled_store, clock):
    assert "tidak ditemukan" in run(CommandHandler(filled_store, clock), "#expand 9")


def test_empty_lists(courses, clock):
    handler = CommandHandler(InMemoryAssignmentStore(courses, clock=lambda: NOW), clock)
    assert "🎉 *Selamat!*" in run(handler, "#todo")
    assert "📭 Belum ada tugas." in run(handler, "#tugas")


def test_ping_help_unknown(store, clock):
    handler = CommandHandler(store, clock)
    assert run(handler, "#ping").startswith("🏓 *PONG!*")
    assert "2026-01-14 10:00:00 WIB" in run(handler, "#ping")
    assert "#done <nomor>" in run(handler, "#help")
    assert run(handler, "#tugass").startswith("❓ Command tidak dikenali: *#tugass*")


class BrokenStore(InMemoryAssignmentStore):
    async def list_active_assignments(self, limit=100, exclude_completed_by=None):
        raise ConnectionError("database is down")


def test_store_failure_reply(clock):
    assert run(CommandHandler(BrokenStore(), clock), "#tugas") == STORE_ERROR_REPLY


def test_today_and_week(filled_store, clock):
    due_today = Assignment(title="Kuis 3", deadline=datetime(2026, 1, 14, 23, 59, tzinfo=WIB))
    far = Assignment(title="UAS", deadline=datetime(2026, 1, 30, 9, 0, tzinfo=WIB))
    for a in (due_today, far):
        asyncio.run(filled_store.create_assignment(a))
    handler = CommandHandler(filled_store, clock)

    today = run(handler, "#today")
    assert today.startswith("*[Tugas Hari Ini]*")
    assert "Kuis 3" in today
    assert "Kuis ×2×" not in today
    assert PERIOD_FOOTER in today

    week = run(handler, "#week")
    assert "Kuis 3" in week and "Kuis ×2×" in week and "LKP 14" in week
    assert "UAS" not in week

    asyncio.run(filled_store.mark_complete(due_today.id, "628111@c.us"))
    assert "🎉 *Selamat!*" in run(handler, "#today")
    assert "Kuis 3" in run(handler, "#today", sender="628222@c.us")


def test_undo_restores_last_done(filled_store, clock):
    handler = CommandHandler(filled_store, clock)
    assert run(handler, "#undo").startswith("❌ Tidak ada tugas yang baru saja kamu selesaikan.")

    run(handler, "#done 2")
    run(handler, "#done 1")
    assert run(handler, "#undo").startswith("↩️ Oke! Tugas *Kuis ×2×* ditandai belum selesai.")
    todo = run(handler, "#todo")
    assert "Kuis" in todo
    assert "LKP 14" not in todo

    assert "*LKP 14*" in run(handler, "#undo")
    assert run(handler, "#undo").startswith("❌")
