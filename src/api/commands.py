import logging
from datetime import timedelta
from typing import List, Optional, Sequence

from classification.message_classifier import Command, CommandKind
from marbot.formatting import (
    format_deadline,
    humanize_deadline,
    preview_text,
    sanitize_wa_md,
    status_dot,
)
from marbot.models import Assignment
from marbot.timeutil import Clock, to_wib, wib_now
from storage.assignment_store import AssignmentStore

logger = logging.getLogger(__name__)

STORE_ERROR_REPLY = "❌ Maaf, terjadi kesalahan saat mengambil data tugas.\nCoba lagi sebentar ya."

LEGEND = "Keterangan:\n🔴 Deadline hari ini/lewat\n🟠 Besok\n🟡 2 hari lagi\n🟢 > 2 hari\n⚪ Belum ada deadline"

# numbers in filtered lists are not #todo numbers
PERIOD_FOOTER = "💡 Ketik #todo untuk nomor tugas (#done / #<nomor>)"

HELP_TEXT = (
    "*[MARBOT - Academic Bot]*\n\n"
    "Kirim info tugas di grup seperti biasa, nanti aku catat otomatis.\n\n"
    "*Command:*\n"
    "• #ping - cek status bot\n"
    "• #tugas - daftar semua tugas aktif\n"
    "• #todo - daftar tugas yang belum kamu selesaikan\n"
    "• #today - tugas kamu yang deadline hari ini\n"
    "• #week - tugas kamu yang deadline 7 hari ke depan\n"
    "• #<nomor> atau #expand <nomor> - detail tugas dari #todo\n"
    "• #done <nomor> - tandai tugas selesai\n"
    "• #undo - batalkan #done terakhir\n"
    "• #help - bantuan ini"
)


def format_assignment_list(
    assignments: Sequence[Assignment], header: str, now, personal: bool, footer: Optional[str] = None
) -> str:
    if not assignments:
        if personal:
            return f"{header}\n\n🎉 *Selamat!* Semua tugas sudah selesai!"
        return f"{header}\n\n📭 Belum ada tugas."

    lines: List[str] = [header, ""]
    for i, a in enumerate(assignments, start=1):
        lines.append(f"{status_dot(a.deadline, now)} *[{i}] {preview_text(sanitize_wa_md(a.title), 25)}*")
        lines.append(f"📌 {sanitize_wa_md(a.course_name or 'Unknown Course')}")
        lines.append(f"⏰ Deadline: {humanize_deadline(a.deadline, now)}")
        if a.parallel_code:
            lines.append(f"🧩 Kode: {a.parallel_code.upper()}")
        lines.append("")
    lines.append(LEGEND)
    if footer is not None:
        lines.append(f"\n{footer}")
    elif personal:
        lines.append("\n🔎 Detail: #<nomor>\n✅ Selesai: #done <nomor>")
    else:
        lines.append("\n💡 Gunakan #todo untuk daftar pribadi")
    return "\n".join(lines)


def format_assignment_detail(index: int, a: Assignment, now) -> str:
    lines = [
        f"🧾 *Detail Tugas #{index}*",
        "",
        f"{status_dot(a.deadline, now)} *{sanitize_wa_md(a.title or '-')}*",
        f"📌 {sanitize_wa_md(a.course_name or 'Unknown Course')}",
        f"⏰ Deadline: {format_deadline(a.deadline)} ({humanize_deadline(a.deadline, now)})",
        f"📝 {sanitize_wa_md(a.description or '-')}",
    ]
    if a.parallel_code:
        lines.append(f"🧩 Paralel: {a.parallel_code.upper()}")
    lines.append(f"🆔 ID: `{a.id}`")
    return "\n".join(lines)


class CommandHandler:
    """Answers `#` commands. Every reply is plain WhatsApp-formatted text."""

    def __init__(self, store: AssignmentStore, clock: Clock = wib_now):
        self.store = store
        self.clock = clock

    async def handle(self, command: Command, sender_id: str) -> str:
        logger.info(f"Command {command.kind.value} from {sender_id}")
        try:
            return await self._dispatch(command, sender_id)
        except Exception:
            logger.exception(f"Command {command.kind.value} failed")
            return STORE_ERROR_REPLY

    async def _dispatch(self, command: Command, sender_id: str) -> str:
        now = self.clock()
        kind = command.kind

        if kind is CommandKind.PING:
            latency = await self.store.ping()
            return (
                "🏓 *PONG!*\n\n"
                f"🟢 Database: {latency * 1000:.2f} ms\n"
                f"⏰ Server: {to_wib(now).strftime('%Y-%m-%d %H:%M:%S')} WIB"
            )

        if kind is CommandKind.LIST:
            assignments = await self.store.list_active_assignments()
            return format_assignment_list(assignments, "*[Daftar Tugas Aktif]*", now, personal=False)

        if kind is CommandKind.TODO:
            assignments = await self.store.list_active_assignments(exclude_completed_by=sender_id)
            return format_assignment_list(assignments, "*[To-Do Kamu]*", now, personal=True)

        if kind is CommandKind.TODAY:
            today = to_wib(now).date()
            todo = await self.store.list_active_assignments(exclude_completed_by=sender_id)
            due = [a for a in todo if a.deadline is not None and to_wib(a.deadline).date() == today]
            return format_assignment_list(due, "*[Tugas Hari Ini]*", now, personal=True, footer=PERIOD_FOOTER)

        if kind is CommandKind.WEEK:
            week_end = now + timedelta(days=7)
            todo = await self.store.list_active_assignments(exclude_completed_by=sender_id)
            due = [a for a in todo if a.deadline is not None and now <= a.deadline <= week_end]
            return format_assignment_list(
                due, "📆 *Tugas Minggu Ini (7 Hari)*", now, personal=True, footer=PERIOD_FOOTER
            )

        if kind is CommandKind.UNDO:
            last = await self.store.last_completed(sender_id)
            if last is None:
                return (
                    "❌ Tidak ada tugas yang baru saja kamu selesaikan.\n\n"
                    "💡 #undo hanya membatalkan tugas terakhir yang kamu tandai selesai."
                )
            await self.store.unmark_complete(last.id, sender_id)
            return (
                f"↩️ Oke! Tugas *{sanitize_wa_md(last.title)}* ditandai belum selesai.\n\n"
                "Ketik #todo untuk lihat daftar terbaru."
            )

        if kind is CommandKind.EXPAND:
            target = await self._todo_item(sender_id, command.argument)
            if target is None:
                return self._not_found(command.argument)
            return format_assignment_detail(command.argument, target, now)

        if kind is CommandKind.DONE:
            target = await self._todo_item(sender_id, command.argument)
            if target is None:
                return self._not_found(command.argument)
            await self.store.mark_complete(target.id, sender_id)
            return f"✅ Mantap! Tugas *{sanitize_wa_md(target.title)}* selesai."

        if kind is CommandKind.HELP:
            return HELP_TEXT

        return (
            f"❓ Command tidak dikenali: *{sanitize_wa_md(command.raw)}*\n\n"
            "Ketik *#help* untuk melihat daftar command."
        )

    async def _todo_item(self, sender_id: str, number: Optional[int]) -> Optional[Assignment]:
        if number is None or number < 1:
            return None
        todo = await self.store.list_active_assignments(exclude_completed_by=sender_id)
        if number > len(todo):
            return None
        return todo[number - 1]

    @staticmethod
    def _not_found(number: Optional[int]) -> str:
        return (
            f"❌ Tugas nomor *{number}* tidak ditemukan di to-do list kamu.\n\n"
            "💡 Ketik #todo untuk lihat daftar tugas."
        )
