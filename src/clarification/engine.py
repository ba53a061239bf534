"""
Clarification state machine.

An assignment is COMPLETE when no field is missing and
AWAITING_CLARIFICATION otherwise. A reply either RESOLVES (some fields
merged, the assignment may still be missing others) or is CANCELLED; a
reply that cannot be read leaves the assignment where it was.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from clarification.deadline_parser import parse_model_deadline
from clarification.parallel import is_valid_parallel_code, normalize_parallel_code
from clarification.reply_parser import (
    ClarificationParseError,
    parse_clarification_response,
)
from marbot.formatting import format_deadline, sanitize_wa_md
from marbot.models import FIELD_ORDER, Assignment, FieldId
from marbot.timeutil import Clock, wib_now

logger = logging.getLogger(__name__)

GENERIC_TITLES = {
    "tugas", "tugas baru", "tugas kuliah", "assignment", "new assignment",
    "pr", "lkp", "homework", "task", "kuis", "quiz", "untitled", "tanpa judul",
    "unknown", "-",
}

GENERIC_DESCRIPTIONS = {
    "no description", "brief description", "description", "deskripsi",
    "tidak ada deskripsi", "tanpa deskripsi", "tidak ada", "none", "-",
    "assignment", "tugas",
}

UNKNOWN_COURSES = {"unknown", "unknown course", "tidak diketahui"}

MIN_TITLE_LEN = 3
MIN_DESCRIPTION_LEN = 10

FIELD_LABELS: Dict[FieldId, str] = {
    FieldId.COURSE_NAME: "📚 Nama Mata Kuliah",
    FieldId.TITLE: "📝 Judul Tugas",
    FieldId.DEADLINE: "⏰ Deadline",
    FieldId.PARALLEL_CODE: "🧩 Kode Paralel (K1/K2/K3)",
    FieldId.DESCRIPTION: "📄 Deskripsi/Keterangan",
}

# (template key, format hint) per field; keys are understood by the reply parser.
TEMPLATE_LINES: Dict[FieldId, tuple] = {
    FieldId.COURSE_NAME: ("Matkul", "[nama mata kuliah]"),
    FieldId.TITLE: ("Judul", "[judul tugas]"),
    FieldId.DEADLINE: ("Deadline", "[DD-MM HH:MM]"),
    FieldId.PARALLEL_CODE: ("Paralel", "[K1/K2/K3/all]"),
    FieldId.DESCRIPTION: ("Keterangan", "[keterangan singkat]"),
}

DEADLINE_EXAMPLE = "(contoh: 15-01 23:59, 15 Januari 23:59, atau 1501)"


class ClarificationState(str, Enum):
    COMPLETE = "complete"
    AWAITING_CLARIFICATION = "awaiting_clarification"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"


def _is_generic_title(title: str) -> bool:
    t = (title or "").strip().lower()
    return len(t) < MIN_TITLE_LEN or t in GENERIC_TITLES


def _is_generic_description(description: str) -> bool:
    d = (description or "").strip().lower()
    return len(d) < MIN_DESCRIPTION_LEN or d in GENERIC_DESCRIPTIONS


def identify_missing_fields(assignment: Assignment) -> List[FieldId]:
    missing: List[FieldId] = []
    course = (assignment.course_name or "").strip().lower()
    if assignment.course_id is None and (not course or course in UNKNOWN_COURSES):
        missing.append(FieldId.COURSE_NAME)
    if _is_generic_title(assignment.title):
        missing.append(FieldId.TITLE)
    if assignment.deadline is None:
        missing.append(FieldId.DEADLINE)
    if not assignment.parallel_code:
        missing.append(FieldId.PARALLEL_CODE)
    if _is_generic_description(assignment.description):
        missing.append(FieldId.DESCRIPTION)
    return [f for f in FIELD_ORDER if f in missing]


def build_summary_message(assignment: Assignment, missing: List[FieldId]) -> str:
    lines = [
        "⚠️ *PERLU KLARIFIKASI*",
        "",
        "Tugas baru tercatat tapi infonya belum lengkap:",
        f"📚 {sanitize_wa_md(assignment.course_name or '-')}",
        f"📝 {sanitize_wa_md(assignment.title or '-')}",
        f"⏰ {format_deadline(assignment.deadline)}",
        "",
        "*Yang masih kurang:*",
    ]
    lines += [f"• {FIELD_LABELS[f]}" for f in missing]
    lines += [
        "",
        "💡 Salin pesan berikutnya, isi bagian yang kosong, lalu kirim balik.",
        "Ketik *batal* untuk membatalkan.",
    ]
    return "\n".join(lines)


def build_template_message(assignment: Assignment, missing: List[FieldId]) -> str:
    lines = [f"🆔 ID: `{assignment.id}`"]
    for f in missing:
        key, hint = TEMPLATE_LINES[f]
        if f is FieldId.DEADLINE:
            lines.append(f"{key}: {hint} {DEADLINE_EXAMPLE}")
        else:
            lines.append(f"{key}: {hint}")
    return "\n".join(lines)


def build_format_help() -> str:
    return (
        "❓ Balasanmu belum bisa dibaca.\n"
        "Balas dengan format *kunci: nilai* per baris, misalnya:\n"
        "Deadline: 15-01 23:59\n"
        "Paralel: K1\n"
        "Atau ketik *batal* untuk membatalkan."
    )


@dataclass
class ClarificationOutcome:
    state: ClarificationState
    assignment: Assignment
    changes: Dict[FieldId, Any] = field(default_factory=dict)
    missing: List[FieldId] = field(default_factory=list)
    error: Optional[ClarificationParseError] = None

    @property
    def error_kind(self) -> Optional[str]:
        return self.error.kind if self.error is not None else None


class ClarificationEngine:
    def __init__(self, clock: Clock = wib_now):
        self.clock = clock

    def state_of(self, assignment: Assignment) -> ClarificationState:
        if identify_missing_fields(assignment):
            return ClarificationState.AWAITING_CLARIFICATION
        return ClarificationState.COMPLETE

    def prompt_messages(self, assignment: Assignment) -> List[str]:
        """Summary plus copy-paste template; empty when nothing is missing."""
        missing = identify_missing_fields(assignment)
        if not missing:
            return []
        return [
            build_summary_message(assignment, missing),
            build_template_message(assignment, missing),
        ]

    def _coerce(self, updates: Dict[FieldId, str]) -> Dict[FieldId, Any]:
        changes: Dict[FieldId, Any] = {}
        for field_id, value in updates.items():
            if field_id is FieldId.DEADLINE:
                deadline = parse_model_deadline(value)
                if deadline is not None:
                    changes[field_id] = deadline
            elif field_id is FieldId.PARALLEL_CODE:
                code = normalize_parallel_code(value)
                if is_valid_parallel_code(code):
                    changes[field_id] = code
                else:
                    logger.info(f"Ignoring invalid parallel code {value!r}")
            else:
                value = value.strip()
                if value:
                    changes[field_id] = value
        return changes

    def handle_reply(self, assignment: Assignment, reply_text: str) -> ClarificationOutcome:
        """Apply a clarification reply to an assignment.

        Course names are merged as text; resolving them to a course record
        is the caller's job since it needs the store.
        """
        missing = identify_missing_fields(assignment)
        try:
            reply = parse_clarification_response(
                reply_text,
                existing_deadline=assignment.deadline,
                current_year=self.clock().year,
            )
        except ClarificationParseError as e:
            logger.info(f"Clarification reply for {assignment.id} not usable ({e.kind}): {e}")
            return ClarificationOutcome(
                ClarificationState.AWAITING_CLARIFICATION, assignment, missing=missing, error=e
            )

        if reply.cancelled:
            logger.info(f"Clarification for {assignment.id} cancelled")
            return ClarificationOutcome(ClarificationState.CANCELLED, assignment, missing=missing)

        changes = self._coerce(reply.updates)
        merged = apply_field_changes(assignment, changes)
        return ClarificationOutcome(
            ClarificationState.RESOLVED,
            merged,
            changes=changes,
            missing=identify_missing_fields(merged),
        )


def apply_field_changes(assignment: Assignment, changes: Dict[FieldId, Any]) -> Assignment:
    update = {f.value: v for f, v in changes.items()}
    if FieldId.COURSE_NAME in changes:
        # the old course id no longer describes this assignment
        update["course_id"] = None
    return assignment.model_copy(update=update)
