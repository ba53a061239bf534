from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional
from uuid import UUID

from clarification.deadline_parser import (
    DeadlineParseError,
    parse_flexible_deadline,
    parse_time_only,
)
from clarification.parallel import detect_parallel_code, normalize_parallel_code
from marbot.models import FieldId
from marbot.timeutil import to_wib

logger = logging.getLogger(__name__)

CANCEL_WORDS = {
    "cancel", "batal", "batalkan", "tidak", "gak jadi", "ga jadi", "nggak jadi", "skip",
}

KEY_SYNONYMS: Dict[FieldId, tuple] = {
    FieldId.COURSE_NAME: ("course", "course name", "mata kuliah", "matkul", "mk", "nama mata kuliah"),
    FieldId.TITLE: ("title", "judul", "judul tugas", "nama tugas"),
    FieldId.DEADLINE: ("deadline", "due", "due date", "batas waktu", "tenggat", "dl"),
    FieldId.PARALLEL_CODE: (
        "parallel", "paralel", "parallel code", "kode paralel", "kode parallel", "kode", "code", "kelas",
    ),
    FieldId.DESCRIPTION: ("description", "deskripsi", "keterangan", "desc", "ket"),
}
_KEY_LOOKUP = {syn: fid for fid, syns in KEY_SYNONYMS.items() for syn in syns}

ID_MARKER = "ID:"
_SKIP_PREFIXES = ("(", "format", "tip", "💡", "_")
_PLACEHOLDER_VALUES = {"...", "…", "-", "—", "?", "n/a"}
_FORMAT_HINTS = ("dd-mm", "hh:mm", "k1/k2", "yyyy", "nama mata kuliah", "judul tugas", "keterangan singkat")
_MIN_DESCRIPTION_FALLBACK = 4
# "(contoh: ...)" suffix copied back from the template
_EXAMPLE_SUFFIX = re.compile(r"\s*\((?:contoh|example|e\.g\.)[^)]*\)", re.IGNORECASE)


class ClarificationParseError(ValueError):
    kind = "invalid"


class MissingDateError(ClarificationParseError):
    """Time-only reply but the assignment has no date to attach it to."""

    kind = "no_date"


class UnparseableReplyError(ClarificationParseError):
    """Nothing in the reply could be mapped to a field."""

    kind = "no_data"


@dataclass(frozen=True)
class ClarificationReply:
    cancelled: bool = False
    updates: Dict[FieldId, str] = field(default_factory=dict)


def _clean_key(key: str) -> str:
    key = key.strip().strip("*_`").lower()
    # drop leading emoji / bullets
    key = re.sub(r"^[^a-z0-9]+", "", key)
    return " ".join(key.split())


def _strip_id_lines(text: str) -> str:
    """Drop the `🆔 ID: ...` line users copy back along with the template."""
    kept = [
        line for line in text.splitlines()
        if not (":" in line and _clean_key(line.split(":", 1)[0]) == "id")
    ]
    return "\n".join(kept)


def _is_placeholder(value: str) -> bool:
    v = value.strip().lower()
    if not v or v in _PLACEHOLDER_VALUES:
        return True
    if v[0] in "[<" or v.startswith("..."):
        return True
    return any(hint in v for hint in _FORMAT_HINTS)


def _time_on_existing_date(value: str, existing_deadline: Optional[datetime]) -> Optional[str]:
    at = parse_time_only(value)
    if at is None:
        return None
    if existing_deadline is None:
        raise MissingDateError("time given without a date")
    day = to_wib(existing_deadline).date()
    return f"{day.isoformat()} {at.strftime('%H:%M')}"


def parse_clarification_response(
    text: str,
    *,
    current_year: int,
    existing_deadline: Optional[datetime] = None,
) -> ClarificationReply:
    """Map a free-text clarification reply onto field updates.

    Deadline values come back normalized as `YYYY-MM-DD[ HH:MM]` (WIB),
    parallel codes normalized. Raises MissingDateError or
    UnparseableReplyError; a cancellation is a normal return value.
    """
    text = _strip_id_lines((text or "").replace("`", "")).strip()
    lowered = text.lower()

    if lowered in CANCEL_WORDS:
        return ClarificationReply(cancelled=True)
    if not text:
        raise UnparseableReplyError("empty reply")

    # whole reply is just a time
    merged = _time_on_existing_date(text, existing_deadline)
    if merged is not None:
        return ClarificationReply(updates={FieldId.DEADLINE: merged})

    updates: Dict[FieldId, str] = {}
    structured_found = False

    for line in text.splitlines():
        line = line.strip()
        if not line or line.lower().startswith(_SKIP_PREFIXES):
            continue
        if ":" not in line:
            continue
        key, value = line.split(":", 1)
        field_id = _KEY_LOOKUP.get(_clean_key(key))
        if field_id is None:
            continue
        structured_found = True
        value = _EXAMPLE_SUFFIX.sub("", value).strip()
        if _is_placeholder(value):
            continue

        if field_id is FieldId.DEADLINE:
            try:
                merged = _time_on_existing_date(value, existing_deadline)
                updates[field_id] = merged or str(parse_flexible_deadline(value, current_year))
            except (DeadlineParseError, MissingDateError) as e:
                logger.warning(f"Skipping deadline line {value!r}: {e}")
        elif field_id is FieldId.PARALLEL_CODE:
            updates[field_id] = normalize_parallel_code(value)
        else:
            updates[field_id] = value

    if not structured_found:
        updates.update(_parse_unstructured(text, current_year))

    if not updates:
        raise UnparseableReplyError("no recognizable field in reply")
    return ClarificationReply(updates=updates)


def _parse_unstructured(text: str, current_year: int) -> Dict[FieldId, str]:
    """Free-text reply: parallel code and deadline first, description last.

    A parallel code or date anywhere in the text wins over the description,
    so "kerjakan semua soal bab 3" reads as parallel `all` and nothing else.
    Descriptions containing such words must use the `Keterangan:` key.
    """
    updates: Dict[FieldId, str] = {}

    code = detect_parallel_code(text)
    if code is not None:
        updates[FieldId.PARALLEL_CODE] = code

    try:
        updates[FieldId.DEADLINE] = str(parse_flexible_deadline(text, current_year))
    except DeadlineParseError:
        pass

    if updates:
        return updates

    starts_with_id = text.lstrip("🆔 ").upper().startswith(ID_MARKER)
    if len(text) >= _MIN_DESCRIPTION_FALLBACK and not starts_with_id:
        updates[FieldId.DESCRIPTION] = text
    return updates


def extract_assignment_id(text: str) -> Optional[UUID]:
    """Recover the assignment id embedded in a clarification template."""
    text = text or ""
    for line in text.splitlines():
        if "id:" not in line.lower():
            continue
        _, after = line.split(":", 1)
        token = after.replace("`", " ").strip().split()
        if not token:
            continue
        try:
            return UUID(token[0])
        except ValueError:
            continue

    for token in text.replace("`", " ").split():
        token = token.strip(".,;:!?()[]{}\"'*_")
        if len(token) < 32:
            continue
        try:
            return UUID(token)
        except ValueError:
            continue
    return None
