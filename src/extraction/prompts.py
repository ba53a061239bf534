"""Prompt builders for the extraction, context and matching calls."""

from __future__ import annotations

import json
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence

from marbot.models import Assignment, Course, SenderPattern
from marbot.timeutil import age_label, to_wib, truncate_for_log

MAX_PROMPT_ASSIGNMENTS = 100
RECENT_MINUTES = 30

SCOPE_CHANGE_MARKERS = ("scope", "untuk semua", "semua kelas", "semua paralel", "all parallel", "pindah ke")


def render_courses(courses: Iterable[Course]) -> str:
    lines = []
    for course in courses:
        if course.aliases:
            lines.append(f"- {course.name} (aliases: {', '.join(course.aliases)})")
        else:
            lines.append(f"- {course.name}")
    return "\n".join(lines) or "(no courses registered)"


def render_active_assignments(assignments: Sequence[Assignment]) -> str:
    if not assignments:
        return "No active assignments in database."

    shown = assignments[:MAX_PROMPT_ASSIGNMENTS]
    lines = []
    for a in shown:
        deadline = to_wib(a.deadline).strftime("%Y-%m-%d") if a.deadline else "No deadline"
        lines.append(
            f"- Course: {a.course_name or 'Unknown Course'}, Title: \"{a.title}\", "
            f"Deadline: {deadline}, Parallel: {a.parallel_code or 'N/A'}, "
            f"Desc: \"{truncate_for_log(a.description, 80)}\""
        )
    if len(assignments) > len(shown):
        lines.append(
            f"(Showing {len(shown)} most recent out of {len(assignments)} total active assignments)"
        )
    return "\n".join(lines)


def render_context(context) -> str:
    """Render a MessageContext as prompt hints; empty string when there are none."""
    if context is None or context.is_empty():
        return ""

    lines = ["CONTEXT HINTS (pre-analysis, trust unless the message says otherwise)"]
    if context.parallel_code:
        lines.append(
            f"• Parallel: {context.parallel_code} "
            f"(confidence {context.parallel_confidence:.2f}, source: {context.parallel_source})"
        )
    lines.append(f"• Deadline type: {context.deadline_type}")
    if context.deadline_hint:
        lines.append(f"• Deadline hint: {context.deadline_hint} (use it if the message gives no explicit date)")
    for hint in context.course_hints:
        parts = [f"parallel={hint.parallel_code or 'null'}"]
        if hint.deadline_hint:
            parts.append(f"deadline={hint.deadline_hint}")
        lines.append(f"• {hint.course_name}: {', '.join(parts)}")
    return "\n".join(lines)


def build_classification_prompt(
    text: str,
    courses: Sequence[Course],
    active_assignments: Sequence[Assignment],
    now: datetime,
    context=None,
) -> str:
    now = to_wib(now)
    today = now.date()
    context_block = render_context(context)
    if context_block:
        context_block = f"\n{context_block}\n"

    return f"""You are a bilingual (Indonesian/English) academic assistant that extracts structured assignment information from group chat messages.

CONTEXT
Current time (WIB, UTC+7): {now.strftime("%Y-%m-%d %H:%M:%S")}
Today's date: {today.isoformat()}

REFERENCE DATES (copy these exact dates):
• Besok / Tomorrow: {(today + timedelta(days=1)).isoformat()}
• Lusa / Day after tomorrow: {(today + timedelta(days=2)).isoformat()}
• Minggu depan / Next week: {(today + timedelta(days=7)).isoformat()}
{context_block}
Message: "{text}"

Available courses:
{render_courses(courses)}

Active assignments (recent):
{render_active_assignments(active_assignments)}

TASK
Classify the message as exactly one of:
1. NEW ASSIGNMENT: announces a task (course, deadline, what to do).
2. ASSIGNMENT UPDATE: changes or clarifies an existing assignment above
   ("deadline berubah", "diundur", "dimajuin", "ternyata", "revisi", "jadinya").
3. UNRECOGNIZED: not about assignments (social chat, vague references).

RULES
• Parallel codes are lowercase: k1, k2, k3, p1, p2, p3, r1, r2, r3, all, or null. Different codes are different assignments.
• Dates: use the reference dates above for besok/lusa/minggu depan; day names mean the next occurrence. Output "YYYY-MM-DD" or "YYYY-MM-DD HH:MM" in WIB.
• Always write a meaningful description; if there is little information use "[Course] [assignment type] [identifier]".
• Never match an update across different courses. When unsure between NEW and UPDATE, prefer NEW.

OUTPUT (one JSON object)
NEW ASSIGNMENT:
{{"type":"assignment_info","course_name":"Pemrograman","title":"LKP 14","deadline":"2026-01-15 23:59","description":"Programming lab assignment 14","parallel_code":"k1"}}

ASSIGNMENT UPDATE:
{{"type":"assignment_update","reference_keywords":["Pemrograman","LKP 14"],"changes":"deadline moved","new_deadline":"2026-01-16","new_title":null,"new_description":null,"parallel_code":"all"}}

UNRECOGNIZED:
{{"type":"unrecognized"}}

Return ONLY valid JSON. No markdown, no explanations."""


def render_sender_history(history: Sequence[SenderPattern]) -> str:
    if not history:
        return "(none)"
    return ", ".join(f"{p.course_name}: {p.parallel_code} ({p.count}x)" for p in history)


def build_context_prompt(message: str, history: Sequence[SenderPattern], courses: Sequence[Course]) -> str:
    return f"""Quick analysis of this message.

MESSAGE: "{message}"

SENDER HISTORY: {render_sender_history(history)}

KNOWN COURSES:
{render_courses(courses)}

RULES
1. Never apply a parallel to several courses unless the message says so for each of them.
   "PEMROG K2, GKV KUIS" means only Pemrograman gets k2; GKV gets null.
2. A course without an explicit parallel may take it from the sender history for that same course, otherwise null.
3. Use the canonical course name from KNOWN COURSES.

Answer in JSON:
- parallel_code: global parallel (k1..k3/p1..p3/r1..r3/null), only when every course in the message has that same parallel
- parallel_confidence: 0.0-1.0
- parallel_source: "explicit" | "sender_history" | "unknown"
- deadline_type: "explicit" | "next_meeting" | "relative" | "unknown"
    explicit: a concrete date; next_meeting: "sebelum pertemuan", "before next class";
    relative: "besok", "lusa", "minggu depan"; unknown: no deadline mentioned
- course_hints: one entry per course in the message, each with its own deadline_type

Example:
{{"parallel_code":null,"parallel_confidence":0.0,"parallel_source":"unknown","deadline_type":"next_meeting",
 "course_hints":[{{"course_name":"Struktur Data","parallel_code":"k2","deadline_type":"next_meeting"}},
                 {{"course_name":"Organisasi dan Arsitektur Komputer","parallel_code":null,"deadline_type":"unknown"}}]}}

OUTPUT: JSON only, no markdown."""


def is_scope_change(text: str) -> bool:
    lower = (text or "").lower()
    return any(marker in lower for marker in SCOPE_CHANGE_MARKERS)


def render_candidates(candidates: Sequence[Assignment], now: datetime) -> str:
    lines: List[str] = []
    for i, a in enumerate(candidates, start=1):
        description = truncate_for_log(a.description, 60) if a.description else "(no description)"
        recent = ""
        if (to_wib(now) - to_wib(a.created_at)) < timedelta(minutes=RECENT_MINUTES):
            recent = " ⚡ RECENT"
        lines.append(
            f"#{i}: {a.id} | {a.course_name or 'Unknown Course'} | \"{a.title}\" | "
            f"Parallel: {a.parallel_code or 'N/A'} | Desc: \"{description}\" | "
            f"{age_label(a.created_at, now)}{recent}"
        )
    return "\n".join(lines)


def build_matching_prompt(
    changes: str,
    keywords: Sequence[str],
    parallel_code: Optional[str],
    candidates: Sequence[Assignment],
    now: datetime,
    message_text: Optional[str] = None,
) -> str:
    parallel_info = (
        f"Parallel code in update: {parallel_code}" if parallel_code else "Parallel code: (not specified)"
    )
    scope_text = " ".join(filter(None, [changes, message_text or ""]))
    scope_line = ""
    if is_scope_change(scope_text):
        scope_line = (
            "\nSCOPE CHANGE: this update changes which parallels the assignment applies to. "
            "Ignore parallel mismatches when matching.\n"
        )

    return f"""Match this update to an existing assignment.

CONTEXT
Time (WIB): {to_wib(now).strftime("%Y-%m-%d %H:%M:%S")}
Update: "{changes}"
Keywords: {json.dumps(list(keywords), ensure_ascii=False)}
{parallel_info}
{scope_line}
Assignments:
{render_candidates(candidates, now)}

DECISION PROCEDURE
1. Course filter: the first keyword is usually the course. Only consider assignments of that course (aliases count).
2. Semantic ranking: match on meaning, not exact strings ("coding pake kertas" matches "Coding on Paper").
3. Parallel policy: on a SCOPE CHANGE ("scope", "untuk semua", moving a task to another section) ignore parallel
   differences. Otherwise the parallel must match exactly; k1 and k2 are different assignments.
4. Recency: between equally good candidates prefer the newest; ⚡ RECENT ones (under {RECENT_MINUTES} minutes old) weigh extra.
5. If you are not sure, answer low confidence with a null id.

OUTPUT: {{"assignment_id":"uuid","confidence":"high","reason":"..."}} or {{"assignment_id":null,"confidence":"low","reason":"..."}}
Return ONLY valid JSON."""
