from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Optional, Sequence

from clarification.parallel import is_valid_parallel_code, normalize_parallel_code
from extraction.prompts import build_context_prompt
from llm.llm_client import LLMClient, ModelTier, TierExhaustedError
from llm.parsing import parse_context_hints
from llm.schemas import AICourseHint
from marbot.models import Course, SenderPattern
from marbot.timeutil import Clock, to_wib, truncate_for_log, wib_now
from scheduling.schedule_oracle import ScheduleOracle

logger = logging.getLogger(__name__)

MAX_SENDER_PATTERNS = 10
DEADLINE_TYPES = {"explicit", "next_meeting", "relative", "unknown"}
PARALLEL_SOURCES = {"explicit", "sender_history", "unknown"}


class ContextResolutionError(Exception):
    """The context model call failed; callers continue without hints."""


@dataclass
class CourseHint:
    course_name: str
    parallel_code: Optional[str] = None
    deadline_type: str = "unknown"
    deadline_hint: Optional[str] = None


@dataclass
class MessageContext:
    parallel_code: Optional[str] = None
    parallel_confidence: float = 0.0
    parallel_source: str = "unknown"
    deadline_hint: Optional[str] = None
    deadline_type: str = "unknown"
    course_hints: List[CourseHint] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "MessageContext":
        return cls()

    def is_empty(self) -> bool:
        return (
            self.parallel_code is None
            and self.deadline_hint is None
            and self.deadline_type == "unknown"
            and not self.course_hints
        )


def _canonical_course_name(name: str, courses: Sequence[Course]) -> str:
    for course in courses:
        if course.matches(name):
            return course.name
    return name.strip()


def _clean_parallel(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    code = normalize_parallel_code(value)
    return code if is_valid_parallel_code(code) else None


def _clean_deadline_type(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    v = value.strip().lower()
    return v if v in DEADLINE_TYPES else "unknown"


class ContextResolver:
    """Cheap pre-pass that guesses parallel codes and deadline kinds.

    The guesses become hints in the extraction prompt; concrete deadline
    hints come from the timetable, never from the model.
    """

    def __init__(self, llm: LLMClient, tier: ModelTier, oracle: Optional[ScheduleOracle], clock: Clock = wib_now):
        self.llm = llm
        self.tier = tier
        self.oracle = oracle
        self.clock = clock

    def resolve(
        self,
        message: str,
        sender_history: Sequence[SenderPattern],
        courses: Sequence[Course],
    ) -> MessageContext:
        history = sorted(sender_history, key=lambda p: p.count, reverse=True)[:MAX_SENDER_PATTERNS]
        prompt = build_context_prompt(message, history, courses)

        logger.info(f"Resolving context for: {truncate_for_log(message)}")
        try:
            hints = self.llm.run_tier(self.tier, prompt, parse_context_hints)
        except TierExhaustedError as e:
            raise ContextResolutionError(str(e)) from e

        global_type = _clean_deadline_type(hints.deadline_type) or "unknown"
        today = to_wib(self.clock()).date()

        course_hints = [
            self._course_hint(raw, global_type, courses, today) for raw in hints.course_hints
        ]

        kinds = {h.deadline_type for h in course_hints}
        if len(kinds) > 1:
            deadline_type = "mixed"
        elif kinds:
            deadline_type = kinds.pop()
        else:
            deadline_type = global_type

        deadline_hint = course_hints[0].deadline_hint if len(course_hints) == 1 else None
        source = hints.parallel_source if hints.parallel_source in PARALLEL_SOURCES else "unknown"

        context = MessageContext(
            parallel_code=_clean_parallel(hints.parallel_code),
            parallel_confidence=hints.parallel_confidence,
            parallel_source=source,
            deadline_hint=deadline_hint,
            deadline_type=deadline_type,
            course_hints=course_hints,
        )
        logger.info(
            f"Context: parallel={context.parallel_code} type={context.deadline_type} "
            f"courses={len(course_hints)} hint={context.deadline_hint}"
        )
        return context

    def _course_hint(self, raw: AICourseHint, global_type: str, courses: Sequence[Course], today: date) -> CourseHint:
        name = _canonical_course_name(raw.course_name, courses)
        parallel = _clean_parallel(raw.parallel_code)
        kind = _clean_deadline_type(raw.deadline_type) or global_type
        return CourseHint(
            course_name=name,
            parallel_code=parallel,
            deadline_type=kind,
            deadline_hint=self._deadline_hint(name, parallel, kind, today),
        )

    def _deadline_hint(self, course_name: str, parallel: Optional[str], kind: str, today: date) -> Optional[str]:
        if kind == "relative":
            return f"{(today + timedelta(days=1)).isoformat()} 23:59"
        if kind != "next_meeting":
            return None
        if parallel is None or parallel == "all" or self.oracle is None:
            logger.info(f"No schedule lookup for {course_name}: parallel={parallel}")
            return None
        meeting = self.oracle.next_meeting(course_name, parallel, today)
        if meeting is None:
            logger.info(f"No timetable entry for {course_name} ({parallel})")
            return None
        day, start = meeting
        return f"{day.isoformat()} {start}"
