from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator

from marbot.timeutil import to_utc


class FieldId(str, Enum):
    """Assignment fields that can be missing and filled in by clarification."""

    COURSE_NAME = "course_name"
    TITLE = "title"
    DEADLINE = "deadline"
    PARALLEL_CODE = "parallel_code"
    DESCRIPTION = "description"


# Canonical order used by the detector, the template and the reply parser.
FIELD_ORDER: Tuple[FieldId, ...] = (
    FieldId.COURSE_NAME,
    FieldId.TITLE,
    FieldId.DEADLINE,
    FieldId.PARALLEL_CODE,
    FieldId.DESCRIPTION,
)


class Course(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1)
    aliases: List[str] = Field(default_factory=list)

    def matches(self, text: str) -> bool:
        """Case-insensitive match against the canonical name or any alias."""
        needle = (text or "").strip().lower()
        if not needle:
            return False
        if needle == self.name.lower():
            return True
        return any(needle == alias.strip().lower() for alias in self.aliases)


class Assignment(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    course_id: Optional[UUID] = None
    # resolved from course_id for display and prompts, never written back
    course_name: Optional[str] = None

    title: str = ""
    description: str = ""
    deadline: Optional[datetime] = None
    parallel_code: Optional[str] = None

    sender_id: Optional[str] = None
    message_id: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("deadline", "created_at")
    @classmethod
    def store_as_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is None:
            return None
        return to_utc(v)

    @field_validator("parallel_code")
    @classmethod
    def lowercase_parallel(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v2 = v.strip().lower()
        return v2 or None


class SenderPattern(BaseModel):
    """One row of a sender's (course, parallel) posting history."""

    course_name: str
    parallel_code: str
    count: int = Field(1, ge=0)


class ScheduleSlot(BaseModel):
    weekday: int = Field(..., ge=0, le=6)  # Monday == 0
    start_time: str  # "HH:MM"


class ScheduleEntry(BaseModel):
    course_code: str
    parallel_code: str
    slots: List[ScheduleSlot] = Field(default_factory=list)
