from __future__ import annotations

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator


class AssignmentInfo(BaseModel):
    type: Literal["assignment_info"] = "assignment_info"
    course_name: Optional[str] = None
    title: str = ""
    deadline: Optional[str] = None
    description: str = ""
    parallel_code: Optional[str] = None

    @field_validator("description", "title", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else v


class AssignmentUpdate(BaseModel):
    type: Literal["assignment_update"] = "assignment_update"
    reference_keywords: List[str] = Field(default_factory=list)
    changes: str = ""
    new_deadline: Optional[str] = None
    new_title: Optional[str] = None
    new_description: Optional[str] = None
    parallel_code: Optional[str] = None

    @field_validator("changes", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else v


class Unrecognized(BaseModel):
    type: Literal["unrecognized"] = "unrecognized"


Classification = Annotated[
    Union[AssignmentInfo, AssignmentUpdate, Unrecognized],
    Field(discriminator="type"),
]

ClassificationAdapter: TypeAdapter = TypeAdapter(Classification)


class MatchResult(BaseModel):
    assignment_id: Optional[str] = None
    confidence: str = "low"
    reason: Optional[str] = None


class AICourseHint(BaseModel):
    course_name: str
    parallel_code: Optional[str] = None
    deadline_type: Optional[str] = None


class ContextHints(BaseModel):
    """Raw answer of the lightweight context-resolver call."""

    parallel_code: Optional[str] = None
    parallel_confidence: float = Field(0.0, ge=0.0, le=1.0)
    parallel_source: str = "unknown"
    deadline_type: str = "unknown"
    course_hints: List[AICourseHint] = Field(default_factory=list)
