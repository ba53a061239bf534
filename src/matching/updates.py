from __future__ import annotations

import logging
from typing import Any, Dict

from clarification.deadline_parser import parse_model_deadline
from clarification.parallel import is_valid_parallel_code, normalize_parallel_code
from llm.schemas import AssignmentUpdate
from marbot.models import Assignment, FieldId

logger = logging.getLogger(__name__)


def update_deltas(update: AssignmentUpdate) -> Dict[FieldId, Any]:
    """Field changes carried by an update verdict, ready to persist."""
    deltas: Dict[FieldId, Any] = {}

    if update.new_deadline:
        deadline = parse_model_deadline(update.new_deadline)
        if deadline is not None:
            deltas[FieldId.DEADLINE] = deadline
        else:
            logger.warning(f"Ignoring unreadable new deadline {update.new_deadline!r}")

    if update.new_title and update.new_title.strip():
        deltas[FieldId.TITLE] = update.new_title.strip()
    if update.new_description and update.new_description.strip():
        deltas[FieldId.DESCRIPTION] = update.new_description.strip()

    if update.parallel_code:
        code = normalize_parallel_code(update.parallel_code)
        if is_valid_parallel_code(code):
            deltas[FieldId.PARALLEL_CODE] = code
    return deltas


def apply_update(assignment: Assignment, deltas: Dict[FieldId, Any]) -> Assignment:
    return assignment.model_copy(update={f.value: v for f, v in deltas.items()})


def describe_deltas(deltas: Dict[FieldId, Any]) -> str:
    return ", ".join(f.value for f in deltas) or "nothing"
