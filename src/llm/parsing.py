from __future__ import annotations

import json
import logging
from typing import Optional
from uuid import UUID

from pydantic import ValidationError

from llm.schemas import (
    ClassificationAdapter,
    ContextHints,
    MatchResult,
    Unrecognized,
)
from marbot.timeutil import truncate_for_log

logger = logging.getLogger(__name__)


class ResponseFormatError(ValueError):
    """Model answered, but the body is unusable. Retryable within a tier."""


def clean_json_text(ai_text: str) -> str:
    """Strip whitespace and markdown code fences around a JSON body."""
    cleaned = (ai_text or "").strip()
    for fence in ("```json", "```"):
        if cleaned.startswith(fence):
            cleaned = cleaned[len(fence):]
            break
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def is_valid_json_object(s: str) -> bool:
    return (
        s.startswith("{")
        and s.endswith("}")
        and s.count("{") == s.count("}")
    )


def _load_object(ai_text: str) -> dict:
    cleaned = clean_json_text(ai_text)
    if not is_valid_json_object(cleaned):
        raise ResponseFormatError(f"not a JSON object: {truncate_for_log(cleaned)}")
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ResponseFormatError(f"invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ResponseFormatError("JSON body is not an object")
    return data


def parse_classification(ai_text: str):
    """Parse a model answer into a Classification.

    Raises ResponseFormatError for anything the tier should fall over on,
    including an Unrecognized verdict that never actually said so.
    """
    data = _load_object(ai_text)
    try:
        classification = ClassificationAdapter.validate_python(data)
    except ValidationError as e:
        raise ResponseFormatError(f"schema mismatch: {e.error_count()} error(s)") from e

    if isinstance(classification, Unrecognized) and "unrecognized" not in ai_text.lower():
        raise ResponseFormatError("suspicious unrecognized verdict")
    return classification


def parse_context_hints(ai_text: str) -> ContextHints:
    data = _load_object(ai_text)
    try:
        return ContextHints.model_validate(data)
    except ValidationError as e:
        raise ResponseFormatError(f"context hints mismatch: {e.error_count()} error(s)") from e


def parse_match_result(ai_text: str) -> Optional[UUID]:
    """Return the matched id only for a high-confidence answer.

    Never raises: an unreadable answer means "no match".
    """
    try:
        result = MatchResult.model_validate(_load_object(ai_text))
    except (ResponseFormatError, ValidationError) as e:
        logger.warning(f"Failed to parse match result: {e}")
        return None

    logger.info(f"Match confidence={result.confidence} reason={truncate_for_log(result.reason or '')}")
    if result.confidence.strip().lower() != "high" or not result.assignment_id:
        return None
    try:
        return UUID(result.assignment_id.strip())
    except ValueError:
        logger.warning(f"Match returned a malformed id: {result.assignment_id}")
        return None
