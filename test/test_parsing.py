import json
from uuid import uuid4

import pytest

from llm.parsing import (
    ResponseFormatError,
    clean_json_text,
    is_valid_json_object,
    parse_classification,
    parse_context_hints,
    parse_match_result,
)
from llm.schemas import AssignmentInfo, AssignmentUpdate, Unrecognized


def test_clean_json_text_strips_fences():
    assert clean_json_text('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert clean_json_text('```\n{"a": 1}```') == '{"a": 1}'
    assert clean_json_text('  {"a": 1}  ') == '{"a": 1}'


def test_is_valid_json_object():
    assert is_valid_json_object('{"a": {"b": 1}}')
    assert not is_valid_json_object('{"a": {"b": 1}')
    assert not is_valid_json_object("[1, 2]")
    assert not is_valid_json_object("")


def test_parse_assignment_info():
    body = {"type": "assignment_info", "course_name": "Pemrograman", "title": "LKP 14", "description": None}
    result = parse_classification("```json\n" + json.dumps(body) + "\n```")
    assert isinstance(result, AssignmentInfo)
    assert result.description == ""


def test_parse_assignment_update():
    body = {"type": "assignment_update", "reference_keywords": ["lkp", "14"], "new_deadline": "2026-01-21 23:59"}
    result = parse_classification(json.dumps(body))
    assert isinstance(result, AssignmentUpdate)
    assert result.reference_keywords == ["lkp", "14"]


def test_parse_unrecognized():
    assert isinstance(parse_classification('{"type": "unrecognized"}'), Unrecognized)


@pytest.mark.parametrize(
    "text",
    [
        "",
        "Sure! Here is the JSON",
        '{"type": "assignment_info"',
        '{"type": "homework"}',
        '{"type": "\\u0075nrecognized"}',
        "[]",
    ],
)
def test_unusable_classification(text):
    with pytest.raises(ResponseFormatError):
        parse_classification(text)


def test_parse_context_hints():
    hints = parse_context_hints(json.dumps({
        "parallel_code": "k2",
        "parallel_confidence": 0.9,
        "deadline_type": "next_meeting",
        "course_hints": [{"course_name": "Struktur Data", "parallel_code": "k2", "deadline_type": "next_meeting"}],
    }))
    assert hints.course_hints[0].course_name == "Struktur Data"


def test_context_hints_out_of_range():
    with pytest.raises(ResponseFormatError):
        parse_context_hints('{"parallel_confidence": 3}')


def test_match_result_high():
    uid = uuid4()
    assert parse_match_result(json.dumps({"assignment_id": str(uid), "confidence": "HIGH"})) == uid


@pytest.mark.parametrize(
    "text",
    [
        json.dumps({"assignment_id": "6f1c3a52-7e4b-4b8e-9c1d-0a2b3c4d5e6f", "confidence": "medium"}),
        json.dumps({"assignment_id": None, "confidence": "high"}),
        json.dumps({"assignment_id": "lkp-14", "confidence": "high"}),
        "no idea",
    ],
)
def test_match_result_no_match(text):
    assert parse_match_result(text) is None
