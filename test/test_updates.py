from datetime import datetime, timezone

from llm.schemas import AssignmentUpdate
from marbot.models import Assignment, FieldId
from matching.updates import apply_update, describe_deltas, update_deltas


def test_deltas_from_update():
    update = AssignmentUpdate(
        new_deadline="2026-01-21",
        new_title="  LKP 15 ",
        new_description="",
        parallel_code="ALL",
    )
    assert update_deltas(update) == {
        FieldId.DEADLINE: datetime(2026, 1, 21, 16, 59, tzinfo=timezone.utc),
        FieldId.TITLE: "LKP 15",
        FieldId.PARALLEL_CODE: "all",
    }


def test_unreadable_values_are_dropped():
    update = AssignmentUpdate(new_deadline="minggu depan", parallel_code="kelas a", new_title="   ")
    assert update_deltas(update) == {}
    assert describe_deltas({}) == "nothing"


def test_apply_update():
    a = Assignment(title="LKP 14", parallel_code="k1")
    deltas = update_deltas(AssignmentUpdate(new_deadline="2026-01-21 08:00", parallel_code="k2"))
    updated = apply_update(a, deltas)
    assert updated.id == a.id
    assert updated.title == "LKP 14"
    assert updated.parallel_code == "k2"
    assert updated.deadline == datetime(2026, 1, 21, 1, 0, tzinfo=timezone.utc)
    assert describe_deltas(deltas) == "deadline, parallel_code"
