import asyncio
from datetime import datetime, timezone
from uuid import uuid4

import pytest

from storage import db
from storage.assignment_store import PostgresAssignmentStore


class FakePool:
    def __init__(self, row=None, status="DELETE 1"):
        self.row = row
        self.status = status
        self.queries = []

    async def fetchrow(self, query, *args):
        self.queries.append((query, args))
        return self.row

    async def execute(self, query, *args):
        self.queries.append((query, args))
        return self.status


@pytest.fixture
def pool(monkeypatch):
    def _install(**kwargs):
        fake = FakePool(**kwargs)
        monkeypatch.setattr(db, "_pool", fake)
        return fake
    return _install


def test_helpers_need_a_pool(monkeypatch):
    monkeypatch.setattr(db, "_pool", None)
    with pytest.raises(RuntimeError):
        asyncio.run(db.fetchrow("SELECT 1"))


def test_last_completed_orders_by_completion_time(pool):
    assignment_id = uuid4()
    fake = pool(row={
        "id": assignment_id, "course_id": None, "course_name": None, "title": "LKP 14",
        "description": "", "deadline": None, "parallel_code": "k1", "sender_id": None,
        "message_ids": ["wamid-1"], "created_at": datetime(2026, 1, 14, tzinfo=timezone.utc),
    })
    found = asyncio.run(PostgresAssignmentStore().last_completed("628111@c.us"))
    assert found.id == assignment_id
    assert found.message_id == "wamid-1"
    query, args = fake.queries[0]
    assert "ORDER BY ac.completed_at DESC" in query
    assert args == ("628111@c.us",)


def test_last_completed_none(pool):
    pool(row=None)
    assert asyncio.run(PostgresAssignmentStore().last_completed("628111@c.us")) is None


def test_unmark_complete(pool):
    assignment_id = uuid4()
    fake = pool(status="DELETE 1")
    assert asyncio.run(PostgresAssignmentStore().unmark_complete(assignment_id, "628111@c.us"))
    query, args = fake.queries[0]
    assert query.startswith("DELETE FROM assignment_completions")
    assert args == (assignment_id, "628111@c.us")

    pool(status="DELETE 0")
    assert not asyncio.run(PostgresAssignmentStore().unmark_complete(assignment_id, "628111@c.us"))
