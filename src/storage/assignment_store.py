"""
Assignment persistence.

`AssignmentStore` is what the message pipeline talks to. The Postgres
implementation runs on the shared asyncpg pool from `storage.db`.
"""

import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from marbot.models import Assignment, Course, SenderPattern
from storage import db

logger = logging.getLogger(__name__)

ACTIVE_LIMIT = 100
HISTORY_LIMIT = 10

# Columns the pipeline may change after creation.
UPDATABLE_COLUMNS = ("course_id", "title", "description", "deadline", "parallel_code")


class AssignmentStore(ABC):
    @abstractmethod
    async def list_courses(self) -> List[Course]:
        raise NotImplementedError

    async def find_course(self, name: str) -> Optional[Course]:
        """Case-insensitive lookup by canonical name or alias."""
        for course in await self.list_courses():
            if course.matches(name):
                return course
        return None

    @abstractmethod
    async def list_active_assignments(
        self,
        limit: int = ACTIVE_LIMIT,
        exclude_completed_by: Optional[str] = None,
    ) -> List[Assignment]:
        """Assignments whose deadline has not passed (or is unset), newest first."""
        raise NotImplementedError

    @abstractmethod
    async def sender_history(self, sender_id: str, limit: int = HISTORY_LIMIT) -> List[SenderPattern]:
        raise NotImplementedError

    @abstractmethod
    async def get_assignment(self, assignment_id: UUID) -> Optional[Assignment]:
        raise NotImplementedError

    @abstractmethod
    async def create_assignment(self, assignment: Assignment) -> Assignment:
        raise NotImplementedError

    @abstractmethod
    async def update_assignment(self, assignment_id: UUID, fields: Dict[str, Any]) -> Optional[Assignment]:
        raise NotImplementedError

    @abstractmethod
    async def mark_complete(self, assignment_id: UUID, user_id: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def last_completed(self, user_id: str) -> Optional[Assignment]:
        """The assignment this user most recently marked complete."""
        raise NotImplementedError

    @abstractmethod
    async def unmark_complete(self, assignment_id: UUID, user_id: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def ping(self) -> float:
        """Round-trip latency in seconds."""
        raise NotImplementedError


def check_columns(fields: Dict[str, Any]) -> None:
    unknown = set(fields) - set(UPDATABLE_COLUMNS)
    if unknown:
        raise ValueError(f"Cannot update columns: {sorted(unknown)}")


_SELECT_ASSIGNMENT = """
    SELECT a.id, a.course_id, c.name AS course_name, a.title, a.description,
           a.deadline, a.parallel_code, a.sender_id, a.message_ids, a.created_at
    FROM assignments a
    LEFT JOIN courses c ON c.id = a.course_id
"""


def _assignment_from_record(record) -> Assignment:
    message_ids = record["message_ids"] or []
    return Assignment(
        id=record["id"],
        course_id=record["course_id"],
        course_name=record["course_name"],
        title=record["title"],
        description=record["description"],
        deadline=record["deadline"],
        parallel_code=record["parallel_code"],
        sender_id=record["sender_id"],
        message_id=message_ids[0] if message_ids else None,
        created_at=record["created_at"],
    )


class PostgresAssignmentStore(AssignmentStore):
    async def list_courses(self) -> List[Course]:
        rows = await db.fetch("SELECT id, name, aliases FROM courses ORDER BY name")
        return [Course(id=r["id"], name=r["name"], aliases=list(r["aliases"] or [])) for r in rows]

    async def list_active_assignments(
        self,
        limit: int = ACTIVE_LIMIT,
        exclude_completed_by: Optional[str] = None,
    ) -> List[Assignment]:
        query = _SELECT_ASSIGNMENT + """
            WHERE (a.deadline IS NULL OR a.deadline >= now())
              AND ($2::text IS NULL OR NOT EXISTS (
                    SELECT 1 FROM assignment_completions ac
                    WHERE ac.assignment_id = a.id AND ac.user_id = $2))
            ORDER BY a.created_at DESC
            LIMIT $1
        """
        rows = await db.fetch(query, limit, exclude_completed_by)
        return [_assignment_from_record(r) for r in rows]

    async def sender_history(self, sender_id: str, limit: int = HISTORY_LIMIT) -> List[SenderPattern]:
        query = """
            SELECT c.name AS course_name, a.parallel_code, COUNT(*) AS count
            FROM assignments a
            JOIN courses c ON a.course_id = c.id
            WHERE a.sender_id = $1 AND a.parallel_code IS NOT NULL
            GROUP BY c.name, a.parallel_code
            ORDER BY count DESC
            LIMIT $2
        """
        rows = await db.fetch(query, sender_id, limit)
        return [
            SenderPattern(course_name=r["course_name"], parallel_code=r["parallel_code"], count=r["count"])
            for r in rows
        ]

    async def get_assignment(self, assignment_id: UUID) -> Optional[Assignment]:
        record = await db.fetchrow(_SELECT_ASSIGNMENT + " WHERE a.id = $1", assignment_id)
        return _assignment_from_record(record) if record else None

    async def create_assignment(self, assignment: Assignment) -> Assignment:
        query = """
            INSERT INTO assignments (
                id, course_id, title, description, deadline,
                parallel_code, sender_id, message_ids, created_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
        """
        await db.execute(
            query,
            assignment.id,
            assignment.course_id,
            assignment.title,
            assignment.description,
            assignment.deadline,
            assignment.parallel_code,
            assignment.sender_id,
            [assignment.message_id] if assignment.message_id else [],
            assignment.created_at,
        )
        logger.info(f"Created assignment {assignment.id} ({assignment.title})")
        return await self.get_assignment(assignment.id) or assignment

    async def update_assignment(self, assignment_id: UUID, fields: Dict[str, Any]) -> Optional[Assignment]:
        check_columns(fields)
        if fields:
            columns = list(fields)
            set_clause = ", ".join(f"{col} = ${i + 2}" for i, col in enumerate(columns))
            await db.execute(
                f"UPDATE assignments SET {set_clause} WHERE id = $1",
                assignment_id,
                *[fields[c] for c in columns],
            )
            logger.info(f"Updated assignment {assignment_id}: {', '.join(columns)}")
        return await self.get_assignment(assignment_id)

    async def mark_complete(self, assignment_id: UUID, user_id: str) -> bool:
        status = await db.execute(
            """
            INSERT INTO assignment_completions (assignment_id, user_id)
            VALUES ($1, $2)
            ON CONFLICT DO NOTHING
            """,
            assignment_id,
            user_id,
        )
        return status.endswith(" 1")

    async def last_completed(self, user_id: str) -> Optional[Assignment]:
        query = _SELECT_ASSIGNMENT + """
            JOIN assignment_completions ac ON ac.assignment_id = a.id
            WHERE ac.user_id = $1
            ORDER BY ac.completed_at DESC
            LIMIT 1
        """
        record = await db.fetchrow(query, user_id)
        return _assignment_from_record(record) if record else None

    async def unmark_complete(self, assignment_id: UUID, user_id: str) -> bool:
        status = await db.execute(
            "DELETE FROM assignment_completions WHERE assignment_id = $1 AND user_id = $2",
            assignment_id,
            user_id,
        )
        return status.endswith(" 1")

    async def ping(self) -> float:
        start = time.perf_counter()
        await db.fetchval("SELECT 1")
        return time.perf_counter() - start


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
