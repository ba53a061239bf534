from __future__ import annotations

import time
from collections import Counter
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from marbot.models import Assignment, Course, SenderPattern
from storage.assignment_store import (
    ACTIVE_LIMIT,
    HISTORY_LIMIT,
    AssignmentStore,
    check_columns,
    utcnow,
)

# Same seed as schema.sql.
DEFAULT_COURSES = (
    ("Pemrograman", ["pemrog", "kom120c"]),
    ("Struktur Data", ["strukdat", "sd", "kom120h"]),
    ("Rekayasa Perangkat Lunak", ["rpl", "kom1231"]),
    ("Organisasi dan Arsitektur Komputer", ["orkom", "oaak", "kom120g"]),
    ("Metode Kuantitatif", ["metkuan", "kom1221"]),
    ("Matematika Komputasi", ["matkom", "kom120d"]),
    ("Grafika Komputer dan Visualisasi", ["grafkom", "gkv", "kom1304"]),
    ("Desain Pengalaman Pengguna", ["ux", "uxd", "dpp", "kom1232"]),
)


def default_courses() -> List[Course]:
    return [Course(name=name, aliases=aliases) for name, aliases in DEFAULT_COURSES]


class InMemoryAssignmentStore(AssignmentStore):
    """Process-local store for tests and database-less runs."""

    def __init__(self, courses: Iterable[Course] = (), clock: Callable[[], datetime] = utcnow):
        self.clock = clock
        self.courses: Dict[UUID, Course] = {c.id: c for c in courses}
        self.assignments: Dict[UUID, Assignment] = {}
        # (assignment, user) -> completed at
        self.completions: Dict[Tuple[UUID, str], datetime] = {}

    def _resolved(self, assignment: Assignment) -> Assignment:
        course = self.courses.get(assignment.course_id) if assignment.course_id else None
        return assignment.model_copy(update={"course_name": course.name if course else None})

    async def list_courses(self) -> List[Course]:
        return sorted(self.courses.values(), key=lambda c: c.name)

    async def list_active_assignments(
        self,
        limit: int = ACTIVE_LIMIT,
        exclude_completed_by: Optional[str] = None,
    ) -> List[Assignment]:
        now = self.clock()
        active = [
            a for a in self.assignments.values()
            if (a.deadline is None or a.deadline >= now)
            and (exclude_completed_by is None or (a.id, exclude_completed_by) not in self.completions)
        ]
        active.sort(key=lambda a: a.created_at, reverse=True)
        return [self._resolved(a) for a in active[:limit]]

    async def sender_history(self, sender_id: str, limit: int = HISTORY_LIMIT) -> List[SenderPattern]:
        counts: Counter = Counter()
        for a in self.assignments.values():
            course = self.courses.get(a.course_id) if a.course_id else None
            if a.sender_id == sender_id and course is not None and a.parallel_code:
                counts[(course.name, a.parallel_code)] += 1
        return [
            SenderPattern(course_name=name, parallel_code=code, count=n)
            for (name, code), n in counts.most_common(limit)
        ]

    async def get_assignment(self, assignment_id: UUID) -> Optional[Assignment]:
        assignment = self.assignments.get(assignment_id)
        return self._resolved(assignment) if assignment else None

    async def create_assignment(self, assignment: Assignment) -> Assignment:
        self.assignments[assignment.id] = assignment
        return self._resolved(assignment)

    async def update_assignment(self, assignment_id: UUID, fields: Dict[str, Any]) -> Optional[Assignment]:
        check_columns(fields)
        current = self.assignments.get(assignment_id)
        if current is None:
            return None
        self.assignments[assignment_id] = current.model_copy(update=fields)
        return self._resolved(self.assignments[assignment_id])

    async def mark_complete(self, assignment_id: UUID, user_id: str) -> bool:
        key = (assignment_id, user_id)
        if assignment_id not in self.assignments or key in self.completions:
            return False
        self.completions[key] = self.clock()
        return True

    async def last_completed(self, user_id: str) -> Optional[Assignment]:
        mine = [(at, aid) for (aid, uid), at in self.completions.items() if uid == user_id]
        if not mine:
            return None
        # latest insert wins a tie
        _, assignment_id = max(reversed(mine), key=lambda item: item[0])
        return await self.get_assignment(assignment_id)

    async def unmark_complete(self, assignment_id: UUID, user_id: str) -> bool:
        return self.completions.pop((assignment_id, user_id), None) is not None

    async def ping(self) -> float:
        start = time.perf_counter()
        return time.perf_counter() - start
