"""
core/payroll.py — Teacher workload and payroll estimates.

Lessons are grouped per teacher in memory. Money stays in integer cents
until ``cents_to_units`` at the output boundary.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from ..auth.models import Lesson, User
from ..auth.sqlite_db import get_conn
from ..auth.users import get_users_by_ids
from .config import DEFAULT_LESSON_MINUTES
from .scheduling import range_clauses

METHOD_HOURLY = "hourly"
METHOD_PER_SESSION = "per_session"
METHOD_NONE = "none"


@dataclass
class TeacherWorkload:
    teacher: User
    sessions: int
    minutes: int
    payroll_hourly_cents: int
    payroll_per_session_cents: int
    method: str

    @property
    def hours(self) -> float:
        return round(self.minutes / 60, 2)

    @property
    def payroll_applied_cents(self) -> int:
        if self.method == METHOD_HOURLY:
            return self.payroll_hourly_cents
        if self.method == METHOD_PER_SESSION:
            return self.payroll_per_session_cents
        return 0


def lesson_minutes(lesson: Lesson) -> int:
    if lesson.end_at is None:
        return DEFAULT_LESSON_MINUTES
    return int((lesson.end_at - lesson.start_at).total_seconds() // 60)


def cents_to_units(cents: int) -> float:
    return float((Decimal(cents) / 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def summarize(teacher: User, lessons: Iterable[Lesson]) -> TeacherWorkload:
    sessions = 0
    minutes = 0
    for lesson in lessons:
        sessions += 1
        minutes += lesson_minutes(lesson)

    hourly_rate = teacher.rate_hourly_cents or 0
    per_session_rate = teacher.rate_per_session_cents or 0
    # minutes * cents/hour / 60, rounded half up in integer arithmetic
    hourly_cents = (minutes * hourly_rate * 2 + 60) // 120
    per_session_cents = sessions * per_session_rate

    if hourly_rate:
        method = METHOD_HOURLY
    elif per_session_rate:
        method = METHOD_PER_SESSION
    else:
        method = METHOD_NONE

    return TeacherWorkload(
        teacher=teacher,
        sessions=sessions,
        minutes=minutes,
        payroll_hourly_cents=hourly_cents,
        payroll_per_session_cents=per_session_cents,
        method=method,
    )


def compute_workload(
    teacher_id: Optional[int] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
) -> list[TeacherWorkload]:
    """One row per teacher that has at least one lesson matching the filters."""
    clauses, params = range_clauses(date_from, date_to)
    clauses.insert(0, "l.teacher_id IS NOT NULL")
    if teacher_id:
        clauses.append("l.teacher_id = ?")
        params.append(teacher_id)

    with get_conn() as conn:
        rows = conn.execute(
            f"SELECT l.* FROM lessons l WHERE {' AND '.join(clauses)}", params
        ).fetchall()

    grouped: dict[int, list[Lesson]] = {}
    for row in rows:
        lesson = Lesson.from_row(row)
        grouped.setdefault(lesson.teacher_id, []).append(lesson)  # type: ignore[arg-type]

    teachers = get_users_by_ids(list(grouped))
    result = [
        summarize(teachers[tid], lessons)
        for tid, lessons in grouped.items()
        if tid in teachers
    ]
    result.sort(key=lambda w: ((w.teacher.name or w.teacher.email).lower(), w.teacher.id))
    return result
