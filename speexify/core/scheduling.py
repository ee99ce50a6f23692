"""
core/scheduling.py — Lesson scheduling: time arithmetic, CRUD and scoped reads.

Lesson instants are naive wall-clock datetimes in the server's local time,
built from the ``date`` + ``startTime`` the admin typed in.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from ..auth.models import Lesson
from ..auth.sqlite_db import get_conn, like_needle
from ..auth.users import get_user_by_id
from .config import ADMIN_LIST_DEFAULT_LIMIT, ADMIN_LIST_MAX_LIMIT
from .errors import InvalidInput, NotFound

logger = logging.getLogger(__name__)

_LESSON_SELECT = """
SELECT l.*,
       u.email AS learner_email, u.name AS learner_name,
       t.email AS teacher_email, t.name AS teacher_name
FROM lessons l
JOIN users u ON u.id = l.user_id
LEFT JOIN users t ON t.id = l.teacher_id
"""


# ── Time arithmetic ───────────────────────────────────────────────────────────

def combine(date: str, time: str, field: str = "date/time") -> datetime:
    """``2025-09-24`` + ``10:00`` -> datetime(2025, 9, 24, 10, 0)."""
    try:
        return datetime.strptime(f"{date.strip()} {time.strip()}", "%Y-%m-%d %H:%M")
    except (AttributeError, ValueError):
        raise InvalidInput(f"Invalid {field}")


def parse_day(value: str, field: str) -> datetime:
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d")
    except (AttributeError, ValueError):
        raise InvalidInput(f"Invalid {field} date, expected YYYY-MM-DD")


def resolve_times(
    date: str,
    start_time: str,
    end_time: Optional[str] = None,
    duration: Optional[int] = None,
) -> tuple[datetime, Optional[datetime]]:
    """
    Start from date+start_time. End, in priority order: explicit end_time on
    the same date, else start + duration minutes, else None (open-ended).
    """
    start_at = combine(date, start_time)
    end_at: Optional[datetime] = None
    if end_time:
        end_at = combine(date, end_time, field="endTime")
    elif duration is not None:
        if duration <= 0:
            raise InvalidInput("duration must be a positive number of minutes")
        try:
            end_at = start_at + timedelta(minutes=duration)
        except OverflowError:
            raise InvalidInput("duration is too large")

    if end_at is not None and end_at <= start_at:
        raise InvalidInput("endTime must be after startTime")
    return start_at, end_at


def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _now_utc() -> str:
    return datetime.now(timezone.utc).isoformat()


def _require_user(user_id: int, role: Optional[str] = None) -> None:
    user = get_user_by_id(user_id)
    if not user:
        raise NotFound(f"User {user_id} not found.")
    if role and user.role != role:
        raise InvalidInput(f"User {user_id} is not a {role}")


# ── CRUD ──────────────────────────────────────────────────────────────────────

def get_lesson(lesson_id: int) -> Optional[Lesson]:
    with get_conn() as conn:
        row = conn.execute(f"{_LESSON_SELECT} WHERE l.id = ?", (lesson_id,)).fetchone()
    return Lesson.from_row(row) if row else None


def create_lesson(
    *,
    user_id: Optional[int],
    title: Optional[str],
    date: Optional[str],
    start_time: Optional[str],
    end_time: Optional[str] = None,
    duration: Optional[int] = None,
    meeting_url: Optional[str] = None,
    notes: Optional[str] = None,
    teacher_id: Optional[int] = None,
) -> Lesson:
    title = (title or "").strip()
    if not user_id or not title or not date or not start_time:
        raise InvalidInput("userId, title, date, startTime are required")

    start_at, end_at = resolve_times(date, start_time, end_time, duration)
    _require_user(user_id)
    if teacher_id:
        _require_user(teacher_id, role="teacher")

    now = _now_utc()
    with get_conn() as conn:
        cur = conn.execute(
            """
            INSERT INTO lessons
              (title, start_at, end_at, meeting_url, notes, user_id, teacher_id,
               created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                title,
                _ts(start_at),
                _ts(end_at),
                meeting_url or None,
                notes or None,
                user_id,
                teacher_id or None,
                now,
                now,
            ),
        )
        conn.commit()
        lesson_id = cur.lastrowid
    return get_lesson(lesson_id)  # type: ignore[return-value]


def update_lesson(lesson_id: int, changes: dict[str, Any]) -> Lesson:
    """
    Partial update. ``changes`` holds only the fields the caller sent.

    Times are re-resolved only when both ``date`` and ``start_time`` are
    present; without ``end_time`` or ``duration`` the end is cleared.
    ``teacher_id``: absent leaves it, falsy unassigns, an id assigns.
    """
    if not get_lesson(lesson_id):
        raise NotFound(f"Session {lesson_id} not found.")

    data: dict[str, Any] = {}
    if "title" in changes:
        title = (changes["title"] or "").strip()
        if not title:
            raise InvalidInput("title cannot be empty")
        data["title"] = title
    if "meeting_url" in changes:
        data["meeting_url"] = changes["meeting_url"] or None
    if "notes" in changes:
        data["notes"] = changes["notes"] or None
    if changes.get("user_id"):
        _require_user(changes["user_id"])
        data["user_id"] = changes["user_id"]
    if "teacher_id" in changes:
        teacher_id = changes["teacher_id"]
        if teacher_id:
            _require_user(teacher_id, role="teacher")
        data["teacher_id"] = teacher_id or None

    if changes.get("date") and changes.get("start_time"):
        start_at, end_at = resolve_times(
            changes["date"],
            changes["start_time"],
            changes.get("end_time"),
            changes.get("duration"),
        )
        data["start_at"] = _ts(start_at)
        data["end_at"] = _ts(end_at)

    if data:
        assignments = ", ".join(f"{col} = ?" for col in data)
        with get_conn() as conn:
            conn.execute(
                f"UPDATE lessons SET {assignments}, updated_at = ? WHERE id = ?",
                (*data.values(), _now_utc(), lesson_id),
            )
            conn.commit()
    return get_lesson(lesson_id)  # type: ignore[return-value]


def delete_lesson(lesson_id: int) -> None:
    with get_conn() as conn:
        cur = conn.execute("DELETE FROM lessons WHERE id = ?", (lesson_id,))
        conn.commit()
    if cur.rowcount == 0:
        raise NotFound(f"Session {lesson_id} not found.")


# ── Scoped reads ──────────────────────────────────────────────────────────────

def _scope(learner_id: Optional[int]) -> tuple[str, list[Any]]:
    # None means "every learner" (an admin on their own dashboard).
    if learner_id is None:
        return "1 = 1", []
    return "l.user_id = ?", [learner_id]


def list_for_learner(learner_id: Optional[int]) -> list[Lesson]:
    where, params = _scope(learner_id)
    with get_conn() as conn:
        rows = conn.execute(
            f"{_LESSON_SELECT} WHERE {where} ORDER BY l.start_at ASC", params
        ).fetchall()
    return [Lesson.from_row(r) for r in rows]


def list_for_teacher(teacher_id: int) -> list[Lesson]:
    with get_conn() as conn:
        rows = conn.execute(
            f"{_LESSON_SELECT} WHERE l.teacher_id = ? ORDER BY l.start_at ASC",
            (teacher_id,),
        ).fetchall()
    return [Lesson.from_row(r) for r in rows]


def learner_summary(learner_id: Optional[int], now: Optional[datetime] = None) -> dict:
    """Next upcoming lesson plus upcoming/completed counts."""
    now_s = (now or datetime.now()).replace(microsecond=0).isoformat()
    where, params = _scope(learner_id)
    with get_conn() as conn:
        next_row = conn.execute(
            f"{_LESSON_SELECT} WHERE {where} AND l.start_at > ? "
            "ORDER BY l.start_at ASC LIMIT 1",
            (*params, now_s),
        ).fetchone()
        upcoming = conn.execute(
            f"SELECT COUNT(*) FROM lessons l WHERE {where} AND l.start_at > ?",
            (*params, now_s),
        ).fetchone()[0]
        completed = conn.execute(
            f"""
            SELECT COUNT(*) FROM lessons l
            WHERE {where}
              AND (l.end_at < ? OR (l.end_at IS NULL AND l.start_at < ?))
            """,
            (*params, now_s, now_s),
        ).fetchone()[0]
    return {
        "next_session": Lesson.from_row(next_row) if next_row else None,
        "upcoming_count": upcoming,
        "completed_count": completed,
    }


def range_clauses(
    date_from: Optional[str], date_to: Optional[str]
) -> tuple[list[str], list[Any]]:
    """Inclusive calendar-day bounds on ``l.start_at``."""
    clauses: list[str] = []
    params: list[Any] = []
    if date_from:
        clauses.append("l.start_at >= ?")
        params.append(parse_day(date_from, "from").isoformat())
    if date_to:
        clauses.append("l.start_at < ?")
        params.append((parse_day(date_to, "to") + timedelta(days=1)).isoformat())
    return clauses, params


def clamp_limit(limit: Optional[int]) -> int:
    if limit is None:
        return ADMIN_LIST_DEFAULT_LIMIT
    return max(1, min(ADMIN_LIST_MAX_LIMIT, limit))


def search_lessons(
    *,
    q: Optional[str] = None,
    user_id: Optional[int] = None,
    teacher_id: Optional[int] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
) -> tuple[list[Lesson], int, int, int]:
    """Admin listing. Returns (items, total, limit, offset)."""
    limit = clamp_limit(limit)
    offset = max(0, offset or 0)

    clauses, params = range_clauses(date_from, date_to)
    if q and q.strip():
        needle = like_needle(q)
        columns = ("l.title", "u.email", "u.name", "t.email", "t.name")
        clauses.append(
            "(" + " OR ".join(f"FOLD({col}) LIKE ? ESCAPE '\\'" for col in columns) + ")"
        )
        params.extend([needle] * len(columns))
    if user_id:
        clauses.append("l.user_id = ?")
        params.append(user_id)
    if teacher_id:
        clauses.append("l.teacher_id = ?")
        params.append(teacher_id)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

    with get_conn() as conn:
        rows = conn.execute(
            f"{_LESSON_SELECT} {where} ORDER BY l.start_at DESC, l.id DESC LIMIT ? OFFSET ?",
            (*params, limit, offset),
        ).fetchall()
        total = conn.execute(
            f"""
            SELECT COUNT(*) FROM lessons l
            JOIN users u ON u.id = l.user_id
            LEFT JOIN users t ON t.id = l.teacher_id
            {where}
            """,
            params,
        ).fetchone()[0]
    return [Lesson.from_row(r) for r in rows], total, limit, offset
