"""
auth/models.py — Pure-Python dataclass models for stored entities.
No ORM dependency; raw sqlite3 rows are mapped here.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass
class User:
    id: int
    email: str
    role: str                           # learner | teacher | admin
    name: Optional[str] = None
    password_hash: Optional[str] = None
    timezone: Optional[str] = None
    is_disabled: bool = False
    rate_hourly_cents: Optional[int] = None
    rate_per_session_cents: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @classmethod
    def from_row(cls, row) -> "User":
        return cls(
            id=row["id"],
            email=row["email"],
            role=row["role"],
            name=row["name"],
            password_hash=row["password_hash"],
            timezone=row["timezone"],
            is_disabled=bool(row["is_disabled"]),
            rate_hourly_cents=row["rate_hourly_cents"],
            rate_per_session_cents=row["rate_per_session_cents"],
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
        )


@dataclass
class UserRef:
    """The slice of a user embedded in lesson listings."""
    id: int
    email: str
    name: Optional[str] = None


@dataclass
class Lesson:
    """A scheduled tutoring session (not to be confused with AuthSession)."""
    id: int
    title: str
    start_at: datetime                  # naive, server-local wall clock
    user_id: int
    end_at: Optional[datetime] = None
    meeting_url: Optional[str] = None
    notes: Optional[str] = None
    teacher_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    learner: Optional[UserRef] = None
    teacher: Optional[UserRef] = None

    @classmethod
    def from_row(cls, row) -> "Lesson":
        keys = row.keys()
        learner = None
        teacher = None
        if "learner_email" in keys and row["learner_email"] is not None:
            learner = UserRef(row["user_id"], row["learner_email"], row["learner_name"])
        if "teacher_email" in keys and row["teacher_email"] is not None:
            teacher = UserRef(row["teacher_id"], row["teacher_email"], row["teacher_name"])
        return cls(
            id=row["id"],
            title=row["title"],
            start_at=datetime.fromisoformat(row["start_at"]),
            end_at=_parse_ts(row["end_at"]),
            meeting_url=row["meeting_url"],
            notes=row["notes"],
            user_id=row["user_id"],
            teacher_id=row["teacher_id"],
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
            learner=learner,
            teacher=teacher,
        )


@dataclass
class AuthSession:
    session_id: str
    user_id: int
    created_at: datetime
    expires_at: datetime
    view_as_user_id: Optional[int] = None

    @classmethod
    def from_row(cls, row) -> "AuthSession":
        return cls(
            session_id=row["session_id"],
            user_id=row["user_id"],
            view_as_user_id=row["view_as_user_id"],
            created_at=datetime.fromisoformat(row["created_at"]),
            expires_at=datetime.fromisoformat(row["expires_at"]),
        )


@dataclass
class Package:
    id: int
    title: str
    description: Optional[str]
    session_count: int
    duration_minutes: int
    price_cents: int

    @classmethod
    def from_row(cls, row) -> "Package":
        return cls(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            session_count=row["session_count"],
            duration_minutes=row["duration_minutes"],
            price_cents=row["price_cents"],
        )
