"""
api/dto.py — Pydantic request/response models for all API endpoints.

The wire format is camelCase; fields are snake_case in Python.
"""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..auth.models import Lesson, Package, User, UserRef
from ..auth.sqlite_db import MAX_INTEGER
from ..core.payroll import TeacherWorkload, cents_to_units


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Integers that are stored or compared in SQLite must fit its 64-bit INTEGER.
SqlInt = Annotated[int, Field(ge=-MAX_INTEGER - 1, le=MAX_INTEGER)]


class OkResponse(CamelModel):
    ok: bool = True


# ── Auth ──────────────────────────────────────────────────────────────────────

class EmailBody(CamelModel):
    email: Optional[str] = None


class LoginBody(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class LegacyRegisterBody(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None


class RegisterCompleteBody(CamelModel):
    email: Optional[str] = None
    code: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None


class ResetCompleteBody(CamelModel):
    email: Optional[str] = None
    code: Optional[str] = None
    new_password: Optional[str] = None


class UserRefOut(CamelModel):
    id: int
    email: str
    name: Optional[str] = None


class UserPublic(CamelModel):
    id: int
    email: str
    name: Optional[str]
    role: str
    timezone: Optional[str]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MeResponse(UserPublic):
    impersonating: bool = False
    impersonator: Optional[UserRefOut] = None


class AuthMeResponse(CamelModel):
    user: Optional[MeResponse]


class UserResponse(CamelModel):
    user: UserPublic


class RegisterCompleteResponse(OkResponse):
    user: UserPublic


# ── Profile ───────────────────────────────────────────────────────────────────

class ProfileUpdateBody(CamelModel):
    name: Optional[str] = None
    timezone: Optional[str] = None


class PasswordChangeBody(CamelModel):
    current_password: Optional[str] = None
    new_password: Optional[str] = None


# ── Lessons ───────────────────────────────────────────────────────────────────

class LessonCreateBody(CamelModel):
    user_id: Optional[SqlInt] = None
    title: Optional[str] = None
    date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    duration: Optional[SqlInt] = None
    meeting_url: Optional[str] = None
    notes: Optional[str] = None
    teacher_id: Optional[SqlInt] = None


class LessonUpdateBody(LessonCreateBody):
    """Same fields as create; only the ones present in the body are applied."""


class LessonOut(CamelModel):
    id: int
    title: str
    start_at: datetime
    end_at: Optional[datetime]
    meeting_url: Optional[str]
    notes: Optional[str]
    user_id: int
    teacher_id: Optional[int]
    user: Optional[UserRefOut] = None
    teacher: Optional[UserRefOut] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LessonPage(CamelModel):
    items: list[LessonOut] = Field(default_factory=list)
    total: int
    limit: int
    offset: int
    has_more: bool


class LearnerSummary(CamelModel):
    next_session: Optional[LessonOut]
    upcoming_count: int
    completed_count: int


# ── Admin ─────────────────────────────────────────────────────────────────────

class AdminUserItem(CamelModel):
    id: int
    email: str
    name: Optional[str]
    role: str
    timezone: Optional[str]
    is_disabled: bool
    rate_hourly_cents: Optional[int]
    rate_per_session_cents: Optional[int]
    created_at: Optional[datetime]


class AdminUserUpdateBody(CamelModel):
    role: Optional[str] = None
    is_disabled: Optional[bool] = None
    name: Optional[str] = None
    timezone: Optional[str] = None
    rate_hourly_cents: Optional[SqlInt] = None
    rate_per_session_cents: Optional[SqlInt] = None


class ImpersonationResponse(OkResponse):
    impersonating: Optional[UserRefOut] = None


class WorkloadRow(CamelModel):
    teacher: UserRefOut
    sessions: int
    minutes: int
    hours: float
    rate_hourly_cents: Optional[int]
    rate_per_session_cents: Optional[int]
    payroll_hourly_cents: int
    payroll_per_session_cents: int
    payroll_applied_cents: int
    payroll_hourly_usd: float = Field(alias="payrollHourlyUSD")
    payroll_per_session_usd: float = Field(alias="payrollPerSessionUSD")
    payroll_applied_usd: float = Field(alias="payrollAppliedUSD")
    method: str


# ── Catalogue ─────────────────────────────────────────────────────────────────

class PackageOut(CamelModel):
    id: int
    title: str
    description: Optional[str]
    session_count: int
    duration_minutes: int
    price_cents: int
    price_usd: float = Field(alias="priceUSD")


# ── Builders ──────────────────────────────────────────────────────────────────

def user_ref_out(ref: Optional[UserRef | User]) -> Optional[UserRefOut]:
    if ref is None:
        return None
    return UserRefOut(id=ref.id, email=ref.email, name=ref.name)


def user_public(u: User) -> UserPublic:
    return UserPublic(
        id=u.id,
        email=u.email,
        name=u.name,
        role=u.role,
        timezone=u.timezone,
        created_at=u.created_at,
        updated_at=u.updated_at,
    )


def admin_user_item(u: User) -> AdminUserItem:
    return AdminUserItem(
        id=u.id,
        email=u.email,
        name=u.name,
        role=u.role,
        timezone=u.timezone,
        is_disabled=u.is_disabled,
        rate_hourly_cents=u.rate_hourly_cents,
        rate_per_session_cents=u.rate_per_session_cents,
        created_at=u.created_at,
    )


def lesson_out(lesson: Lesson) -> LessonOut:
    return LessonOut(
        id=lesson.id,
        title=lesson.title,
        start_at=lesson.start_at,
        end_at=lesson.end_at,
        meeting_url=lesson.meeting_url,
        notes=lesson.notes,
        user_id=lesson.user_id,
        teacher_id=lesson.teacher_id,
        user=user_ref_out(lesson.learner),
        teacher=user_ref_out(lesson.teacher),
        created_at=lesson.created_at,
        updated_at=lesson.updated_at,
    )


def workload_row(w: TeacherWorkload) -> WorkloadRow:
    return WorkloadRow(
        teacher=user_ref_out(w.teacher),
        sessions=w.sessions,
        minutes=w.minutes,
        hours=w.hours,
        rate_hourly_cents=w.teacher.rate_hourly_cents,
        rate_per_session_cents=w.teacher.rate_per_session_cents,
        payroll_hourly_cents=w.payroll_hourly_cents,
        payroll_per_session_cents=w.payroll_per_session_cents,
        payroll_applied_cents=w.payroll_applied_cents,
        payroll_hourly_usd=cents_to_units(w.payroll_hourly_cents),
        payroll_per_session_usd=cents_to_units(w.payroll_per_session_cents),
        payroll_applied_usd=cents_to_units(w.payroll_applied_cents),
        method=w.method,
    )


def package_out(p: Package) -> PackageOut:
    return PackageOut(
        id=p.id,
        title=p.title,
        description=p.description,
        session_count=p.session_count,
        duration_minutes=p.duration_minutes,
        price_cents=p.price_cents,
        price_usd=cents_to_units(p.price_cents),
    )
