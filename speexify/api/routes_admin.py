"""
api/routes_admin.py — Admin-only endpoints: users, lesson search, workload,
impersonation.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query

from ..auth.models import User
from ..auth.session_store import session_store
from ..auth.sqlite_db import MAX_INTEGER
from ..auth.users import get_user_by_id, list_users, update_user
from ..core import payroll, scheduling, verification
from ..core.audit import log_event
from ..core.config import ROLES
from ..core.errors import InvalidInput, NotFound
from .dependencies import RequestContext, get_context, get_current_user
from .dto import (
    AdminUserItem,
    AdminUserUpdateBody,
    ImpersonationResponse,
    LessonPage,
    OkResponse,
    UserRefOut,
    WorkloadRow,
    admin_user_item,
    lesson_out,
    user_ref_out,
    workload_row,
)

router = APIRouter()


# ── Users ─────────────────────────────────────────────────────────────────────

@router.get("/api/users", response_model=list[UserRefOut])
async def users_by_role(role: Optional[str] = None):
    return [user_ref_out(u) for u in list_users(role=role)]


@router.get("/api/teachers", response_model=list[AdminUserItem])
async def teachers(active: Optional[bool] = None):
    return [admin_user_item(u) for u in list_users(role="teacher", active_only=bool(active))]


@router.get("/api/admin/users", response_model=list[AdminUserItem])
async def admin_list_users(q: Optional[str] = None):
    return [admin_user_item(u) for u in list_users(q=q)]


@router.patch("/api/admin/users/{user_id}", response_model=AdminUserItem)
async def admin_update_user(
    body: AdminUserUpdateBody,
    user_id: int = Path(ge=0, le=MAX_INTEGER),
    admin: User = Depends(get_current_user),
):
    target = get_user_by_id(user_id)
    if not target:
        raise NotFound(f"User {user_id} not found.")

    changes = body.model_dump(exclude_unset=True)
    if "role" in changes and changes["role"] not in ROLES:
        raise InvalidInput(f"role must be one of {', '.join(ROLES)}")
    if "is_disabled" in changes and changes["is_disabled"] is None:
        raise InvalidInput("isDisabled must be true or false")
    for key in ("rate_hourly_cents", "rate_per_session_cents"):
        if changes.get(key) is not None and changes[key] < 0:
            raise InvalidInput("Rates cannot be negative")
    if target.id == admin.id:
        if changes.get("is_disabled"):
            raise InvalidInput("You cannot disable your own account")
        if changes.get("role", "admin") != "admin":
            raise InvalidInput("You cannot remove your own admin role")
    for key in ("name", "timezone"):
        if key in changes:
            changes[key] = (changes[key] or "").strip() or None

    updated = update_user(user_id, **changes)
    if changes.get("is_disabled"):
        session_store.destroy_for_user(user_id)
    log_event("user.update", actor_id=admin.id, entity_type="user", entity_id=user_id,
              metadata=changes)
    return admin_user_item(updated)  # type: ignore[arg-type]


@router.post("/api/admin/users/{user_id}/reset-password", response_model=OkResponse)
async def admin_send_reset(
    user_id: int = Path(ge=0, le=MAX_INTEGER),
    admin: User = Depends(get_current_user),
):
    target = get_user_by_id(user_id)
    if not target:
        raise NotFound(f"User {user_id} not found.")
    verification.start_password_reset(target.email)
    log_event("user.reset_password", actor_id=admin.id, entity_type="user", entity_id=user_id)
    return OkResponse()


# ── Lessons & reporting ───────────────────────────────────────────────────────

@router.get("/api/admin/sessions", response_model=LessonPage)
async def admin_list_sessions(
    q: Optional[str] = None,
    user_id: Optional[int] = Query(default=None, alias="userId", ge=0, le=MAX_INTEGER),
    teacher_id: Optional[int] = Query(default=None, alias="teacherId", ge=0, le=MAX_INTEGER),
    date_from: Optional[str] = Query(default=None, alias="from"),
    date_to: Optional[str] = Query(default=None, alias="to"),
    limit: Optional[int] = Query(default=None, le=MAX_INTEGER),
    offset: Optional[int] = Query(default=None, le=MAX_INTEGER),
):
    items, total, limit, offset = scheduling.search_lessons(
        q=q,
        user_id=user_id,
        teacher_id=teacher_id,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )
    return LessonPage(
        items=[lesson_out(x) for x in items],
        total=total,
        limit=limit,
        offset=offset,
        has_more=offset + len(items) < total,
    )


@router.get("/api/admin/teachers/workload", response_model=list[WorkloadRow])
async def teacher_workload(
    teacher_id: Optional[int] = Query(default=None, alias="teacherId", ge=0, le=MAX_INTEGER),
    date_from: Optional[str] = Query(default=None, alias="from"),
    date_to: Optional[str] = Query(default=None, alias="to"),
):
    rows = payroll.compute_workload(teacher_id=teacher_id, date_from=date_from, date_to=date_to)
    return [workload_row(w) for w in rows]


# ── Impersonation ─────────────────────────────────────────────────────────────
# The mapping lives in the admin's own auth session; the guard re-validates it
# on every request.

@router.post("/api/admin/impersonate/stop", response_model=ImpersonationResponse)
async def stop_impersonation(ctx: RequestContext = Depends(get_context)):
    if ctx.impersonating:
        session_store.set_view_as(ctx.session_id, None)
        log_event("impersonate.stop", actor_id=ctx.actor.id, entity_type="user",
                  entity_id=ctx.view_as.id)
    return ImpersonationResponse()


@router.post("/api/admin/impersonate/{user_id}", response_model=ImpersonationResponse)
async def start_impersonation(
    user_id: int = Path(ge=0, le=MAX_INTEGER),
    ctx: RequestContext = Depends(get_context),
):
    admin = ctx.actor
    if user_id == admin.id:
        raise InvalidInput("You cannot impersonate yourself")
    target = get_user_by_id(user_id)
    if not target:
        raise NotFound(f"User {user_id} not found.")
    if target.is_disabled:
        raise InvalidInput("Cannot impersonate a disabled user")

    session_store.set_view_as(ctx.session_id, target.id)
    log_event("impersonate.start", actor_id=admin.id, entity_type="user", entity_id=target.id)
    return ImpersonationResponse(impersonating=user_ref_out(target))
