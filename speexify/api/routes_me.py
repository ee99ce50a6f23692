"""
api/routes_me.py — Profile endpoints.

Profile reads/updates and the dashboard summary follow the effective
(view-as) user; password changes always apply to the real actor.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from ..auth.models import User
from ..auth.users import set_password, update_user, verify_password
from ..core import scheduling
from ..core.audit import log_event
from ..core.errors import InvalidInput, Unauthenticated
from ..core.verification import validate_password
from .dependencies import RequestContext, get_context, get_current_user
from .dto import (
    LearnerSummary,
    MeResponse,
    OkResponse,
    PasswordChangeBody,
    ProfileUpdateBody,
    lesson_out,
)
from .routes_auth import me_response

router = APIRouter()


def learner_scope(ctx: RequestContext):
    """None (all lessons) for an admin on their own dashboard, else the effective id."""
    if ctx.actor.is_admin and not ctx.impersonating:
        return None
    return ctx.effective_user_id


@router.get("/api/me", response_model=MeResponse)
async def read_me(ctx: RequestContext = Depends(get_context)):
    return me_response(ctx)


@router.patch("/api/me", response_model=MeResponse)
async def update_me(body: ProfileUpdateBody, ctx: RequestContext = Depends(get_context)):
    changes = body.model_dump(exclude_unset=True)
    fields = {key: (value or "").strip() or None for key, value in changes.items()}
    updated = update_user(ctx.effective_user_id, **fields)
    if ctx.impersonating:
        ctx.view_as = updated
    else:
        ctx.actor = updated
    return me_response(ctx)


@router.post("/api/me/password", response_model=OkResponse)
async def change_password(
    body: PasswordChangeBody,
    actor: User = Depends(get_current_user),
):
    if not body.current_password or not body.new_password:
        raise InvalidInput("Both passwords are required")
    validate_password(body.new_password, field="New password")
    if not actor.password_hash:
        raise InvalidInput("This account signs in with Google and has no password")
    if not verify_password(actor, body.current_password):
        raise Unauthenticated("Current password is incorrect")

    set_password(actor.id, body.new_password)
    log_event("me.password_change", actor_id=actor.id, entity_type="user", entity_id=actor.id)
    return OkResponse()


@router.get("/api/me/summary", response_model=LearnerSummary)
async def summary(ctx: RequestContext = Depends(get_context)):
    data = scheduling.learner_summary(learner_scope(ctx))
    nxt = data["next_session"]
    return LearnerSummary(
        next_session=lesson_out(nxt) if nxt else None,
        upcoming_count=data["upcoming_count"],
        completed_count=data["completed_count"],
    )
