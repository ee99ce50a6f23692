"""
api/routes_sessions.py — Lesson ("session") scheduling endpoints.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Path

from ..auth.models import User
from ..auth.sqlite_db import MAX_INTEGER
from ..core import scheduling
from ..core.audit import log_event
from .dependencies import RequestContext, get_context, get_current_user
from .dto import LessonCreateBody, LessonOut, LessonUpdateBody, OkResponse, lesson_out
from .routes_me import learner_scope

router = APIRouter()


@router.get("/api/sessions", response_model=list[LessonOut])
async def list_sessions(ctx: RequestContext = Depends(get_context)):
    return [lesson_out(x) for x in scheduling.list_for_learner(learner_scope(ctx))]


@router.get("/api/teacher/sessions", response_model=list[LessonOut])
async def list_teacher_sessions(ctx: RequestContext = Depends(get_context)):
    return [lesson_out(x) for x in scheduling.list_for_teacher(ctx.effective_user_id)]


@router.post("/api/sessions", response_model=LessonOut, status_code=201)
async def create_session(body: LessonCreateBody, admin: User = Depends(get_current_user)):
    lesson = scheduling.create_lesson(
        user_id=body.user_id,
        title=body.title,
        date=body.date,
        start_time=body.start_time,
        end_time=body.end_time,
        duration=body.duration,
        meeting_url=body.meeting_url,
        notes=body.notes,
        teacher_id=body.teacher_id,
    )
    log_event("lesson.create", actor_id=admin.id, entity_type="lesson", entity_id=lesson.id,
              metadata={"userId": lesson.user_id, "teacherId": lesson.teacher_id})
    return lesson_out(lesson)


@router.patch("/api/sessions/{lesson_id}", response_model=LessonOut)
async def update_session(
    body: LessonUpdateBody,
    lesson_id: int = Path(ge=0, le=MAX_INTEGER),
    admin: User = Depends(get_current_user),
):
    changes = body.model_dump(exclude_unset=True)
    lesson = scheduling.update_lesson(lesson_id, changes)
    log_event("lesson.update", actor_id=admin.id, entity_type="lesson", entity_id=lesson_id,
              metadata={"fields": sorted(changes)})
    return lesson_out(lesson)


@router.delete("/api/sessions/{lesson_id}", response_model=OkResponse)
async def delete_session(
    lesson_id: int = Path(ge=0, le=MAX_INTEGER),
    admin: User = Depends(get_current_user),
):
    scheduling.delete_lesson(lesson_id)
    log_event("lesson.delete", actor_id=admin.id, entity_type="lesson", entity_id=lesson_id)
    return OkResponse()
