"""
api/dependencies.py — Request context, authorization policy table, role guards.

``authorize`` runs once per request as an app-wide dependency: it resolves the
session cookie into a ``RequestContext`` (re-reading the user row every time)
and enforces the policy declared for the matched route in ``ROUTE_POLICIES``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request

from ..auth.models import User
from ..auth.session_store import session_store
from ..auth.users import get_user_by_id
from ..core.config import SESSION_COOKIE_NAME
from ..core.errors import Forbidden, Unauthenticated

logger = logging.getLogger(__name__)

PUBLIC = "public"
AUTHENTICATED = "authenticated"
ADMIN = "admin"

# (method, route path) -> policy. Routes missing here require a session.
ROUTE_POLICIES: dict[tuple[str, str], str] = {
    ("GET", "/health"): PUBLIC,
    ("GET", "/api/packages"): PUBLIC,
    # auth
    ("POST", "/api/auth/login"): PUBLIC,
    ("GET", "/api/auth/me"): PUBLIC,
    ("POST", "/api/auth/logout"): PUBLIC,
    ("POST", "/api/auth/register"): PUBLIC,
    ("POST", "/api/auth/register/start"): PUBLIC,
    ("POST", "/api/auth/register/complete"): PUBLIC,
    ("POST", "/api/auth/password/reset/start"): PUBLIC,
    ("POST", "/api/auth/password/reset/complete"): PUBLIC,
    ("GET", "/api/auth/google/login"): PUBLIC,
    ("GET", "/api/auth/google/callback"): PUBLIC,
    # profile
    ("GET", "/api/me"): AUTHENTICATED,
    ("PATCH", "/api/me"): AUTHENTICATED,
    ("POST", "/api/me/password"): AUTHENTICATED,
    ("GET", "/api/me/summary"): AUTHENTICATED,
    # lessons
    ("GET", "/api/sessions"): AUTHENTICATED,
    ("GET", "/api/teacher/sessions"): AUTHENTICATED,
    ("POST", "/api/sessions"): ADMIN,
    ("PATCH", "/api/sessions/{lesson_id}"): ADMIN,
    ("DELETE", "/api/sessions/{lesson_id}"): ADMIN,
    # admin
    ("GET", "/api/users"): ADMIN,
    ("GET", "/api/teachers"): ADMIN,
    ("GET", "/api/admin/users"): ADMIN,
    ("PATCH", "/api/admin/users/{user_id}"): ADMIN,
    ("POST", "/api/admin/users/{user_id}/reset-password"): ADMIN,
    ("GET", "/api/admin/sessions"): ADMIN,
    ("GET", "/api/admin/teachers/workload"): ADMIN,
    ("POST", "/api/admin/impersonate/stop"): ADMIN,
    ("POST", "/api/admin/impersonate/{user_id}"): ADMIN,
}


@dataclass
class RequestContext:
    """Who is making this request, and whose data it should see."""
    session_id: Optional[str] = None
    actor: Optional[User] = None
    view_as: Optional[User] = None

    @property
    def is_authenticated(self) -> bool:
        return self.actor is not None

    @property
    def impersonating(self) -> bool:
        return self.view_as is not None

    @property
    def effective_user(self) -> Optional[User]:
        return self.view_as or self.actor

    @property
    def effective_user_id(self) -> Optional[int]:
        user = self.effective_user
        return user.id if user else None


def policy_for(method: str, path: str) -> str:
    return ROUTE_POLICIES.get((method, path), AUTHENTICATED)


def resolve_context(request: Request) -> RequestContext:
    """
    Build the context from the session cookie. A disabled actor gets the
    session destroyed and is reported via ``Forbidden``.
    """
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if not token:
        return RequestContext()
    auth_session = session_store.get(token)
    if not auth_session:
        return RequestContext()

    actor = get_user_by_id(auth_session.user_id)
    if not actor:
        session_store.destroy(auth_session.session_id)
        return RequestContext()
    if actor.is_disabled:
        session_store.destroy(auth_session.session_id)
        logger.info("rejected session of disabled user_id=%s", actor.id)
        raise Forbidden("Account disabled")

    view_as: Optional[User] = None
    if auth_session.view_as_user_id is not None:
        target = get_user_by_id(auth_session.view_as_user_id)
        if actor.is_admin and target and not target.is_disabled:
            view_as = target
        else:
            session_store.set_view_as(auth_session.session_id, None)

    return RequestContext(session_id=auth_session.session_id, actor=actor, view_as=view_as)


async def authorize(request: Request) -> None:
    route = request.scope.get("route")
    path = getattr(route, "path", request.url.path)
    policy = policy_for(request.method, path)

    try:
        ctx = resolve_context(request)
    except Forbidden:
        if policy != PUBLIC:
            raise
        ctx = RequestContext()
    request.state.context = ctx

    if policy == PUBLIC:
        return
    if not ctx.is_authenticated:
        raise Unauthenticated()
    if policy == ADMIN and not ctx.actor.is_admin:  # type: ignore[union-attr]
        raise Forbidden("Admin only")


def get_context(request: Request) -> RequestContext:
    ctx = getattr(request.state, "context", None)
    return ctx if ctx is not None else RequestContext()


def get_current_user(ctx: RequestContext = Depends(get_context)) -> User:
    """The real, logged-in actor (never the impersonated user)."""
    if not ctx.actor:
        raise Unauthenticated()
    return ctx.actor
