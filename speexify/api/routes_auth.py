"""
api/routes_auth.py — Password login, emailed-code registration and reset,
Google sign-in, logout.
"""
from __future__ import annotations

import logging

from authlib.integrations.starlette_client import OAuth, OAuthError
from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import RedirectResponse

from ..auth.models import User
from ..auth.session_store import session_store
from ..auth.users import create_user, get_user_by_email, normalize_email, verify_password
from ..core import config, verification
from ..core.audit import log_event
from ..core.config import SESSION_COOKIE_NAME, SESSION_TTL_HOURS
from ..core.errors import Conflict, Forbidden, Gone, InvalidInput, NotFound, Unauthenticated
from .dependencies import RequestContext, get_context
from .dto import (
    AuthMeResponse,
    EmailBody,
    LegacyRegisterBody,
    LoginBody,
    MeResponse,
    OkResponse,
    RegisterCompleteBody,
    RegisterCompleteResponse,
    ResetCompleteBody,
    UserResponse,
    user_public,
    user_ref_out,
)

logger = logging.getLogger(__name__)

router = APIRouter()

# ── OAuth configuration ───────────────────────────────────────────────────────
oauth = OAuth()
oauth.register(
    name="google",
    client_id=config.OAUTH_CLIENT_ID,
    client_secret=config.OAUTH_CLIENT_SECRET,
    server_metadata_url="https://accounts.google.com/.well-known/openid-configuration",
    client_kwargs={"scope": "openid email profile"},
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _set_session_cookie(response: Response, signed_token: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=signed_token,
        httponly=True,
        secure=config.COOKIE_SECURE,
        samesite="lax",
        max_age=SESSION_TTL_HOURS * 3600,
        path="/",
    )


def start_session(response: Response, ctx: RequestContext, user: User) -> None:
    """Replace whatever session the cookie carried with a fresh one for ``user``."""
    if ctx.session_id:
        session_store.destroy(ctx.session_id)
    _set_session_cookie(response, session_store.create(user.id))


def me_response(ctx: RequestContext) -> MeResponse:
    user = ctx.effective_user
    return MeResponse(
        **user_public(user).model_dump(),  # type: ignore[arg-type]
        impersonating=ctx.impersonating,
        impersonator=user_ref_out(ctx.actor) if ctx.impersonating else None,
    )


# ── Password login ────────────────────────────────────────────────────────────

@router.post("/api/auth/login", response_model=UserResponse)
async def login(
    body: LoginBody,
    response: Response,
    ctx: RequestContext = Depends(get_context),
):
    email = normalize_email(body.email)
    if not email or not body.password:
        raise InvalidInput("Email and password are required")

    user = get_user_by_email(email)
    if not user or not verify_password(user, body.password):
        raise Unauthenticated("Invalid credentials")
    if user.is_disabled:
        raise Forbidden("Account disabled")

    start_session(response, ctx, user)
    log_event("auth.login", actor_id=user.id, entity_type="user", entity_id=user.id)
    return UserResponse(user=user_public(user))


@router.get("/api/auth/me", response_model=AuthMeResponse)
async def auth_me(ctx: RequestContext = Depends(get_context)):
    if not ctx.is_authenticated:
        return AuthMeResponse(user=None)
    return AuthMeResponse(user=me_response(ctx))


@router.post("/api/auth/logout", response_model=OkResponse)
async def logout(response: Response, ctx: RequestContext = Depends(get_context)):
    if ctx.session_id:
        session_store.destroy(ctx.session_id)
    response.delete_cookie(key=SESSION_COOKIE_NAME, path="/")
    return OkResponse()


# ── Registration ──────────────────────────────────────────────────────────────

@router.post("/api/auth/register", response_model=UserResponse)
async def legacy_register(
    body: LegacyRegisterBody,
    response: Response,
    ctx: RequestContext = Depends(get_context),
):
    """One-step registration without email proof; off unless explicitly enabled."""
    if not config.LEGACY_REGISTER_ENABLED:
        raise Gone("Use /api/auth/register/start and /api/auth/register/complete")

    email = verification.validate_email(body.email)
    verification.validate_password(body.password)
    if get_user_by_email(email):
        raise Conflict("Email already registered")
    user = create_user(
        email=email, name=(body.name or "").strip() or None, password=body.password
    )
    start_session(response, ctx, user)
    log_event("auth.register", actor_id=user.id, entity_type="user", entity_id=user.id)
    return UserResponse(user=user_public(user))


@router.post("/api/auth/register/start", response_model=OkResponse)
async def register_start(body: EmailBody):
    verification.start_registration(body.email)
    return OkResponse()


@router.post("/api/auth/register/complete", response_model=RegisterCompleteResponse)
async def register_complete(
    body: RegisterCompleteBody,
    response: Response,
    ctx: RequestContext = Depends(get_context),
):
    user = verification.complete_registration(body.email, body.code, body.password, body.name)
    start_session(response, ctx, user)
    log_event("auth.register", actor_id=user.id, entity_type="user", entity_id=user.id)
    return RegisterCompleteResponse(user=user_public(user))


# ── Password reset ────────────────────────────────────────────────────────────

@router.post("/api/auth/password/reset/start", response_model=OkResponse)
async def password_reset_start(body: EmailBody):
    verification.start_password_reset(body.email)
    return OkResponse()


@router.post("/api/auth/password/reset/complete", response_model=OkResponse)
async def password_reset_complete(
    body: ResetCompleteBody,
    response: Response,
    ctx: RequestContext = Depends(get_context),
):
    user = verification.complete_password_reset(body.email, body.code, body.new_password)
    start_session(response, ctx, user)
    log_event("auth.password_reset", actor_id=user.id, entity_type="user", entity_id=user.id)
    return OkResponse()


# ── Google sign-in ────────────────────────────────────────────────────────────

def resolve_google_user(email: str, display_name: str | None) -> User:
    """Find the account for a Google-verified email, creating a learner if new."""
    user = get_user_by_email(email)
    if user is None:
        user = create_user(email=email, name=display_name, role="learner")
        log_event("auth.register", actor_id=user.id, entity_type="user",
                  entity_id=user.id, metadata={"provider": "google"})
    if user.is_disabled:
        raise Forbidden("Account disabled")
    return user


@router.get("/api/auth/google/login")
async def google_login(request: Request):
    if not config.OAUTH_CLIENT_ID:
        raise NotFound("Google sign-in is not configured")
    return await oauth.google.authorize_redirect(request, config.OAUTH_REDIRECT_URL)


@router.get("/api/auth/google/callback")
async def google_callback(request: Request, ctx: RequestContext = Depends(get_context)):
    try:
        token = await oauth.google.authorize_access_token(request)
    except OAuthError as e:
        logger.info("Google callback rejected: %s", e.error)
        raise Unauthenticated("Google sign-in failed")
    user_info = token.get("userinfo") or await oauth.google.userinfo(token=token)

    email = normalize_email(user_info.get("email"))
    if not email or not user_info.get("email_verified", False):
        raise Unauthenticated("Google account has no verified email")

    user = resolve_google_user(email, user_info.get("name"))
    resp = RedirectResponse(url=config.FRONTEND_BASE_URL + "/dashboard")
    start_session(resp, ctx, user)
    log_event("auth.login", actor_id=user.id, entity_type="user", entity_id=user.id,
              metadata={"provider": "google"})
    return resp
