"""
api/app.py — FastAPI application factory.
"""
from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

from .. import __version__
from ..auth.sqlite_db import init_db
from ..core import config
from .dependencies import authorize
from .errors import install_error_handlers
from .routes_admin import router as admin_router
from .routes_auth import router as auth_router
from .routes_catalog import router as catalog_router
from .routes_me import router as me_router
from .routes_sessions import router as sessions_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


def create_app() -> FastAPI:
    app = FastAPI(
        title="Speexify API",
        version=__version__,
        lifespan=lifespan,
        dependencies=[Depends(authorize)],
    )

    # ── Session middleware (OAuth state for the authlib Starlette client) ─────
    app.add_middleware(
        SessionMiddleware,
        secret_key=config.SESSION_SECRET,
        session_cookie="speexify.oauth",
        https_only=config.COOKIE_SECURE,
        same_site="lax",
    )

    # ── CORS ──────────────────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Routers ───────────────────────────────────────────────────────────────
    app.include_router(auth_router)
    app.include_router(me_router)
    app.include_router(sessions_router)
    app.include_router(admin_router)
    app.include_router(catalog_router)

    # ── Health ────────────────────────────────────────────────────────────────
    @app.get("/health")
    async def health():
        return {"status": "ok", "version": __version__}

    install_error_handlers(app)
    return app
