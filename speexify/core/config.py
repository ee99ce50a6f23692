"""
core/config.py — environment variables and application constants.
"""
import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# ── Secrets ──────────────────────────────────────────────────────────────────
SESSION_SECRET: str = os.getenv("SESSION_SECRET", "")
if not SESSION_SECRET:
    logger.warning("SESSION_SECRET is not set. Using an insecure fallback for dev.")
    SESSION_SECRET = "dev-secret"

COOKIE_SECURE: bool = os.getenv("COOKIE_SECURE", "false").lower() == "true"

# ── HTTP ─────────────────────────────────────────────────────────────────────
CORS_ORIGINS: list[str] = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if o.strip()
]
FRONTEND_BASE_URL: str = os.getenv("FRONTEND_BASE_URL", "http://localhost:3000")

# Old one-step registration; superseded by the emailed-code flow.
LEGACY_REGISTER_ENABLED: bool = os.getenv("LEGACY_REGISTER_ENABLED", "false").lower() == "true"

# ── Mail ─────────────────────────────────────────────────────────────────────
MAIL_BACKEND: str = os.getenv("MAIL_BACKEND", "log")       # log | smtp
MAIL_FROM: str = os.getenv("MAIL_FROM", "Speexify <noreply@speexify.com>")
MAIL_SERVER: str = os.getenv("MAIL_SERVER", "localhost")
MAIL_PORT: int = int(os.getenv("MAIL_PORT", "587"))
MAIL_USERNAME: str = os.getenv("MAIL_USERNAME", "")
MAIL_PASSWORD: str = os.getenv("MAIL_PASSWORD", "")

# ── Google sign-in ───────────────────────────────────────────────────────────
OAUTH_CLIENT_ID: str = os.getenv("OAUTH_CLIENT_ID", "")
OAUTH_CLIENT_SECRET: str = os.getenv("OAUTH_CLIENT_SECRET", "")
OAUTH_REDIRECT_URL: str = os.getenv(
    "OAUTH_REDIRECT_URL", "http://localhost:5050/api/auth/google/callback"
)

# ── Auth sessions ────────────────────────────────────────────────────────────
SESSION_COOKIE_NAME = "speexify.sid"
SESSION_TTL_HOURS = 24

# ── Users ────────────────────────────────────────────────────────────────────
ROLES = ("learner", "teacher", "admin")
PASSWORD_MIN_LENGTH = 8

# ── Verification codes (registration + password reset) ───────────────────────
CODE_LENGTH = 6
CODE_TTL_MINUTES = 10
CODE_RESEND_COOLDOWN_SECONDS = 60
CODE_MAX_ATTEMPTS = 5

# ── Scheduling / reporting ───────────────────────────────────────────────────
DEFAULT_LESSON_MINUTES = 60         # assumed length of a lesson with no end
ADMIN_LIST_DEFAULT_LIMIT = 50
ADMIN_LIST_MAX_LIMIT = 200
