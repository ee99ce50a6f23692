"""
Audit logging — records security-relevant and admin events.

Events are written to both the audit_log table and structured logging.
The table is advisory: a failed write never affects the request.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from ..auth.sqlite_db import get_conn

logger = logging.getLogger(__name__)


def log_event(
    action: str,
    actor_id: Optional[int] = None,
    entity_type: Optional[str] = None,
    entity_id: Any = None,
    metadata: Optional[dict] = None,
) -> None:
    """Insert an audit log entry and emit a log line."""
    try:
        with get_conn() as conn:
            conn.execute(
                """
                INSERT INTO audit_log
                  (actor_id, action, entity_type, entity_id, metadata, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    actor_id,
                    action,
                    entity_type,
                    str(entity_id) if entity_id is not None else None,
                    json.dumps(metadata or {}, default=str),
                    datetime.now(timezone.utc).isoformat(),
                ),
            )
            conn.commit()
    except Exception:
        logger.warning("audit write failed for action=%s", action, exc_info=True)

    logger.info(
        "audit: %s actor_id=%s entity=%s:%s", action, actor_id, entity_type, entity_id
    )
