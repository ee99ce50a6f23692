"""
api/routes_catalog.py — Public package catalogue.
"""
from __future__ import annotations

from fastapi import APIRouter

from ..auth.models import Package
from ..auth.sqlite_db import get_conn
from .dto import PackageOut, package_out

router = APIRouter()


def list_active_packages() -> list[Package]:
    with get_conn() as conn:
        rows = conn.execute(
            "SELECT * FROM packages WHERE is_active = 1 ORDER BY price_cents ASC, id ASC"
        ).fetchall()
    return [Package.from_row(r) for r in rows]


@router.get("/api/packages", response_model=list[PackageOut])
async def packages():
    return [package_out(p) for p in list_active_packages()]
