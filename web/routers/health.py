"""Health-related API endpoints."""

from __future__ import annotations

from typing import Optional, Tuple

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.settings import MonitorSettings
from database import get_db
from web.deps import get_settings

router = APIRouter(prefix="/health", tags=["Health"])


def ping_database(db: Session) -> Tuple[bool, Optional[str]]:
    """Return database connectivity status and optional error message."""
    try:
        db.execute(text("SELECT 1"))
        return True, None
    except SQLAlchemyError as exc:
        return False, str(exc)


@router.get(
    "/status",
    summary="Service runtime status",
    description="Database connectivity plus the list of monitored services.",
)
def read_service_status(
    db: Session = Depends(get_db),
    settings: MonitorSettings = Depends(get_settings),
):
    db_ok, db_error = ping_database(db)
    payload = {
        "status": "ok" if db_ok else "degraded",
        "database": {"ok": db_ok},
        "monitoredServices": list(settings.monitored_services),
    }
    if db_error:
        payload["database"]["error"] = db_error
    return payload


__all__ = ["router", "ping_database"]
