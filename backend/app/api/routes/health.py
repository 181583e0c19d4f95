from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from app.core.config import get_settings
from app.db.bootstrap import missing_schema_items
from app.db.session import engine

router = APIRouter()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _database_status() -> dict:
    settings = get_settings()
    status = {
        "ok": True,
        "schema_ok": False,
        "dialect": engine.dialect.name,
        "isolation_level": settings.database_isolation_level,
        "missing_tables": [],
        "missing_columns": {},
        "error": None,
    }
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
            missing_tables, missing_columns = missing_schema_items(connection)
    except Exception as exc:  # pragma: no cover - environment dependent
        status.update(ok=False, error=str(exc))
        return status

    status.update(
        schema_ok=not missing_tables and not missing_columns,
        missing_tables=missing_tables,
        missing_columns=missing_columns,
    )
    return status


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/health/live")
def health_live() -> dict:
    return {"status": "ok", "timestamp": _now()}


@router.get("/health/ready")
def health_ready() -> JSONResponse:
    """Ready once the scheduling tables exist and the store answers."""
    settings = get_settings()
    database = _database_status()
    ready = database["ok"] and database["schema_ok"]
    payload = {
        "status": "ok" if ready else "degraded",
        "timestamp": _now(),
        "database": database,
        "scheduling": {
            "retry_attempts": settings.scheduling_retry_attempts,
            "retry_backoff_seconds": settings.scheduling_retry_backoff_seconds,
        },
    }
    return JSONResponse(status_code=200 if ready else 503, content=payload)
