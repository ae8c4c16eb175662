# app/api/v1/endpoints/health.py
from datetime import datetime, timezone

from fastapi import APIRouter

from app.core.config import settings
from app.db.session import check_database_health
from app.schemas.common import ok

router = APIRouter()


@router.get("", summary="Health check")
async def health_root():
    db_up = await check_database_health()
    return ok(
        {
            "status": "ok" if db_up else "degraded",
            "version": settings.APP_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "database": "up" if db_up else "down",
        }
    )
