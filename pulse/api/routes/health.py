"""Health check endpoint — used by the platform healthcheck and monitoring."""

from __future__ import annotations

from fastapi import APIRouter

from pulse.api.deps import AppSettings, DatabaseDep
from pulse.core.logging import get_logger
from pulse.schemas.schemas import HealthResponse

router = APIRouter(tags=["health"])
logger = get_logger(__name__)


@router.get("/healthz/", response_model=HealthResponse)
async def health_check(db: DatabaseDep, settings: AppSettings) -> HealthResponse:
    try:
        await db.ping()
        database = "connected"
    except Exception as e:
        logger.warning("health_db_ping_failed", error=str(e))
        database = "unavailable"
    return HealthResponse(
        status="healthy" if database == "connected" else "degraded",
        environment=settings.app_env,
        database=database,
    )
