"""
Health Routes
=============

FastAPI routes for health check endpoints.
"""

from fastapi import APIRouter

from dexter_bridge.config.settings import get_settings
from dexter_bridge.config.logging import get_logger
from dexter_bridge.config.database import check_database_health
from dexter_bridge.models.schemas import HealthStatus

logger = get_logger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthStatus)
async def health_check() -> HealthStatus:
    """
    Get application health status.

    Reports database connectivity and which transport turns use.
    """
    settings = get_settings()
    db_health = await check_database_health()
    database_ok = db_health["database"]

    if not database_ok:
        logger.warning("Health check degraded", database=database_ok)

    return HealthStatus(
        status="healthy" if database_ok else "degraded",
        version=settings.app_version,
        database=database_ok,
        transport="remote" if settings.remote_enabled else "local",
    )
