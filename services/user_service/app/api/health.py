"""Health check routes."""

from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from services.user_service.app.dependencies import AppSettings, DBSession
from shared.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["healthy", "unhealthy"]
    service: str
    version: str = "0.1.0"


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    ready: bool
    checks: dict[str, bool]


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: AppSettings) -> HealthResponse:
    """Basic health check - returns if the service is running."""
    return HealthResponse(status="healthy", service=settings.service_name)


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(db: DBSession) -> ReadinessResponse:
    """Readiness check - verifies the database is reachable."""
    checks = {}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = True
    except SQLAlchemyError as e:
        logger.warning("readiness_database_failed", error=str(e))
        checks["database"] = False

    return ReadinessResponse(ready=all(checks.values()), checks=checks)
