"""
Health check endpoints for liveness and readiness probes.
"""
from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response

from chathub.core.database import Database, get_database
from chathub.core.logging import get_logger
from chathub.schemas.api import HealthResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


@router.get(
    "/live",
    response_model=HealthResponse,
    summary="Liveness probe",
    description="Always returns 200 to indicate the service is alive."
)
async def liveness() -> HealthResponse:
    return HealthResponse(status="ok")


@router.get(
    "/ready",
    response_model=HealthResponse,
    summary="Readiness probe",
    description="Returns 200 if the service is ready to handle traffic."
)
def readiness(
    request: Request,
    response: Response,
    database: Annotated[Database, Depends(get_database)],
) -> HealthResponse:
    """
    Readiness probe.

    Only the database is required; provider and webhook secret settings
    are reported but never fail the probe.
    """
    settings = request.app.state.settings
    checks = {}

    db_ok = database.check_connection()
    checks["database"] = "ok" if db_ok else "failed"
    checks["provider"] = "ok" if settings.is_provider_configured else "not configured"
    checks["webhook_secret"] = "ok" if settings.is_webhook_secret_configured else "not configured"

    if db_ok:
        return HealthResponse(status="ok", checks=checks)

    logger.warning("Readiness check failed: database not reachable")
    response.status_code = 503
    return HealthResponse(status="not ready", checks=checks)
