"""Health & Readiness Probes - liveness and readiness endpoints.

Invariants:
    - GET /health/ always returns 200 if process is up (liveness)
    - GET /health/ready returns 503 if the database is unreachable (readiness)
"""

import logging
from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from transfer_scheduler.infrastructure import database

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    """Basic liveness probe. Returns 200 if the process is up."""
    return {
        "status": "healthy",
        "service": "transfer-scheduler",
        "version": "1.0.0",
    }


@router.get("/ready")
async def readiness_check(request: Request):
    """Readiness probe - database connectivity plus scheduler state."""
    db = database.db_manager
    db_ok = await db.health_check() if db else False
    services = getattr(request.app.state, "services", None)
    scheduler = "running" if services and services.scheduler.is_running else "stopped"
    if not db_ok:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "reason": "database_unavailable",
                "checks": {"scheduler": scheduler},
            },
        )
    return {
        "status": "ready",
        "checks": {"database": "healthy", "scheduler": scheduler},
    }
