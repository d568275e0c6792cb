"""
LocalSpots Backend - Health Check Routes
==========================================

What:  Health check endpoints for monitoring and container health checks.
How:   /health checks the database with SELECT 1 and reports the proximity
       backend chosen at startup; /health/ping only proves the process is up.
Who:   Called by Docker health checks, load balancers and monitoring.

Status levels:
    - healthy:   database reachable, backend selected as configured (HTTP 200)
    - degraded:  database reachable now, but the startup PostGIS check failed,
                 so nearby search runs on the planar fallback (HTTP 200)
    - unhealthy: database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Request, Response
from sqlalchemy import text

from app import __version__
from app.database import engine
from app.schemas.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

# Module-level: set once when the module loads
_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description=(
        "Returns the health of the backend, its database connectivity and the "
        "proximity backend in use."
    ),
)
async def health_check(request: Request, response: Response) -> HealthResponse:
    db_status = "connected"
    overall = "healthy"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    search = getattr(request.app.state, "proximity_search", None)
    capability = getattr(request.app.state, "spatial_capability", None)

    if capability is not None and capability.error and overall == "healthy":
        overall = "degraded"

    if overall == "unhealthy":
        response.status_code = 503

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        spatial_backend=search.backend_name if search is not None else "uninitialized",
        postgis="available" if capability is not None and capability.available else "unavailable",
        postgis_version=capability.version if capability is not None else None,
        uptime_seconds=round(time.time() - _start_time, 2),
    )


@router.get("/health/ping", summary="Liveness check")
async def ping() -> dict:
    return {"status": "ok"}
