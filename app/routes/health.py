"""
Venue Gallery Backend — Health and Index Routes
================================================

What:  GET /health (liveness probe) and GET / (API index).
Who:   Docker health checks, load balancers, humans poking at the API.

Health Check Philosophy:
    /health answers 200 whenever the process can serve requests. The
    database probe is informational only ("connected" / "disconnected");
    the asset host is not probed, since every probe would be a billable
    API call.
"""

import logging
import time

from fastapi import APIRouter
from sqlalchemy import text

from app import __version__
from app.config import settings
from app.database import engine
from app.models.common import utcnow
from app.schemas.common import ApiResponse, HealthStatus

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

# Set once at import; uptime is measured from here
_start_time = time.time()


async def _database_status() -> str:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning("Health check: database unreachable: %s", str(e))
        return "disconnected"
    return "connected"


@router.get(
    "/health",
    response_model=ApiResponse[HealthStatus],
    summary="Service health check",
    description="Liveness probe. Always 200 while the process is up.",
)
async def health_check() -> ApiResponse[HealthStatus]:
    return ApiResponse(
        message="Server is healthy",
        data=HealthStatus(
            status="ok",
            version=__version__,
            environment=settings.environment,
            database=await _database_status(),
            uptime_seconds=round(time.time() - _start_time, 2),
            timestamp=utcnow(),
        ),
    )


@router.get("/", summary="API index", include_in_schema=False)
async def index() -> dict:
    return {
        "success": True,
        "message": "Venue Gallery Backend API",
        "version": __version__,
        "documentation": "/docs",
        "endpoints": {
            "categories": "/api/categories",
            "images": "/api/images",
            "health": "/health",
        },
    }
