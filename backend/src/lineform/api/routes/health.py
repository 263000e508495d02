"""
Health check endpoint.

Provides system health status for monitoring and load balancers.
"""

import logging

from fastapi import APIRouter
from sqlalchemy import text

from lineform import __version__
from lineform.api.schemas import HealthResponse
from lineform.infrastructure.database import get_session

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Check system health.

    Returns status of core components for monitoring dashboards
    and load balancer health checks.
    """
    database = "connected"
    try:
        async with get_session() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        database = "unavailable"

    return HealthResponse(
        status="healthy" if database == "connected" else "degraded",
        version=__version__,
        database=database,
    )
