"""
IDE Workspace — Health Check Route
===================================

What:  Health check endpoint for monitoring and container probes.
How:   Runs SELECT 1 against the project store and reports the execution
       circuit breaker state. GitHub is not probed: it is only reachable
       with a user's token.

Status levels:
    - healthy:   database reachable, primary execution provider available
    - degraded:  database reachable, execution circuit open (fallback in use)
    - unhealthy: database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ide_workspace import __version__
from ide_workspace.schemas.api import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(response: Response) -> HealthResponse:
    from ide_workspace.database import engine
    from ide_workspace.services.execution_service import CircuitBreaker, execution_service

    db_status = "connected"
    execution_status = "available"
    overall = "healthy"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", e)

    if execution_service.circuit_breaker.state == CircuitBreaker.OPEN:
        execution_status = "circuit_open"
        if overall == "healthy":
            overall = "degraded"

    if overall == "unhealthy":
        response.status_code = 503

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        execution=execution_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
