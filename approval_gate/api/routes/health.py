"""
Health check routes.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from redis.exceptions import RedisError

from approval_gate import __version__
from approval_gate.api.dependencies import get_context
from approval_gate.approve.context import ApproveContext
from approval_gate.observability.metrics import get_metrics
from approval_gate.types.api import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


async def _ping(context: ApproveContext) -> bool:
    try:
        return bool(await context.redis.ping())
    except RedisError as e:
        logger.warning("Redis ping failed", extra={"error": str(e)})
        return False


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check the health of the API and Redis connection.",
)
async def health_check(
    context: ApproveContext = Depends(get_context),
) -> HealthResponse:
    """
    Perform a health check.

    Checks Redis connectivity and returns service status.
    """
    redis_status = "healthy" if await _ping(context) else "unhealthy"

    return HealthResponse(
        status="healthy" if redis_status == "healthy" else "degraded",
        version=__version__,
        redis=redis_status,
        timestamp=datetime.now(timezone.utc),
    )


@router.get(
    "/ready",
    summary="Readiness check",
    description="Check if the service is ready to receive traffic.",
)
async def readiness_check(
    context: ApproveContext = Depends(get_context),
) -> dict:
    """Kubernetes readiness probe endpoint."""
    return {"ready": await _ping(context)}


@router.get(
    "/live",
    summary="Liveness check",
    description="Check if the service is alive.",
)
async def liveness_check() -> dict:
    """Kubernetes liveness probe endpoint."""
    return {"alive": True}


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Expose Prometheus metrics.",
)
async def metrics() -> Response:
    """Expose Prometheus metrics."""
    metrics_collector = get_metrics()
    return Response(
        content=metrics_collector.get_metrics(),
        media_type=metrics_collector.get_content_type(),
    )
