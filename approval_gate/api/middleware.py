"""
Request metrics middleware.
"""

import time
from collections.abc import Callable

from fastapi import Request

from approval_gate.observability.metrics import get_metrics

# Paths not worth recording
SKIPPED_PATHS = ("/metrics", "/live", "/docs", "/openapi.json")


def _endpoint(request: Request) -> str:
    """Route template for the request, so keys and ids don't explode labels."""
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


def create_metrics_middleware() -> Callable:
    """
    Create request metrics middleware for FastAPI.

    Returns:
        The middleware function.
    """

    async def metrics_middleware(request: Request, call_next: Callable):
        """Middleware to record API request counts and latency."""
        if request.url.path in SKIPPED_PATHS:
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)

        get_metrics().record_api_request(
            method=request.method,
            endpoint=_endpoint(request),
            status=response.status_code,
            duration_seconds=time.perf_counter() - start,
        )
        return response

    return metrics_middleware
