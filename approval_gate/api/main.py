"""
FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from approval_gate import __version__
from approval_gate.api.middleware import create_metrics_middleware
from approval_gate.api.routes import approvals_router, auth_router, health_router
from approval_gate.approve.context import ApproveContext, create_context
from approval_gate.approve.job_types import registry_from_settings
from approval_gate.config import get_settings
from approval_gate.observability.logging import setup_logging
from approval_gate.observability.metrics import setup_metrics
from approval_gate.observability.tracing import instrument_fastapi, setup_tracing
from approval_gate.store import close_store, init_store

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Connects to Redis and builds the approve context, unless the
    application was created with one.
    """
    # Startup
    setup_logging()
    setup_metrics()
    setup_tracing()

    owns_store = getattr(app.state, "context", None) is None
    if owns_store:
        redis = await init_store()
        app.state.context = create_context(redis, registry_from_settings())

    logger.info(
        "Application started",
        extra={"job_types": app.state.context.job_types.names()},
    )

    yield

    # Shutdown
    if owns_store:
        await close_store()
    logger.info("Application shutdown")


def create_app(context: ApproveContext | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        context: Approve context to serve. When omitted, one is built from
            settings on startup.

    Returns:
        FastAPI: The configured application instance.
    """
    app = FastAPI(
        title="Approval Gate API",
        description="Administration of jobs held back for approval",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.context = context

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(
        BaseHTTPMiddleware,
        dispatch=create_metrics_middleware(),
    )

    # Include routers
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(approvals_router)

    # Instrument with OpenTelemetry
    instrument_fastapi(app)

    return app


def run() -> None:
    """Run the API server."""
    settings = get_settings()

    uvicorn.run(
        "approval_gate.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


# Create app instance for uvicorn
app = create_app()


if __name__ == "__main__":
    run()
