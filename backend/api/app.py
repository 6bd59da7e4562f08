"""
FastAPI application factory for the Acta Verification API service.

Creates the app with:
- Verification routes (championships, matches, approval, acta files)
- Middleware stack
- Health check endpoints
- Lifespan management (gateway client startup/shutdown, metrics server)
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from shared.config import get_settings
from shared.utils.http_client import GatewayHTTPClient
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import start_metrics_server

from api.dependencies import get_gateway, init_dependencies
from api.middleware import setup_middleware
from api.routes.verification import router as verification_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Start the gateway client and metrics server; close the client on shutdown."""
    setup_logging("api")
    settings = get_settings()

    gateway = GatewayHTTPClient()
    await gateway.start()
    init_dependencies(gateway)
    start_metrics_server()

    logger.info(
        "api_service_started",
        host=settings.api_host,
        port=settings.api_port,
        gateway=gateway.base_url,
    )

    yield

    await gateway.close()
    logger.info("api_service_stopped")


@asynccontextmanager
async def _noop_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    yield


def create_app(*, use_lifespan: bool = True) -> FastAPI:
    """Create and configure the FastAPI application. Set use_lifespan=False for testing without a gateway."""
    app = FastAPI(
        title="Acta Verification API",
        description="Championship acta verification against the integrity ledger",
        version="1.0.0",
        lifespan=lifespan if use_lifespan else _noop_lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    setup_middleware(app)

    app.include_router(verification_router)

    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "api"}

    @app.get("/ready", tags=["system"])
    async def readiness() -> dict[str, str]:
        """Readiness probe: the gateway client has been started."""
        try:
            get_gateway()
        except RuntimeError:
            return {"status": "starting"}
        return {"status": "ok"}

    return app


# For running with uvicorn directly
app = create_app()
