"""
API middleware and exception mapping.

- Request scope: X-Request-ID, structlog request context, one access entry
- GatewayError -> HTTP status by failure kind
- 404 and catch-all JSON handlers
- CORS for the portal front-end
"""
from __future__ import annotations

import time
import uuid

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from shared.config import get_settings
from shared.models.enums import FailureKind
from shared.utils.logging import bind_request_context, clear_request_context, get_logger

from verifier.errors import GatewayError

logger = get_logger(__name__)

HEALTH_PATHS = ("/health", "/ready")

GATEWAY_ERROR_STATUS = {
    FailureKind.SESSION_ERROR: 401,
    FailureKind.NOT_FOUND: 404,
}


def gateway_error_status(kind: FailureKind) -> int:
    """401 for a rejected session, 404 for a missing acta, 502 for anything else."""
    return GATEWAY_ERROR_STATUS.get(kind, 502)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds the request id into the log context and writes one entry per request."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        request.state.request_id = request_id
        path = request.url.path
        bind_request_context(request_id, request.method, path)
        started = time.monotonic()
        try:
            response = await call_next(request)
            if path not in HEALTH_PATHS:
                logger.info(
                    "http_request",
                    status=response.status_code,
                    duration_ms=round((time.monotonic() - started) * 1000, 2),
                )
        finally:
            clear_request_context()
        response.headers["X-Request-ID"] = request_id
        return response


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the JSON error handlers."""

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        logger.warning("gateway_error", kind=exc.kind.value, status=exc.status, error=exc.message)
        return JSONResponse(
            status_code=gateway_error_status(exc.kind),
            content={
                "error": exc.kind.value,
                "message": exc.message,
                "retryable": not exc.is_session_error,
            },
        )

    @app.exception_handler(404)
    async def not_found_handler(request: Request, exc: Exception) -> JSONResponse:
        detail = exc.detail if isinstance(exc, StarletteHTTPException) else None
        if not isinstance(detail, str) or detail == "Not Found":
            detail = "Resource not found"
        return JSONResponse(status_code=404, content={"error": "not_found", "message": detail})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        request_id = getattr(request.state, "request_id", "unknown")
        logger.error("unhandled_exception", error=str(exc), request_id=request_id, exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
                "request_id": request_id,
            },
        )


def setup_middleware(app: FastAPI) -> None:
    """CORS outermost so preflight requests never reach the request scope."""
    settings = get_settings()
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Content-Disposition"],
    )
    setup_exception_handlers(app)
