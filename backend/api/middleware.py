"""
API middleware stack.

- Request context: X-Request-ID in and out, bound into every log event of the request
- Structured request/response logging
- Exception handlers mapping provider failures to HTTP statuses
- CORS configuration
"""
from __future__ import annotations

import time
import uuid

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from shared.config import Environment, get_settings
from shared.utils.logging import get_logger

from ingest.providers.base import QUOTA_MESSAGE, ProviderError, QuotaExceededError

logger = get_logger(__name__)

_QUIET_PATHS = ("/health", "/metrics")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assigns a request id, binds it for structlog and logs the exchange."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        request.state.request_id = request_id
        path = request.url.path
        quiet = path in _QUIET_PATHS

        start = time.monotonic()
        with structlog.contextvars.bound_contextvars(request_id=request_id):
            try:
                response = await call_next(request)
            except Exception as exc:
                logger.error(
                    "http_request_error",
                    method=request.method,
                    path=path,
                    duration_ms=round((time.monotonic() - start) * 1000, 2),
                    error=str(exc),
                    exc_info=True,
                )
                raise
            if not quiet:
                logger.info(
                    "http_request",
                    method=request.method,
                    path=path,
                    status=response.status_code,
                    duration_ms=round((time.monotonic() - start) * 1000, 2),
                )

        response.headers["X-Request-ID"] = request_id
        return response

def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers. Order of registration does not matter; Starlette picks the closest class."""

    @app.exception_handler(QuotaExceededError)
    async def quota_handler(request: Request, exc: QuotaExceededError) -> JSONResponse:
        logger.warning("provider_quota_exceeded", path=request.url.path, provider=exc.provider)
        return JSONResponse(
            status_code=429,
            content={"error": "quota_exceeded", "message": QUOTA_MESSAGE},
        )

    @app.exception_handler(ProviderError)
    async def provider_error_handler(request: Request, exc: ProviderError) -> JSONResponse:
        logger.error(
            "provider_request_failed",
            path=request.url.path,
            provider=exc.provider,
            error=str(exc),
        )
        return JSONResponse(
            status_code=502,
            content={"error": "provider_error", "message": str(exc), "provider": exc.provider},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        request_id = getattr(request.state, "request_id", "unknown")
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            error=str(exc),
            request_id=request_id,
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
                "request_id": request_id,
            },
        )


def setup_cors(app: FastAPI) -> None:
    settings = get_settings()
    origins = settings.cors_origins
    if settings.environment == Environment.PRODUCTION and origins == ["*"]:
        logger.warning("cors_wildcard_in_production")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )


def setup_middleware(app: FastAPI) -> None:
    """Apply all middleware to the FastAPI app."""
    app.add_middleware(RequestContextMiddleware)
    # added last so it wraps everything and answers preflights first
    setup_cors(app)
    setup_exception_handlers(app)
