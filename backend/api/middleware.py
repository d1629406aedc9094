"""
API middleware stack.

- Request ID injection (X-Request-ID header)
- Structured request/response logging
- Exception handlers (caller errors -> 400, everything else -> 500)
- Per-client rate limiting
- CORS configuration
"""
from __future__ import annotations

import time
import uuid

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from shared.config import Environment, get_settings
from shared.errors import InvalidDateFormat, InvalidTimezone
from shared.utils.logging import get_logger

logger = get_logger(__name__)

RATE_LIMIT_WINDOW_S = 60
QUIET_PATHS = ("/health", "/healthz", "/metrics", "/ready")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Injects a unique X-Request-ID header into every request/response."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs one structured line per request."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        start = time.monotonic()
        request_id = getattr(request.state, "request_id", "unknown")
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "http_request_error",
                method=request.method,
                path=path,
                duration_ms=round((time.monotonic() - start) * 1000, 2),
                request_id=request_id,
                error=str(exc),
                exc_info=True,
            )
            raise

        logger.info(
            "http_request",
            method=request.method,
            path=path,
            status=response.status_code,
            cache=response.headers.get("X-Cache-Status"),
            duration_ms=round((time.monotonic() - start) * 1000, 2),
            request_id=request_id,
            client=request.client.host if request.client else "unknown",
        )
        return response


def setup_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(InvalidDateFormat)
    @app.exception_handler(InvalidTimezone)
    async def caller_error_handler(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": "bad_request", "message": str(exc)},
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


class RateLimitMiddleware(BaseHTTPMiddleware):
    """In-memory sliding-window rate limiter per client IP."""

    def __init__(self, app: FastAPI, rpm: int) -> None:
        super().__init__(app)
        self._rpm = rpm
        self._buckets: dict[str, list[float]] = {}

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = time.monotonic()
        window = self._buckets.setdefault(client_ip, [])
        window[:] = [t for t in window if now - t < RATE_LIMIT_WINDOW_S]

        if len(window) >= self._rpm:
            return JSONResponse(
                status_code=429,
                content={"error": "rate_limit_exceeded", "message": f"Max {self._rpm} requests per minute"},
                headers={"Retry-After": str(RATE_LIMIT_WINDOW_S)},
            )

        window.append(now)
        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self._rpm)
        response.headers["X-RateLimit-Remaining"] = str(max(0, self._rpm - len(window)))
        return response


def setup_cors(app: FastAPI) -> None:
    settings = get_settings()
    origins = settings.cors_origins
    if settings.environment == Environment.PRODUCTION and origins == ["*"]:
        logger.warning("cors_wildcard_in_production")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=False,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["ETag", "X-Request-ID", "X-Cache-Status", "X-Cache-Age", "Cache-Control"],
    )


def setup_middleware(app: FastAPI) -> None:
    """Apply all middleware. Starlette runs the last-added middleware outermost."""
    settings = get_settings()
    app.add_middleware(RequestLoggingMiddleware)
    if settings.api_rate_limit_rpm > 0:
        app.add_middleware(RateLimitMiddleware, rpm=settings.api_rate_limit_rpm)
    app.add_middleware(RequestIDMiddleware)
    setup_cors(app)
    setup_exception_handlers(app)
