import time
import uuid

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi.middleware import SlowAPIMiddleware

from storefront.core.config import settings

CORRELATION_HEADER = "X-Correlation-ID"

logger = structlog.get_logger()


def _cors_origins() -> list:
    origins = list(settings.BACKEND_CORS_ORIGINS)
    # Cookies need an exact origin match
    if settings.FRONTEND_URL and settings.FRONTEND_URL not in origins:
        origins.append(settings.FRONTEND_URL)
    return origins


async def request_context(request: Request, call_next):
    """
    Per-request bookkeeping in one pass.

    Binds a correlation id (taken from the caller or generated) into the
    structlog context so every log line of the request carries it, times
    the request, and stamps the response with the correlation id, timing
    and security headers.
    """
    correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
    request.state.correlation_id = correlation_id
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)

    started = time.perf_counter()
    logger.info(
        "request_started",
        method=request.method,
        path=request.url.path,
        client_ip=request.client.host if request.client else None,
    )
    try:
        response = await call_next(request)
        elapsed = time.perf_counter() - started
        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(elapsed * 1000, 2),
        )
    finally:
        structlog.contextvars.unbind_contextvars("correlation_id")

    response.headers[CORRELATION_HEADER] = correlation_id
    response.headers["X-Process-Time"] = f"{elapsed:.6f}"
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    if settings.ENVIRONMENT == "production":
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return response


def register_middleware(app: FastAPI) -> None:
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", CORRELATION_HEADER],
        expose_headers=["X-Process-Time", CORRELATION_HEADER],
        max_age=3600,
    )
    app.middleware("http")(request_context)
