from datetime import datetime
from typing import Any, List, Optional, Tuple

import structlog
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.core.config import settings
from storefront.core.exceptions import APIError

logger = structlog.get_logger()


def error_envelope(status_code: int, message: str, errors: Optional[List[Any]] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            {
                "success": False,
                "message": message,
                "data": None,
                "errors": errors or [],
                "timestamp": f"{datetime.utcnow().isoformat()}Z",
            }
        ),
    )


def _split_detail(detail: Any) -> Tuple[str, list]:
    """HTTPException.detail may be a message, a list of errors, or a {message, errors} dict."""
    if isinstance(detail, str):
        return detail, []
    if isinstance(detail, list):
        return "Request failed", detail
    if isinstance(detail, dict):
        return detail.get("message", "Request failed"), detail.get("errors", [])
    return "Request failed", []


async def handle_api_error(request: Request, exc: APIError):
    if exc.status_code >= 500:
        logger.error("api_error", path=request.url.path, status_code=exc.status_code, message=exc.message)
    return error_envelope(exc.status_code, exc.message, exc.errors)


async def handle_http_exception(request: Request, exc: StarletteHTTPException):
    message, errors = _split_detail(exc.detail)
    response = error_envelope(exc.status_code, message, errors)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def handle_validation_error(request: Request, exc: RequestValidationError):
    return error_envelope(status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation failed", exc.errors())


async def handle_rate_limited(request: Request, exc: RateLimitExceeded):
    return error_envelope(status.HTTP_429_TOO_MANY_REQUESTS, "Too many requests. Please try again later.")


async def handle_unexpected(request: Request, exc: Exception):
    logger.exception("unhandled_exception", error_type=type(exc).__name__, detail=str(exc))

    if settings.DEBUG and settings.ENVIRONMENT != "production":
        return error_envelope(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            f"Internal server error: {exc}",
            [{"type": type(exc).__name__}],
        )
    return error_envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(APIError, handle_api_error)
    # Starlette's base class also covers router 404/405 responses
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(RateLimitExceeded, handle_rate_limited)
    app.add_exception_handler(Exception, handle_unexpected)
