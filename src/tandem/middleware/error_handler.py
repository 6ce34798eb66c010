"""Global error handler: consistent JSON error responses."""

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tandem.config import get_settings
from tandem.errors import RateLimited, ServiceError

logger = structlog.get_logger()

_STATUS_KINDS = {
    400: "validation_failed",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    429: "rate_limited",
}


def error_body(message: str, details: Any = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": False, "error": message}
    if details is not None:
        body["details"] = details
    return body


def sanitize_validation_errors(errors: list[Any]) -> list[dict[str, str]]:
    """Keep the field path and message only. Submitted values are never echoed."""
    sanitized = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        sanitized.append({"field": ".".join(loc) or "body", "message": str(err.get("msg", "Invalid value"))})
    return sanitized


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
        request.state.error_kind = exc.kind
        headers: dict[str, str] = {}
        if isinstance(exc, RateLimited):
            headers["Retry-After"] = str(exc.retry_after)
            headers["X-RateLimit-Remaining"] = "0"
            if exc.limit is not None:
                headers["X-RateLimit-Limit"] = str(exc.limit)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.message, exc.details),
            headers=headers or None,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Handle HTTP exceptions with consistent JSON format."""
        request.state.error_kind = _STATUS_KINDS.get(exc.status_code, "http_error")
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Schema mismatches are 400s with field paths, never input values."""
        request.state.error_kind = "validation_failed"
        return JSONResponse(
            status_code=400,
            content=error_body("Invalid input data provided", sanitize_validation_errors(list(exc.errors()))),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions: always return JSON."""
        request.state.error_kind = "internal"
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=type(exc).__name__,
            exc_info=exc,
        )
        settings = get_settings()
        message = "Internal server error"
        if settings.debug and not settings.is_production:
            message = f"Internal server error: {exc}"
        return JSONResponse(status_code=500, content=error_body(message))
