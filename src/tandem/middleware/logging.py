"""Structured logging configuration with structlog, plus the per-request log line."""

import logging
import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from tandem.config import Settings, get_settings
from tandem.middleware.error_handler import error_body

logger = structlog.get_logger()


def setup_logging(settings: Settings) -> None:
    """Configure structlog for JSON or console output."""
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if settings.log_format == "json" else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Set root log level
    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))


def _route_path(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Emit one ``request_completed`` line per request.

    This is also the last line of defence for unexpected exceptions: they are
    logged with the traceback and turned into a sanitized 500.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        error_kind: str | None = None
        try:
            response = await call_next(request)
        except Exception as exc:
            error_kind = "internal"
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
            response = JSONResponse(status_code=500, content=error_body(message))

        error_kind = getattr(request.state, "error_kind", None) or error_kind
        fields = {
            "route": _route_path(request),
            "method": request.method,
            "status": response.status_code,
            "identity_kind": getattr(request.state, "identity_kind", "anonymous"),
            "duration_ms": round((time.perf_counter() - started) * 1000, 2),
        }
        if error_kind is not None or response.status_code >= 400:
            fields["error_kind"] = error_kind or "http_error"
        logger.info("request_completed", **fields)
        return response
