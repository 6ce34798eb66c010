"""Middleware registration."""

from fastapi import FastAPI

from tandem.config import Settings
from tandem.middleware.cors import setup_cors
from tandem.middleware.error_handler import setup_error_handlers
from tandem.middleware.logging import RequestLoggingMiddleware, setup_logging
from tandem.middleware.rate_limit import RateLimitMiddleware
from tandem.middleware.request_id import RequestIdMiddleware
from tandem.middleware.security_headers import SecurityHeadersMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register all middleware in the correct order.

    FastAPI/Starlette executes middleware in reverse-add order (last added = outermost).
    CORS must be outermost so it wraps error responses from inner middleware (e.g. 429),
    and the request id must be bound before the request log line is written.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware, production=settings.is_production)
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)  # added last → outermost → wraps 429 responses
