"""Service error kinds.

Services raise these; the handlers in ``tandem.middleware.error_handler``
translate them into JSON responses. Each kind owns its HTTP status so the
classification happens exactly once, at the outer boundary.
"""

from __future__ import annotations

from typing import Any


class ServiceError(Exception):
    """Base class for errors that are safe to surface to callers."""

    status_code = 500
    kind = "internal"
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, *, details: Any = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationFailed(ServiceError):
    status_code = 400
    kind = "validation_failed"
    default_message = "Invalid input data provided"


class Unauthorized(ServiceError):
    status_code = 401
    kind = "unauthorized"
    default_message = "Unauthorized"


class Forbidden(ServiceError):
    status_code = 403
    kind = "forbidden"
    default_message = "Forbidden"


class NotFound(ServiceError):
    status_code = 404
    kind = "not_found"
    default_message = "Not found"


class Conflict(ServiceError):
    status_code = 409
    kind = "conflict"
    default_message = "Conflict"


class RateLimited(ServiceError):
    status_code = 429
    kind = "rate_limited"
    default_message = "Rate limit exceeded. Try again later."

    def __init__(
        self,
        message: str | None = None,
        *,
        retry_after: int = 60,
        limit: int | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message, details=details)
        self.retry_after = retry_after
        self.limit = limit


class UpstreamUnavailable(ServiceError):
    status_code = 503
    kind = "upstream_unavailable"
    default_message = "AI assist is unavailable right now, try again shortly"
