"""CSRF double-submit tokens for admin mutations."""

from __future__ import annotations

import secrets

from starlette.requests import Request
from starlette.responses import Response

from tandem.config import Settings

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})
CSRF_HEADER = "x-csrf-token"
_BODY_FIELDS = ("csrfToken", "csrf_token")


def generate_csrf_token() -> str:
    """Random 32-byte token, hex encoded."""
    return secrets.token_hex(32)


def set_csrf_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        settings.csrf_cookie_full_name,
        token,
        max_age=settings.admin_token_expire_days * 24 * 3600,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )


async def _submitted_token(request: Request) -> str | None:
    header = request.headers.get(CSRF_HEADER)
    if header:
        return header
    if not request.headers.get("content-type", "").startswith("application/json"):
        return None
    try:
        body = await request.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        for field in _BODY_FIELDS:
            value = body.get(field)
            if isinstance(value, str) and value:
                return value
    return None


async def csrf_ok(request: Request, settings: Settings) -> bool:
    """True for safe methods, or when the cookie and the submitted token match."""
    if request.method in SAFE_METHODS:
        return True
    cookie = request.cookies.get(settings.csrf_cookie_full_name)
    submitted = await _submitted_token(request)
    if not cookie or not submitted:
        return False
    return secrets.compare_digest(cookie, submitted)
