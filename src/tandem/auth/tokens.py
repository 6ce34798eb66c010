"""
JWT handling for the two identity schemes.

User access tokens are minted by the hosted auth provider and signed with a
shared HS256 secret; this service only verifies them. Admin tokens are minted
here after a password login and carry ``role=admin`` with a fixed lifetime.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from starlette.requests import Request

from tandem.config import get_settings

ALGORITHM = "HS256"

_BEARER_RE = re.compile(r"^Bearer\s+(.+)$", re.IGNORECASE)


def extract_bearer(authorization: str | None) -> str | None:
    """Return the token from an Authorization header, or None when absent or empty."""
    if not authorization:
        return None
    match = _BEARER_RE.match(authorization.strip())
    if match is None:
        return None
    token = match.group(1).strip()
    return token or None


def decode_user_token(token: str) -> dict[str, Any]:
    """
    Verify an auth-provider access token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or has no subject.
    """
    settings = get_settings()
    payload: dict[str, Any] = jwt.decode(
        token,
        settings.auth_jwt_secret,
        algorithms=[ALGORITHM],
        audience=settings.auth_jwt_audience,
        options={"require": ["sub", "exp"]},
    )
    if not str(payload.get("sub", "")).strip():
        msg = "Token has no subject"
        raise jwt.InvalidTokenError(msg)
    return payload


def create_admin_token(username: str) -> str:
    """Create an admin token valid for ``admin_token_expire_days``."""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": username,
        "username": username,
        "role": "admin",
        "iat": now,
        "exp": now + timedelta(days=settings.admin_token_expire_days),
    }
    return jwt.encode(payload, settings.admin_jwt_secret, algorithm=ALGORITHM)


def decode_admin_token(token: str) -> dict[str, Any]:
    """
    Verify an admin token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or not an admin token.
    """
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token, settings.admin_jwt_secret, algorithms=[ALGORITHM], options={"require": ["sub", "exp"]}
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None
    if payload.get("role") != "admin":
        msg = "Not an admin token"
        raise jwt.InvalidTokenError(msg)
    return payload


def user_token_from_request(request: Request) -> str | None:
    """Bearer header first, then the session cookie."""
    bearer = extract_bearer(request.headers.get("authorization"))
    if bearer:
        return bearer
    settings = get_settings()
    return request.cookies.get(settings.session_cookie_name) or None


def peek_user_id(request: Request) -> str | None:
    """User id from a valid user token, without touching the database."""
    token = user_token_from_request(request)
    if token is None:
        return None
    try:
        return str(decode_user_token(token)["sub"])
    except jwt.InvalidTokenError:
        return None
