"""Admin authentication router: /api/admin/auth."""

from __future__ import annotations

import hashlib

import jwt
from fastapi import APIRouter, Request, Response

from tandem.auth.csrf import set_csrf_cookie
from tandem.auth.schemas import AdminLoginRequest, AdminLoginResponse, AdminUser, AdminVerifyResponse
from tandem.auth.service import login_admin
from tandem.auth.tokens import decode_admin_token, extract_bearer
from tandem.config import get_settings
from tandem.errors import Unauthorized
from tandem.middleware.rate_limit import client_address, get_rate_limit_store

router = APIRouter(prefix="/api/admin/auth", tags=["Admin Auth"])


@router.post("", response_model=AdminLoginResponse)
async def admin_login(body: AdminLoginRequest, request: Request, response: Response) -> AdminLoginResponse:
    """Exchange admin credentials for a token; sets the CSRF cookie."""
    settings = get_settings()
    client = hashlib.sha256(client_address(request).encode()).hexdigest()[:16]
    token, csrf_token = await login_admin(
        get_rate_limit_store(request),
        settings,
        client=client,
        username=body.username,
        password=body.password,
    )
    set_csrf_cookie(response, csrf_token, settings)
    request.state.identity_kind = "admin"
    return AdminLoginResponse(
        token=token,
        csrfToken=csrf_token,
        expiresIn=settings.admin_token_expire_days * 24 * 3600,
        user=AdminUser(username=body.username),
    )


@router.get("", response_model=AdminVerifyResponse)
async def verify_admin(request: Request) -> AdminVerifyResponse:
    """Check that the presented admin token is still valid."""
    token = extract_bearer(request.headers.get("authorization"))
    if token is None:
        raise Unauthorized("No token provided")
    try:
        claims = decode_admin_token(token)
    except jwt.InvalidTokenError as e:
        raise Unauthorized("Invalid or expired token") from e
    request.state.identity_kind = "admin"
    return AdminVerifyResponse(user=AdminUser(username=str(claims.get("username") or claims["sub"])))
