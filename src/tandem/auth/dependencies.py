"""FastAPI authentication dependencies."""

from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tandem.auth.csrf import csrf_ok
from tandem.auth.identity import Identity, get_or_create_user, resolve_caller
from tandem.config import get_settings
from tandem.database import get_session
from tandem.db.models import User
from tandem.errors import Forbidden, Unauthorized


async def get_identity(request: Request) -> Identity:
    """Resolve the caller and record its kind for the request log."""
    identity = resolve_caller(request)
    request.state.identity_kind = identity.kind
    return identity


async def get_current_user(
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_session),
) -> User:
    """Authenticated end user. Anonymous (and admin-scheme) callers get 401."""
    if identity.kind != "user":
        raise Unauthorized("Authentication required")
    return await get_or_create_user(db, identity)


async def get_optional_user_id(identity: Identity = Depends(get_identity)) -> str | None:
    return identity.user_id if identity.kind == "user" else None


async def require_admin(request: Request, identity: Identity = Depends(get_identity)) -> Identity:
    """
    Admin identity with CSRF enforcement on mutations.

    401 when there is no identity at all, 403 for non-admins and for a missing
    or mismatched CSRF token.
    """
    if identity.is_anonymous:
        raise Unauthorized("Admin authentication required")
    if identity.kind != "admin":
        raise Forbidden("Admin access required")
    if not await csrf_ok(request, get_settings()):
        raise Forbidden("Invalid CSRF token")
    return identity
