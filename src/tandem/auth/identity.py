"""Caller identity resolution.

``resolve_caller`` classifies every request as anonymous, a user, or an admin.
It never raises: a bad or expired token simply yields no identity from that
source and resolution continues with the next one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

import jwt
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import Request

from tandem.auth.tokens import decode_admin_token, decode_user_token, extract_bearer, user_token_from_request
from tandem.db.models import User

logger = logging.getLogger(__name__)

IdentityKind = Literal["anonymous", "user", "admin"]


@dataclass(frozen=True)
class Identity:
    kind: IdentityKind
    user_id: str | None = None
    role: str | None = None
    admin_name: str | None = None
    email: str | None = None

    @property
    def is_anonymous(self) -> bool:
        return self.kind == "anonymous"


ANONYMOUS = Identity(kind="anonymous")


def resolve_caller(request: Request) -> Identity:
    """Bearer token (admin scheme, then user scheme), then session cookie, else anonymous."""
    bearer = extract_bearer(request.headers.get("authorization"))
    if bearer:
        try:
            claims = decode_admin_token(bearer)
            return Identity(kind="admin", role="admin", admin_name=str(claims.get("username") or claims["sub"]))
        except jwt.InvalidTokenError:
            pass  # not an admin token; fall through to the user scheme

    token = user_token_from_request(request)
    if token:
        try:
            claims = decode_user_token(token)
        except jwt.InvalidTokenError as exc:
            logger.debug("Rejected user token: %s", exc)
        else:
            return Identity(
                kind="user",
                user_id=str(claims["sub"]),
                role=str(claims.get("role") or "member"),
                email=claims.get("email"),
            )
    return ANONYMOUS


async def get_or_create_user(db: AsyncSession, identity: Identity) -> User:
    """Load the user row for a provider identity, creating it on first sight."""
    user = await db.get(User, identity.user_id)
    if user is not None:
        return user
    user = User(id=identity.user_id, email=identity.email)
    db.add(user)
    await db.flush()
    logger.info("Created user row for %s", identity.user_id)
    return user

