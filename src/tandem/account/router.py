"""Account router: /api/account/*."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tandem.account import profile, service
from tandem.account.apple import AppleRevoker, get_apple_revoker
from tandem.account.schemas import AccountDeleteRequest, AvatarRequest, UsernameRequest
from tandem.auth.dependencies import get_current_user
from tandem.database import get_session
from tandem.db.models import User
from tandem.errors import ValidationFailed

router = APIRouter(prefix="/api/account", tags=["Account"])

CONFIRMATION_TEXT = "DELETE"
NATIVE_CLIENT_MARKER = "Capacitor"


@router.get("/delete")
async def deletion_info(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """What deletion removes and what it leaves behind."""
    return await service.deletion_preview(db, user)


@router.delete("/delete")
async def delete_account(
    request: Request,
    body: AccountDeleteRequest | None = Body(default=None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    revoker: AppleRevoker = Depends(get_apple_revoker),
) -> dict[str, Any]:
    """
    Delete the caller's account.

    Web clients must send ``confirmationText="DELETE"``; the native app
    confirms in its own UI. An Apple token, when supplied, is revoked first.
    """
    body = body or AccountDeleteRequest()
    is_web = NATIVE_CLIENT_MARKER not in request.headers.get("user-agent", "")
    if is_web and body.confirmation_text != CONFIRMATION_TEXT:
        raise ValidationFailed("Please type DELETE to confirm account deletion")

    if body.apple_refresh_token:
        # Deletion proceeds even when revocation fails.
        await revoker.revoke(body.apple_refresh_token, "authorization_code")

    return await service.delete_account(db, user.id)


@router.get("/username")
async def read_username(user: User = Depends(get_current_user)) -> dict[str, Any]:
    return {"success": True, "username": user.username}


@router.post("/username")
async def update_username(
    body: UsernameRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Set the leaderboard display name; 409 when another account holds it."""
    username = await profile.set_username(db, user, body.username)
    return {"success": True, "username": username}


@router.get("/avatars")
async def available_avatars(db: AsyncSession = Depends(get_session)) -> dict[str, Any]:
    return {"success": True, "avatars": await profile.list_avatars(db)}


@router.post("/avatar")
async def choose_avatar(
    body: AvatarRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    return {"success": True, "avatar": await profile.select_avatar(db, user, body.avatar_id)}
