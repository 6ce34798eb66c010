"""Public profile fields shown on leaderboards and in co-op sessions.

Usernames are 3-20 letters, digits or underscores, unique ignoring case, and
may not be one of the reserved system names.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tandem.db.models import Avatar, User
from tandem.errors import Conflict, NotFound, ValidationFailed

logger = logging.getLogger(__name__)

USERNAME_RE = re.compile(r"^[A-Za-z0-9_]+$")
USERNAME_MIN = 3
USERNAME_MAX = 20

RESERVED_USERNAMES = frozenset(
    {
        "admin",
        "administrator",
        "mod",
        "moderator",
        "support",
        "help",
        "official",
        "staff",
        "team",
        "tandem",
        "system",
        "bot",
        "robot",
        "user",
        "guest",
        "anonymous",
        "deleted",
        "removed",
        "banned",
        "root",
        "superuser",
        "owner",
        "manager",
    }
)

TAKEN_MESSAGE = "This username is already taken. Please choose another one."


def validate_username(raw: str) -> str:
    """Return the trimmed username or raise ``ValidationFailed`` with a user-facing reason."""
    username = raw.strip()
    if not username:
        raise ValidationFailed("Username is required")
    if len(username) < USERNAME_MIN:
        raise ValidationFailed(f"Username must be at least {USERNAME_MIN} characters long")
    if len(username) > USERNAME_MAX:
        raise ValidationFailed(f"Username must be {USERNAME_MAX} characters or less")
    if not USERNAME_RE.match(username):
        raise ValidationFailed("Username can only contain letters, numbers, and underscores")
    if username.lower() in RESERVED_USERNAMES:
        raise ValidationFailed("This username is reserved. Please choose a different one.")
    return username


async def set_username(db: AsyncSession, user: User, raw: str) -> str:
    """
    Change the caller's display name.

    Raises:
        ValidationFailed: Bad format or a reserved name.
        Conflict: Another user already holds the name (any case).
    """
    username = validate_username(raw)
    taken = await db.execute(
        select(User.id).where(func.lower(User.username) == username.lower(), User.id != user.id).limit(1)
    )
    if taken.first() is not None:
        raise Conflict(TAKEN_MESSAGE)

    user.username = username
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict(TAKEN_MESSAGE) from None
    logger.info("User %s changed username", user.id)
    return username


async def list_avatars(db: AsyncSession) -> list[dict[str, Any]]:
    result = await db.execute(
        select(Avatar).where(Avatar.is_active.is_(True)).order_by(Avatar.sort_order, Avatar.display_name)
    )
    return [
        {"id": a.id, "displayName": a.display_name, "imagePath": a.image_path}
        for a in result.scalars().all()
    ]


async def select_avatar(db: AsyncSession, user: User, avatar_id: str) -> dict[str, Any]:
    avatar = await db.get(Avatar, avatar_id)
    if avatar is None or not avatar.is_active:
        raise NotFound("Avatar not found")
    user.selected_avatar_id = avatar.id
    await db.commit()
    return {"id": avatar.id, "displayName": avatar.display_name, "imagePath": avatar.image_path}


def country_flag(country_code: str | None) -> str | None:
    """Regional-indicator flag for an ISO 3166 alpha-2 code, e.g. ``US`` -> 🇺🇸."""
    if not country_code or len(country_code) != 2 or not country_code.isascii() or not country_code.isalpha():
        return None
    return "".join(chr(0x1F1E6 + ord(c) - ord("A")) for c in country_code.upper())


async def capture_country(db: AsyncSession, user_id: str, country_code: str | None) -> str | None:
    """Store the caller's country from a geo header. Returns the flag, or None for unknown codes."""
    flag = country_flag(country_code)
    if flag is None:
        return None
    user = await db.get(User, user_id)
    if user is not None and user.country_flag != flag:
        user.country_code = country_code.upper()
        user.country_flag = flag
        await db.flush()
    return flag
