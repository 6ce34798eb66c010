"""Invite code generation for Element Soup co-op sessions.

Codes are 6 characters drawn uniformly from uppercase letters and digits,
minus the look-alikes I, O, 0 and 1, generated server-side with a
cryptographic random source.
"""

from __future__ import annotations

import secrets

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tandem.db.models import CoopSession

INVITE_CHARSET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
INVITE_LENGTH = 6


def generate_invite_code() -> str:
    """Generate a cryptographically random 6-character invite code."""
    return "".join(secrets.choice(INVITE_CHARSET) for _ in range(INVITE_LENGTH))


def normalize_invite_code(code: str) -> str:
    """Normalize an invite code for case-insensitive lookup."""
    return code.strip().upper()


def is_valid_invite_code(code: str) -> bool:
    return len(code) == INVITE_LENGTH and all(c in INVITE_CHARSET for c in code)


async def generate_unique_invite_code(db: AsyncSession) -> str:
    """Generate a code not held by any session that is still waiting for a partner."""
    for _ in range(10):
        code = generate_invite_code()
        existing = await db.execute(
            select(CoopSession.id).where(CoopSession.invite_code == code, CoopSession.status == "waiting")
        )
        if existing.first() is None:
            return code
    raise RuntimeError("Failed to generate unique invite code after 10 attempts")
