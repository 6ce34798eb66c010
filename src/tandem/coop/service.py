"""Element Soup co-op sessions and creative saves.

Rules:
- A host has at most one waiting session; creating another abandons the old ones
- Joining claims the session with an UPDATE guarded by ``status='waiting'``
  and an empty partner slot, so only one of two racing joiners wins
- Every session operation requires the caller to be the host or the partner
- ``last_activity_at`` is touched on every mutation
- Waiting sessions older than an hour and active sessions idle for a day are
  garbage-collected to ``abandoned``
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tandem.coop.invite_codes import generate_unique_invite_code, is_valid_invite_code, normalize_invite_code
from tandem.db.models import Avatar, CoopSession, CreativeSave, User
from tandem.db.types import utcnow
from tandem.errors import Conflict, Forbidden, NotFound, ValidationFailed

logger = logging.getLogger(__name__)

STARTER_ELEMENTS: list[dict[str, str]] = [
    {"name": "Earth", "emoji": "🌍"},
    {"name": "Water", "emoji": "💧"},
    {"name": "Fire", "emoji": "🔥"},
    {"name": "Wind", "emoji": "💨"},
]
SAVE_SLOTS = range(1, 4)
ENDED_STATUSES = frozenset({"completed", "abandoned"})
MAX_BANK_SIZE = 2000


def _merge_bank(current: list[dict[str, Any]], incoming: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Union of element banks by name, keeping first-seen order."""
    merged = list(current)
    seen = {e.get("name") for e in current}
    for element in incoming:
        name = element.get("name")
        if name and name not in seen:
            merged.append(element)
            seen.add(name)
    return merged[:MAX_BANK_SIZE]


def _merge_names(current: list[str], incoming: list[str]) -> list[str]:
    return list(dict.fromkeys([*current, *incoming]))


def check_slot(slot: int) -> None:
    if slot not in SAVE_SLOTS:
        raise ValidationFailed(f"Save slot must be between {SAVE_SLOTS.start} and {SAVE_SLOTS.stop - 1}")


def _require_participant(session: CoopSession, user_id: str) -> None:
    if user_id not in (session.host_user_id, session.partner_user_id):
        raise Forbidden("You are not a participant in this session")


async def get_session_row(db: AsyncSession, session_id: str) -> CoopSession:
    session = await db.get(CoopSession, session_id)
    if session is None:
        raise NotFound("Session not found")
    return session


# ---------------------------------------------------------------------------
# Creative saves
# ---------------------------------------------------------------------------


async def get_creative_save(db: AsyncSession, user_id: str, slot: int) -> CreativeSave | None:
    check_slot(slot)
    return await db.get(CreativeSave, (user_id, slot))


async def write_creative_save(
    db: AsyncSession,
    user_id: str,
    slot: int,
    *,
    element_bank: list[dict[str, Any]],
    total_moves: int = 0,
    total_discoveries: int = 0,
    first_discoveries: int = 0,
    first_discovery_elements: list[str] | None = None,
    now: datetime | None = None,
) -> CreativeSave:
    """Replace the contents of a save slot."""
    check_slot(slot)
    now = now or utcnow()
    save = await db.get(CreativeSave, (user_id, slot))
    if save is None:
        save = CreativeSave(user_id=user_id, slot=slot, created_at=now)
        db.add(save)
    save.element_bank = element_bank[:MAX_BANK_SIZE]
    save.total_moves = total_moves
    save.total_discoveries = total_discoveries
    save.first_discoveries = first_discoveries
    save.first_discovery_elements = first_discovery_elements or []
    save.last_played_at = now
    await db.flush()
    return save


def creative_save_view(save: CreativeSave | None, slot: int) -> dict[str, Any]:
    if save is None:
        return {"slot": slot, "hasSave": False}
    return {
        "slot": save.slot,
        "hasSave": True,
        "elementBank": save.element_bank,
        "totalMoves": save.total_moves,
        "totalDiscoveries": save.total_discoveries,
        "firstDiscoveries": save.first_discoveries,
        "firstDiscoveryElements": save.first_discovery_elements,
        "lastPlayedAt": save.last_played_at.isoformat() if save.last_played_at else None,
    }


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


async def create_session(
    db: AsyncSession,
    host_id: str,
    *,
    mode: str = "creative",
    seed_slot: int | None = None,
    now: datetime | None = None,
) -> CoopSession:
    """Open a waiting session for ``host_id``, optionally seeded from a save slot."""
    now = now or utcnow()

    abandoned = await db.execute(
        update(CoopSession)
        .where(CoopSession.host_user_id == host_id, CoopSession.status == "waiting")
        .values({CoopSession.status: "abandoned", CoopSession.ended_at: now})
        .execution_options(synchronize_session=False)
    )
    if abandoned.rowcount:
        logger.info("Abandoned %d waiting co-op sessions for host %s", abandoned.rowcount, host_id)

    bank = [dict(e) for e in STARTER_ELEMENTS]
    moves = discoveries = 0
    firsts: list[str] = []
    if seed_slot is not None:
        save = await get_creative_save(db, host_id, seed_slot)
        if save is None:
            raise NotFound(f"No creative save in slot {seed_slot}")
        bank = _merge_bank(bank, save.element_bank or [])
        moves, discoveries = save.total_moves, save.total_discoveries
        firsts = list(save.first_discovery_elements or [])

    session = CoopSession(
        invite_code=await generate_unique_invite_code(db),
        host_user_id=host_id,
        status="waiting",
        mode=mode,
        element_bank=bank,
        total_moves=moves,
        total_discoveries=discoveries,
        first_discovery_elements=firsts,
        created_at=now,
        last_activity_at=now,
    )
    db.add(session)
    await db.commit()
    logger.info("Created co-op session %s for host %s", session.id, host_id)
    return session


async def join_session(
    db: AsyncSession,
    user_id: str,
    invite_code: str,
    *,
    now: datetime | None = None,
) -> CoopSession:
    """
    Claim the partner slot of a waiting session.

    Raises:
        NotFound: No session was ever opened with this code.
        ValidationFailed: Malformed code, or the host trying to join their own session.
        Conflict: The session already has a partner (or is no longer waiting).
    """
    code = normalize_invite_code(invite_code)
    if not is_valid_invite_code(code):
        raise ValidationFailed("Invite code must be 6 letters or digits")

    result = await db.execute(
        select(CoopSession)
        .where(CoopSession.invite_code == code)
        .order_by(CoopSession.created_at.desc())
        .limit(1)
    )
    session = result.scalar_one_or_none()
    if session is None:
        raise NotFound("Invalid invite code")
    if session.host_user_id == user_id:
        raise ValidationFailed("You cannot join your own session")

    now = now or utcnow()
    claimed = await db.execute(
        update(CoopSession)
        .where(
            CoopSession.id == session.id,
            CoopSession.status == "waiting",
            CoopSession.partner_user_id.is_(None),
        )
        .values(
            {
                CoopSession.partner_user_id: user_id,
                CoopSession.status: "active",
                CoopSession.started_at: now,
                CoopSession.last_activity_at: now,
            }
        )
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount == 0:
        await db.rollback()
        raise Conflict("This session already has a partner or has ended")
    await db.commit()
    await db.refresh(session)
    logger.info("User %s joined co-op session %s", user_id, session.id)
    return session


async def apply_progress(
    db: AsyncSession,
    session_id: str,
    user_id: str,
    *,
    element_bank: list[dict[str, Any]] | None = None,
    total_moves: int | None = None,
    total_discoveries: int | None = None,
    first_discovery_elements: list[str] | None = None,
    end_status: str | None = None,
    now: datetime | None = None,
) -> CoopSession:
    """Fold a participant's progress into the session; optionally end it."""
    session = await get_session_row(db, session_id)
    _require_participant(session, user_id)
    if session.status in ENDED_STATUSES:
        raise Conflict("Session has ended")
    if end_status is None and session.status != "active":
        raise Conflict("Session is not active yet")

    now = now or utcnow()
    if element_bank:
        session.element_bank = _merge_bank(list(session.element_bank or []), element_bank)
    if total_moves is not None:
        session.total_moves = max(session.total_moves, total_moves)
    if total_discoveries is not None:
        session.total_discoveries = max(session.total_discoveries, total_discoveries)
    if first_discovery_elements:
        session.first_discovery_elements = _merge_names(
            list(session.first_discovery_elements or []), first_discovery_elements
        )
    if end_status is not None:
        if end_status not in ENDED_STATUSES:
            raise ValidationFailed("Session can only end as completed or abandoned")
        session.status = end_status
        session.ended_at = now
    session.last_activity_at = now
    await db.commit()
    return session


async def save_from_session(
    db: AsyncSession,
    session_id: str,
    user_id: str,
    slot: int,
    *,
    element_bank: list[dict[str, Any]],
    total_moves: int = 0,
    total_discoveries: int = 0,
    first_discoveries: int = 0,
    first_discovery_elements: list[str] | None = None,
    now: datetime | None = None,
) -> CreativeSave:
    """Copy a participant's bank into their own save slot; the live session state is untouched."""
    session = await get_session_row(db, session_id)
    _require_participant(session, user_id)
    now = now or utcnow()
    save = await write_creative_save(
        db,
        user_id,
        slot,
        element_bank=element_bank,
        total_moves=total_moves,
        total_discoveries=total_discoveries,
        first_discoveries=first_discoveries,
        first_discovery_elements=first_discovery_elements,
        now=now,
    )
    session.last_activity_at = now
    await db.commit()
    return save


async def _profile(db: AsyncSession, user_id: str | None) -> dict[str, Any] | None:
    if user_id is None:
        return None
    row = (
        await db.execute(
            select(User.id, User.username, User.country_flag, Avatar.image_path)
            .outerjoin(Avatar, Avatar.id == User.selected_avatar_id)
            .where(User.id == user_id)
        )
    ).first()
    if row is None:
        return {"userId": user_id, "username": None, "avatarImagePath": None, "countryFlag": None}
    return {
        "userId": row.id,
        "username": row.username,
        "avatarImagePath": row.image_path,
        "countryFlag": row.country_flag,
    }


async def session_view(db: AsyncSession, session: CoopSession) -> dict[str, Any]:
    return {
        "id": session.id,
        "inviteCode": session.invite_code,
        "status": session.status,
        "mode": session.mode,
        "host": await _profile(db, session.host_user_id),
        "partner": await _profile(db, session.partner_user_id),
        "elementBank": session.element_bank,
        "totalMoves": session.total_moves,
        "totalDiscoveries": session.total_discoveries,
        "firstDiscoveryElements": session.first_discovery_elements,
        "createdAt": session.created_at.isoformat() if session.created_at else None,
        "startedAt": session.started_at.isoformat() if session.started_at else None,
        "lastActivityAt": session.last_activity_at.isoformat() if session.last_activity_at else None,
        "endedAt": session.ended_at.isoformat() if session.ended_at else None,
    }


async def get_session_for(db: AsyncSession, session_id: str, user_id: str) -> dict[str, Any]:
    session = await get_session_row(db, session_id)
    _require_participant(session, user_id)
    return await session_view(db, session)


async def gc_stale_sessions(
    db: AsyncSession,
    *,
    waiting_ttl: timedelta,
    idle_ttl: timedelta,
    now: datetime | None = None,
) -> int:
    """Mark stale sessions abandoned. Returns the number of sessions collected."""
    now = now or utcnow()
    result = await db.execute(
        update(CoopSession)
        .where(
            or_(
                and_(CoopSession.status == "waiting", CoopSession.created_at < now - waiting_ttl),
                and_(CoopSession.status == "active", CoopSession.last_activity_at < now - idle_ttl),
            )
        )
        .values({CoopSession.status: "abandoned", CoopSession.ended_at: now})
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    collected = int(result.rowcount or 0)
    logger.info("Garbage-collected %d stale co-op sessions", collected)
    return collected
