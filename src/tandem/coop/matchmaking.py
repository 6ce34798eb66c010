"""Quick Match: pair two strangers into an Element Soup co-op session.

A joiner first tries to claim the oldest live waiting entry for the same
mode; the claim is an UPDATE guarded by ``status='waiting'`` so a waiting
player is matched at most once. With nobody to claim, the joiner queues and
polls with heartbeats. Waiting entries whose heartbeat is older than the
stale threshold are never matched.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tandem.config import get_settings
from tandem.coop.invite_codes import generate_unique_invite_code
from tandem.coop.service import STARTER_ELEMENTS, _profile, session_view
from tandem.db.models import CoopSession, MatchmakingEntry
from tandem.db.types import utcnow
from tandem.errors import Conflict

logger = logging.getLogger(__name__)

CLAIM_ATTEMPTS = 3


async def _cancel_waiting(db: AsyncSession, user_id: str) -> None:
    await db.execute(
        update(MatchmakingEntry)
        .where(MatchmakingEntry.user_id == user_id, MatchmakingEntry.status == "waiting")
        .values({MatchmakingEntry.status: "cancelled"})
        .execution_options(synchronize_session=False)
    )


async def _cleanup(db: AsyncSession, now: datetime) -> None:
    cutoff = now - timedelta(minutes=get_settings().matchmaking_cleanup_minutes)
    await db.execute(
        delete(MatchmakingEntry)
        .where(
            MatchmakingEntry.created_at < cutoff,
            MatchmakingEntry.status.in_(("waiting", "cancelled", "expired")),
        )
        .execution_options(synchronize_session=False)
    )


async def _claim(db: AsyncSession, claimer_id: str, mode: str, now: datetime) -> CoopSession | None:
    """Claim the oldest live waiting player and open an active session with them as host."""
    fresh_since = now - timedelta(seconds=get_settings().matchmaking_stale_seconds)
    result = await db.execute(
        select(MatchmakingEntry)
        .where(
            MatchmakingEntry.status == "waiting",
            MatchmakingEntry.mode == mode,
            MatchmakingEntry.user_id != claimer_id,
            MatchmakingEntry.last_heartbeat >= fresh_since,
        )
        .order_by(MatchmakingEntry.created_at)
        .limit(CLAIM_ATTEMPTS)
        .with_for_update(skip_locked=True)
    )
    for candidate in result.scalars().all():
        claimed = await db.execute(
            update(MatchmakingEntry)
            .where(MatchmakingEntry.id == candidate.id, MatchmakingEntry.status == "waiting")
            .values({MatchmakingEntry.status: "matched", MatchmakingEntry.matched_with: claimer_id})
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount == 0:
            continue

        session = CoopSession(
            invite_code=await generate_unique_invite_code(db),
            host_user_id=candidate.user_id,
            partner_user_id=claimer_id,
            status="active",
            mode=mode,
            element_bank=[dict(e) for e in STARTER_ELEMENTS],
            created_at=now,
            started_at=now,
            last_activity_at=now,
        )
        db.add(session)
        await db.flush()
        await db.execute(
            update(MatchmakingEntry)
            .where(MatchmakingEntry.id == candidate.id)
            .values({MatchmakingEntry.session_id: session.id})
            .execution_options(synchronize_session=False)
        )
        logger.info("Quick Match paired %s with %s in session %s", candidate.user_id, claimer_id, session.id)
        return session
    return None


async def _matched_view(db: AsyncSession, session: CoopSession, user_id: str) -> dict[str, Any]:
    is_host = session.host_user_id == user_id
    partner_id = session.partner_user_id if is_host else session.host_user_id
    return {
        "success": True,
        "status": "matched",
        "session": await session_view(db, session),
        "partner": await _profile(db, partner_id),
        "isHost": is_host,
    }


async def join_queue(
    db: AsyncSession,
    user_id: str,
    mode: str,
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    """
    Match with a waiting player or enter the queue.

    Raises:
        Conflict: The user already holds a waiting entry (a concurrent join).
    """
    now = now or utcnow()
    await _cancel_waiting(db, user_id)
    await _cleanup(db, now)

    session = await _claim(db, user_id, mode, now)
    if session is not None:
        await db.commit()
        return await _matched_view(db, session, user_id)

    entry = MatchmakingEntry(user_id=user_id, mode=mode, status="waiting", created_at=now, last_heartbeat=now)
    db.add(entry)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict("You are already in the queue") from None
    logger.info("User %s entered the %s queue", user_id, mode)
    return {"success": True, "status": "waiting", "queueId": entry.id}


async def heartbeat(db: AsyncSession, user_id: str, *, now: datetime | None = None) -> dict[str, Any]:
    """Keep a queue entry alive; reports the match once someone claims it."""
    now = now or utcnow()
    result = await db.execute(
        select(MatchmakingEntry)
        .where(MatchmakingEntry.user_id == user_id, MatchmakingEntry.status.in_(("waiting", "matched")))
        .order_by(MatchmakingEntry.created_at.desc(), MatchmakingEntry.id.desc())
        .limit(1)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    entry = result.scalar_one_or_none()
    if entry is None:
        return {"success": True, "status": "expired"}

    entry.last_heartbeat = now
    if entry.status == "matched":
        session = await db.get(CoopSession, entry.session_id) if entry.session_id else None
        await db.commit()
        if session is None:
            return {"success": True, "status": "expired"}
        return await _matched_view(db, session, user_id)

    # Still waiting: someone may have queued since our last poll.
    session = await _claim(db, user_id, entry.mode, now)
    if session is not None:
        entry.status = "cancelled"
        await db.commit()
        return await _matched_view(db, session, user_id)

    ahead = await db.execute(
        select(func.count())
        .select_from(MatchmakingEntry)
        .where(
            MatchmakingEntry.status == "waiting",
            MatchmakingEntry.mode == entry.mode,
            MatchmakingEntry.created_at < entry.created_at,
        )
    )
    position = int(ahead.scalar_one()) + 1
    await db.commit()
    return {"success": True, "status": "waiting", "queuePosition": position}


async def cancel(db: AsyncSession, user_id: str) -> dict[str, Any]:
    await _cancel_waiting(db, user_id)
    await db.commit()
    logger.info("User %s left the matchmaking queue", user_id)
    return {"success": True, "status": "cancelled"}
