"""User-generated Reel Connections submissions.

Submitting requires an active subscription and is limited per UTC day.
Approval promotes a submission into the catalog on a chosen date.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tandem.db.models import PuzzleSubmission, Subscription
from tandem.db.types import utcnow
from tandem.errors import Conflict, Forbidden, NotFound, RateLimited
from tandem.puzzles import catalog_service
from tandem.puzzles.payloads import parse_payload

logger = logging.getLogger(__name__)

ACTIVE_SUBSCRIPTION_STATUSES = ("active", "trialing")
DEFAULT_DIFFICULTIES = ("easy", "medium", "hard", "hardest")


def normalize_groups(groups: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Assign stable order keys and default difficulties, then validate as a Reel payload."""
    ordered = []
    for g_index, group in enumerate(groups):
        movies = [{**movie, "order": m_index} for m_index, movie in enumerate(group.get("movies", []))]
        ordered.append(
            {
                **group,
                "difficulty": group.get("difficulty") or DEFAULT_DIFFICULTIES[min(g_index, 3)],
                "order": g_index,
                "movies": movies,
            }
        )
    return parse_payload("reel", {"groups": ordered}).payload["groups"]


async def find_active_subscription(db: AsyncSession, user_id: str, now: datetime) -> Subscription | None:
    result = await db.execute(select(Subscription).where(Subscription.user_id == user_id))
    sub = result.scalar_one_or_none()
    if sub is None or sub.status not in ACTIVE_SUBSCRIPTION_STATUSES:
        return None
    if sub.current_period_end is not None and sub.current_period_end <= now:
        return None
    return sub


def _utc_midnight(now: datetime) -> datetime:
    return datetime.combine(now.astimezone(timezone.utc).date(), time.min, tzinfo=timezone.utc)


async def submit(
    db: AsyncSession,
    user_id: str,
    *,
    display_name: str,
    is_anonymous: bool,
    groups: list[dict[str, Any]],
    per_day: int,
    now: datetime | None = None,
) -> PuzzleSubmission:
    """
    Store a new pending submission.

    Raises:
        Forbidden: No active subscription.
        RateLimited: ``per_day`` submissions already made this UTC day.
        ValidationFailed: Groups are not a valid Reel puzzle.
    """
    now = now or utcnow()
    if await find_active_subscription(db, user_id, now) is None:
        raise Forbidden("An active subscription is required to submit puzzles")

    midnight = _utc_midnight(now)
    result = await db.execute(
        select(func.count())
        .select_from(PuzzleSubmission)
        .where(PuzzleSubmission.user_id == user_id, PuzzleSubmission.created_at >= midnight)
    )
    if int(result.scalar_one()) >= per_day:
        retry_after = int((midnight + timedelta(days=1) - now).total_seconds())
        raise RateLimited(
            f"You can submit up to {per_day} puzzles per day",
            retry_after=max(1, retry_after),
            limit=per_day,
        )

    submission = PuzzleSubmission(
        user_id=user_id,
        display_name=display_name.strip(),
        is_anonymous=is_anonymous,
        groups=normalize_groups(groups),
        status="pending",
        created_at=now,
    )
    db.add(submission)
    await db.commit()
    logger.info("Stored puzzle submission %s from %s", submission.id, user_id)
    return submission


def submission_view(submission: PuzzleSubmission) -> dict[str, Any]:
    return {
        "id": submission.id,
        "userId": submission.user_id,
        "displayName": submission.display_name,
        "isAnonymous": submission.is_anonymous,
        "groups": submission.groups,
        "status": submission.status,
        "adminNotes": submission.admin_notes,
        "promotedPuzzleId": submission.promoted_puzzle_id,
        "createdAt": submission.created_at.isoformat() if submission.created_at else None,
        "reviewedAt": submission.reviewed_at.isoformat() if submission.reviewed_at else None,
    }


async def list_submissions(db: AsyncSession, *, status: str | None = None, limit: int = 50) -> list[PuzzleSubmission]:
    stmt = select(PuzzleSubmission).order_by(PuzzleSubmission.created_at.desc()).limit(min(max(limit, 1), 200))
    if status:
        stmt = stmt.where(PuzzleSubmission.status == status)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def _pending(db: AsyncSession, submission_id: int) -> PuzzleSubmission:
    submission = await db.get(PuzzleSubmission, submission_id)
    if submission is None:
        raise NotFound("Submission not found")
    if submission.status != "pending":
        raise Conflict(f"Submission already {submission.status}")
    return submission


async def approve(
    db: AsyncSession,
    submission_id: int,
    puzzle_date: date,
    *,
    reviewer: str | None = None,
    admin_notes: str | None = None,
) -> PuzzleSubmission:
    """Promote a submission to the Reel puzzle for ``puzzle_date`` (409 if the date is taken)."""
    submission = await _pending(db, submission_id)
    puzzle = await catalog_service.create_puzzle(
        db,
        "reel",
        puzzle_date,
        {"groups": submission.groups},
        created_by=reviewer,
        creator_name=None if submission.is_anonymous else submission.display_name,
        is_user_submitted=True,
    )
    submission.status = "approved"
    submission.promoted_puzzle_id = puzzle.id
    submission.admin_notes = admin_notes
    submission.reviewed_at = utcnow()
    await db.commit()
    logger.info("Approved submission %s as reel puzzle for %s", submission_id, puzzle_date)
    return submission


async def reject(db: AsyncSession, submission_id: int, *, admin_notes: str | None = None) -> PuzzleSubmission:
    submission = await _pending(db, submission_id)
    submission.status = "rejected"
    submission.admin_notes = admin_notes
    submission.reviewed_at = utcnow()
    await db.commit()
    logger.info("Rejected submission %s", submission_id)
    return submission
