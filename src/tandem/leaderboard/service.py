"""Leaderboard submission and ranking.

Boards are ``daily_speed`` (per game and date, lower time is better) and
``best_streak`` (per game, all time, higher count is better). Each user holds
at most one entry per board; it is only ever replaced by a strictly better
score, using a conditional UPDATE so concurrent submissions cannot regress it.
"""

from __future__ import annotations

import logging
import math
from datetime import date, datetime
from typing import Any

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tandem.db.models import Avatar, LeaderboardEntry, LeaderboardPreference, User
from tandem.db.types import utcnow
from tandem.errors import Forbidden, RateLimited, ValidationFailed

logger = logging.getLogger(__name__)

DAILY_SPEED = "daily_speed"
BEST_STREAK = "best_streak"
LOWER_IS_BETTER = {DAILY_SPEED: True, BEST_STREAK: False}
MAX_LIMIT = 100


def _better_than(board: str, score: int):  # noqa: ANN202
    """SQL predicate: stored score strictly better than ``score``."""
    if LOWER_IS_BETTER[board]:
        return LeaderboardEntry.score < score
    return LeaderboardEntry.score > score


def _worse_than(board: str, score: int):  # noqa: ANN202
    if LOWER_IS_BETTER[board]:
        return LeaderboardEntry.score > score
    return LeaderboardEntry.score < score


def _is_improvement(board: str, new: int, old: int) -> bool:
    return new < old if LOWER_IS_BETTER[board] else new > old


def _board_filter(game: str, board: str, puzzle_date: date | None) -> list[Any]:
    date_clause = LeaderboardEntry.puzzle_date.is_(None) if puzzle_date is None else (
        LeaderboardEntry.puzzle_date == puzzle_date
    )
    return [LeaderboardEntry.game == game, LeaderboardEntry.board == board, date_clause]


# ---------------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------------


async def get_preferences(db: AsyncSession, user_id: str) -> dict[str, bool]:
    pref = await db.get(LeaderboardPreference, user_id)
    if pref is None:
        return {"enabled": True, "showOnGlobal": True}
    return {"enabled": pref.enabled, "showOnGlobal": pref.show_on_global}


async def set_preferences(
    db: AsyncSession,
    user_id: str,
    *,
    enabled: bool | None = None,
    show_on_global: bool | None = None,
) -> dict[str, bool]:
    pref = await db.get(LeaderboardPreference, user_id)
    if pref is None:
        pref = LeaderboardPreference(user_id=user_id, enabled=True, show_on_global=True)
        db.add(pref)
    if enabled is not None:
        pref.enabled = enabled
    if show_on_global is not None:
        pref.show_on_global = show_on_global
    await db.commit()
    return {"enabled": pref.enabled, "showOnGlobal": pref.show_on_global}


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


async def _check_cooldown(
    db: AsyncSession,
    user_id: str,
    game: str,
    board: str,
    now: datetime,
    cooldown_seconds: int,
) -> None:
    if cooldown_seconds <= 0:
        return
    result = await db.execute(
        select(func.max(LeaderboardEntry.updated_at)).where(
            LeaderboardEntry.user_id == user_id,
            LeaderboardEntry.game == game,
            LeaderboardEntry.board == board,
        )
    )
    last = result.scalar_one_or_none()
    if last is None:
        return
    elapsed = (now - last).total_seconds()
    if 0 <= elapsed < cooldown_seconds:
        raise RateLimited(
            "Please wait before submitting another score",
            retry_after=max(1, math.ceil(cooldown_seconds - elapsed)),
            limit=1,
        )


async def _own_entry(
    db: AsyncSession, user_id: str, game: str, board: str, puzzle_date: date | None
) -> LeaderboardEntry | None:
    result = await db.execute(
        select(LeaderboardEntry)
        .where(*_board_filter(game, board, puzzle_date), LeaderboardEntry.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def caller_rank(
    db: AsyncSession,
    game: str,
    board: str,
    puzzle_date: date | None,
    score: int,
) -> int:
    """1 + number of entries on the board with a strictly better score."""
    result = await db.execute(
        select(func.count())
        .select_from(LeaderboardEntry)
        .where(*_board_filter(game, board, puzzle_date), _better_than(board, score))
    )
    return int(result.scalar_one()) + 1


async def submit_score(
    db: AsyncSession,
    user_id: str,
    game: str,
    board: str,
    score: int,
    *,
    puzzle_date: date | None = None,
    details: dict[str, Any] | None = None,
    cooldown_seconds: int = 5,
    now: datetime | None = None,
) -> dict[str, Any]:
    """
    Insert or improve the caller's entry on a board.

    Raises:
        Forbidden: The user opted out of leaderboards.
        RateLimited: A submission for this board landed within the cooldown.
        ValidationFailed: Missing date for a daily board or a date on the streak board.
    """
    if board == DAILY_SPEED and puzzle_date is None:
        raise ValidationFailed("puzzleDate is required for daily leaderboards")
    if board == BEST_STREAK:
        puzzle_date = None

    prefs = await get_preferences(db, user_id)
    if not prefs["enabled"]:
        raise Forbidden("Leaderboard participation is disabled for this account")

    now = now or utcnow()
    await _check_cooldown(db, user_id, game, board, now, cooldown_seconds)

    entry = await _own_entry(db, user_id, game, board, puzzle_date)
    created = False
    if entry is None:
        entry = LeaderboardEntry(
            game=game,
            board=board,
            puzzle_date=puzzle_date,
            user_id=user_id,
            score=score,
            details=details or {},
            created_at=now,
            updated_at=now,
        )
        db.add(entry)
        try:
            await db.flush()
            created = True
        except IntegrityError:
            # A concurrent first submission inserted the entry; compete on score below.
            await db.rollback()
            entry = await _own_entry(db, user_id, game, board, puzzle_date)
            if entry is None:
                raise

    if not created:
        if not _is_improvement(board, score, entry.score):
            return {"success": True, "entryId": None, "message": "Score not improved", "score": entry.score}
        outcome = await db.execute(
            update(LeaderboardEntry)
            .where(LeaderboardEntry.id == entry.id, _worse_than(board, score))
            .values(
                {
                    LeaderboardEntry.score: score,
                    LeaderboardEntry.details: details or {},
                    LeaderboardEntry.created_at: now,
                    LeaderboardEntry.updated_at: now,
                }
            )
            .execution_options(synchronize_session=False)
        )
        if outcome.rowcount == 0:
            await db.rollback()
            return {"success": True, "entryId": None, "message": "Score not improved"}
        await db.refresh(entry)

    rank = await caller_rank(db, game, board, puzzle_date, score)
    await db.commit()
    logger.info("Leaderboard %s/%s score %d for %s (rank %d)", game, board, score, user_id, rank)
    return {"success": True, "entryId": entry.id, "score": score, "rank": rank}


# ---------------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------------


async def get_board(
    db: AsyncSession,
    game: str,
    board: str,
    *,
    puzzle_date: date | None = None,
    limit: int = 10,
    viewer_id: str | None = None,
) -> dict[str, Any]:
    """Top-N entries with profile data, plus the viewer's own rank when known."""
    if board == BEST_STREAK:
        puzzle_date = None
    limit = min(max(limit, 1), MAX_LIMIT)
    order = LeaderboardEntry.score.asc() if LOWER_IS_BETTER[board] else LeaderboardEntry.score.desc()

    visible = or_(LeaderboardPreference.user_id.is_(None), LeaderboardPreference.enabled.is_(True))
    if board == BEST_STREAK:
        visible = or_(
            LeaderboardPreference.user_id.is_(None),
            and_(LeaderboardPreference.enabled.is_(True), LeaderboardPreference.show_on_global.is_(True)),
        )

    stmt = (
        select(LeaderboardEntry, User.username, User.country_flag, Avatar.image_path)
        .join(User, User.id == LeaderboardEntry.user_id)
        .outerjoin(Avatar, Avatar.id == User.selected_avatar_id)
        .outerjoin(LeaderboardPreference, LeaderboardPreference.user_id == LeaderboardEntry.user_id)
        .where(*_board_filter(game, board, puzzle_date), visible)
        .order_by(order, LeaderboardEntry.updated_at.asc())
        .limit(limit)
    )
    rows = (await db.execute(stmt)).all()

    entries: list[dict[str, Any]] = []
    for position, (entry, username, country_flag, image_path) in enumerate(rows):
        if entries and entries[-1]["score"] == entry.score:
            rank = entries[-1]["rank"]
        else:
            rank = position + 1
        entries.append(
            {
                "rank": rank,
                "userId": entry.user_id,
                "username": username,
                "avatarImagePath": image_path,
                "countryFlag": country_flag,
                "score": entry.score,
                "metadata": entry.details or {},
                "submittedAt": entry.created_at.isoformat() if entry.created_at else None,
            }
        )

    viewer: dict[str, Any] | None = None
    if viewer_id is not None:
        mine = (
            await db.execute(
                select(LeaderboardEntry).where(
                    *_board_filter(game, board, puzzle_date), LeaderboardEntry.user_id == viewer_id
                )
            )
        ).scalars().first()
        if mine is not None:
            viewer = {
                "rank": await caller_rank(db, game, board, puzzle_date, mine.score),
                "score": mine.score,
            }

    return {
        "success": True,
        "game": game,
        "board": board,
        "date": puzzle_date.isoformat() if puzzle_date else None,
        "entries": entries,
        "userEntry": viewer,
    }
