"""Per-puzzle results and per-game aggregate stats.

A completed ``PuzzleResult`` is final: reposting it returns
``alreadyCompleted`` and touches nothing. Aggregate stats are maintained in
the same transaction as the result row.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tandem.db.models import PuzzleResult, UserGameStats
from tandem.db.upsert import insert_for
from tandem.db.types import utcnow
from tandem.errors import ValidationFailed
from tandem.progress.streaks import StatsSnapshot, merge_stats, record_completion
from tandem.puzzles.catalog_service import get_by_date
from tandem.puzzles.numbering import epoch_for, puzzle_number

logger = logging.getLogger(__name__)


def snapshot_from_row(row: UserGameStats | None) -> StatsSnapshot:
    if row is None:
        return StatsSnapshot()
    return StatsSnapshot(
        played=row.played,
        total_completed=row.total_completed,
        perfect_solves=row.perfect_solves,
        current_streak=row.current_streak,
        longest_streak=row.longest_streak,
        last_played_date=row.last_played_date,
        best_time=row.best_time,
        average_time=row.average_time,
        completed_puzzles=dict(row.completed_puzzles or {}),
    )


def _write_snapshot(row: UserGameStats, snapshot: StatsSnapshot) -> None:
    row.played = snapshot.played
    row.total_completed = snapshot.total_completed
    row.perfect_solves = snapshot.perfect_solves
    row.current_streak = snapshot.current_streak
    row.longest_streak = snapshot.longest_streak
    row.last_played_date = snapshot.last_played_date
    row.best_time = snapshot.best_time
    row.average_time = snapshot.average_time
    row.completed_puzzles = snapshot.completed_puzzles


def stats_view(snapshot: StatsSnapshot, *, include_completed: bool = True) -> dict[str, Any]:
    view: dict[str, Any] = {
        "played": snapshot.played,
        "totalCompleted": snapshot.total_completed,
        "perfectSolves": snapshot.perfect_solves,
        "currentStreak": snapshot.current_streak,
        "longestStreak": snapshot.longest_streak,
        "lastPlayedDate": snapshot.last_played_date.isoformat() if snapshot.last_played_date else None,
        "averageTime": snapshot.average_time,
        "bestTime": snapshot.best_time,
    }
    if include_completed:
        view["completedPuzzles"] = snapshot.completed_puzzles
    return view


async def _stats_row(db: AsyncSession, user_id: str, game: str) -> UserGameStats | None:
    result = await db.execute(
        select(UserGameStats).where(UserGameStats.user_id == user_id, UserGameStats.game == game)
    )
    return result.scalar_one_or_none()


async def _locked_stats_row(db: AsyncSession, user_id: str, game: str) -> UserGameStats:
    """Lock the stats row, creating an empty one first if the user has none."""
    await db.execute(
        insert_for(db, UserGameStats)
        .values(user_id=user_id, game=game)
        .on_conflict_do_nothing(index_elements=["user_id", "game"])
    )
    result = await db.execute(
        select(UserGameStats)
        .where(UserGameStats.user_id == user_id, UserGameStats.game == game)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def _get_result(db: AsyncSession, user_id: str, game: str, puzzle_date: date) -> PuzzleResult | None:
    result = await db.execute(
        select(PuzzleResult).where(
            PuzzleResult.user_id == user_id,
            PuzzleResult.game == game,
            PuzzleResult.puzzle_date == puzzle_date,
        )
    )
    return result.scalar_one_or_none()


async def completion_rank(db: AsyncSession, game: str, puzzle_date: date, time_taken: int) -> int:
    """1 + number of completed results for the puzzle with a strictly lower time."""
    result = await db.execute(
        select(func.count())
        .select_from(PuzzleResult)
        .where(
            PuzzleResult.game == game,
            PuzzleResult.puzzle_date == puzzle_date,
            PuzzleResult.completed.is_(True),
            PuzzleResult.time_taken.is_not(None),
            PuzzleResult.time_taken < time_taken,
        )
    )
    return int(result.scalar_one()) + 1


async def get_stats(db: AsyncSession, user_id: str, game: str) -> StatsSnapshot:
    return snapshot_from_row(await _stats_row(db, user_id, game))


async def submit_completion(
    db: AsyncSession,
    user_id: str,
    game: str,
    puzzle_date: date,
    *,
    time_taken: int | None,
    mistakes: int = 0,
    hints_used: int = 0,
    claimed_number: int | None = None,
    extra: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """
    Record a completion and update aggregate stats.

    Raises:
        ValidationFailed: No puzzle for ``puzzle_date`` or a mismatched number.
    """
    if await get_by_date(db, game, puzzle_date) is None:
        raise ValidationFailed(f"No {game} puzzle exists for {puzzle_date.isoformat()}")
    if claimed_number is not None and claimed_number != puzzle_number(puzzle_date, epoch_for(game)):
        raise ValidationFailed("puzzleNumber does not match puzzleDate")

    existing = await _get_result(db, user_id, game, puzzle_date)
    if existing is not None and existing.completed:
        stats = await get_stats(db, user_id, game)
        return {"success": True, "alreadyCompleted": True, **stats_view(stats, include_completed=False)}

    now = now or utcnow()
    if existing is None:
        existing = PuzzleResult(user_id=user_id, game=game, puzzle_date=puzzle_date)
        db.add(existing)
    existing.completed = True
    existing.time_taken = time_taken
    existing.mistakes = mistakes
    existing.hints_used = hints_used
    existing.extra = extra or {}
    try:
        await db.flush()
    except IntegrityError:
        # A concurrent request completed the same puzzle first.
        await db.rollback()
        stats = await get_stats(db, user_id, game)
        return {"success": True, "alreadyCompleted": True, **stats_view(stats, include_completed=False)}

    row = await _locked_stats_row(db, user_id, game)
    base = snapshot_from_row(row)
    snapshot = record_completion(
        base,
        puzzle_date,
        time_taken=time_taken,
        perfect=mistakes == 0 and hints_used == 0,
        completed_at=now,
        extra={"mistakes": mistakes, "hintsUsed": hints_used},
    )
    _write_snapshot(row, snapshot)
    await db.flush()

    rank = await completion_rank(db, game, puzzle_date, time_taken) if time_taken is not None else None
    await db.commit()
    logger.info("Recorded %s completion for %s on %s", game, user_id, puzzle_date)
    return {
        "success": True,
        "alreadyCompleted": False,
        "rank": rank,
        **stats_view(snapshot, include_completed=False),
    }


async def sync_stats(db: AsyncSession, user_id: str, game: str, incoming: StatsSnapshot) -> StatsSnapshot:
    """Merge a device's stats into the server copy and persist the result."""
    row = await _locked_stats_row(db, user_id, game)
    server = snapshot_from_row(row)
    merged = merge_stats(server, incoming)
    _write_snapshot(row, merged)
    await db.commit()
    logger.info("Merged %s stats for %s", game, user_id)
    return merged
