"""Anonymous per-puzzle play counters."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tandem.db.models import PuzzlePlayStats

logger = logging.getLogger(__name__)


def _increments(
    event: str,
    *,
    time_taken: int | None,
    mistakes: int,
    hints_used: int,
) -> dict[str, Any]:
    col = PuzzlePlayStats
    if event == "view":
        return {"views": col.views + 1}
    if event == "start":
        return {"played": col.played + 1}
    if event == "share":
        return {"shared": col.shared + 1}
    # complete
    values: dict[str, Any] = {
        "completed": col.completed + 1,
        "total_time": col.total_time + (time_taken or 0),
        "hints_used": col.hints_used + hints_used,
    }
    if mistakes == 0 and hints_used == 0:
        values["perfect"] = col.perfect + 1
    return values


async def record_ping(
    db: AsyncSession,
    game: str,
    puzzle_date: date,
    event: str,
    *,
    time_taken: int | None = None,
    mistakes: int = 0,
    hints_used: int = 0,
) -> None:
    """Bump the counters for one event. Counters only ever increase."""
    if await db.get(PuzzlePlayStats, (game, puzzle_date)) is None:
        db.add(PuzzlePlayStats(game=game, puzzle_date=puzzle_date))
        try:
            await db.flush()
        except IntegrityError:
            # Created concurrently; the update below applies to that row.
            await db.rollback()

    await db.execute(
        update(PuzzlePlayStats)
        .where(PuzzlePlayStats.game == game, PuzzlePlayStats.puzzle_date == puzzle_date)
        .values(**_increments(event, time_taken=time_taken, mistakes=mistakes, hints_used=hints_used))
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    logger.debug("Recorded %s ping for %s %s", event, game, puzzle_date)
