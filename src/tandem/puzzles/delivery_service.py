"""Daily delivery: the puzzle of record for a game and a calendar day.

The client chooses the date from its own local midnight; the server never
rewrites it. Without a date the ET civil day is used. Dates beyond the
current ET day are never served.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tandem.db.models import Puzzle
from tandem.errors import NotFound, ValidationFailed
from tandem.puzzles.catalog_service import count_puzzles, get_by_date
from tandem.puzzles.games import NULL_WHEN_MISSING
from tandem.puzzles.numbering import date_for_number, display_date, epoch_for, et_today, puzzle_number
from tandem.puzzles.payloads import present_payload

MAX_BATCH_DATES = 100
MAX_PAGE_LIMIT = 100


def puzzle_view(puzzle: Puzzle) -> dict[str, Any]:
    """Client view of a delivered puzzle."""
    view = present_payload(puzzle.game, puzzle.payload)
    return {
        **view,
        "id": puzzle.id,
        "date": puzzle.puzzle_date.isoformat(),
        "puzzleNumber": puzzle_number(puzzle.puzzle_date, epoch_for(puzzle.game)),
        "theme": puzzle.theme,
        "difficulty": view.get("difficulty", puzzle.difficulty),
        "creatorName": puzzle.creator_name,
        "isUserSubmitted": puzzle.is_user_submitted,
    }


def resolve_date(
    game: str,
    *,
    requested: date | None = None,
    number: int | None = None,
    today: date | None = None,
) -> date:
    """
    The date a delivery request refers to.

    Raises:
        ValidationFailed: Both or an invalid ``number`` given.
        NotFound: Date after the current ET day or before the game's epoch.
    """
    today = today or et_today()
    epoch = epoch_for(game)
    if requested is not None and number is not None:
        raise ValidationFailed("Pass either date or number, not both")
    if number is not None:
        if number < 1:
            raise ValidationFailed("Puzzle number must be positive")
        if number > puzzle_number(today, epoch):
            raise NotFound("Puzzle not available yet")
        target = date_for_number(number, epoch)
    else:
        target = requested or today

    if target > today:
        raise NotFound("Puzzle not available yet")
    if target < epoch:
        raise NotFound("No puzzle exists before launch")
    return target


async def deliver(
    db: AsyncSession,
    game: str,
    *,
    requested: date | None = None,
    number: int | None = None,
    today: date | None = None,
) -> dict[str, Any]:
    """``{date, puzzleNumber, puzzle|null, displayDate}`` for one game and day."""
    target = resolve_date(game, requested=requested, number=number, today=today)
    puzzle = await get_by_date(db, game, target)
    if puzzle is None and game not in NULL_WHEN_MISSING:
        raise NotFound(f"No {game} puzzle for {target.isoformat()}")
    return {
        "success": True,
        "date": target.isoformat(),
        "puzzleNumber": puzzle_number(target, epoch_for(game)),
        "displayDate": display_date(target),
        "puzzle": puzzle_view(puzzle) if puzzle is not None else None,
    }


async def fetch_batch(
    db: AsyncSession,
    game: str,
    dates: list[date],
    *,
    today: date | None = None,
) -> dict[str, dict[str, Any] | None]:
    """Puzzles for up to ``MAX_BATCH_DATES`` dates; future or missing dates map to None."""
    if len(dates) > MAX_BATCH_DATES:
        raise ValidationFailed(f"At most {MAX_BATCH_DATES} dates per batch")
    today = today or et_today()
    allowed = sorted({d for d in dates if d <= today})
    found: dict[date, Puzzle] = {}
    if allowed:
        result = await db.execute(select(Puzzle).where(Puzzle.game == game, Puzzle.puzzle_date.in_(allowed)))
        found = {p.puzzle_date: p for p in result.scalars().all()}
    return {d.isoformat(): (puzzle_view(found[d]) if d in found else None) for d in dates}


@dataclass(frozen=True)
class ArchivePage:
    items: list[dict[str, Any]]
    page: int
    limit: int
    sort: str
    total: int
    next_cursor: str | None

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(self.total / self.limit))

    @property
    def has_more(self) -> bool:
        return self.next_cursor is not None


def archive_etag(page: int, limit: int, sort: str, count: int, cursor: str | None = None) -> str:
    """Strong ETag over the archive listing parameters and the archive size."""
    tag = f"{page}-{limit}-{sort}-{count}"
    if cursor:
        tag = f"{tag}-{cursor}"
    return f'"{tag}"'


def etag_matches(if_none_match: str | None, etag: str) -> bool:
    """Weak comparison of an If-None-Match list (RFC 9110 13.1.2) against ``etag``."""
    if not if_none_match:
        return False
    for candidate in if_none_match.split(","):
        candidate = candidate.strip()
        if candidate == "*" or candidate.removeprefix("W/") == etag:
            return True
    return False


async def archive_page(
    db: AsyncSession,
    game: str,
    *,
    page: int = 1,
    limit: int = 20,
    sort: str = "desc",
    cursor: date | None = None,
    today: date | None = None,
) -> ArchivePage:
    """One page of the public archive (delivered dates only).

    With a ``cursor`` the page starts just past that date and ``page`` only
    labels the response.
    """
    today = today or et_today()
    limit = min(max(limit, 1), MAX_PAGE_LIMIT)
    page = max(page, 1)
    descending = sort != "asc"

    total = await count_puzzles(db, game, upto=today)
    stmt = select(Puzzle).where(Puzzle.game == game, Puzzle.puzzle_date <= today)
    if cursor is not None:
        stmt = stmt.where(Puzzle.puzzle_date < cursor if descending else Puzzle.puzzle_date > cursor)
    else:
        stmt = stmt.offset((page - 1) * limit)
    stmt = stmt.order_by(Puzzle.puzzle_date.desc() if descending else Puzzle.puzzle_date).limit(limit + 1)
    rows = list((await db.execute(stmt)).scalars().all())

    has_more = len(rows) > limit
    rows = rows[:limit]
    items = [
        {
            "date": p.puzzle_date.isoformat(),
            "puzzleNumber": puzzle_number(p.puzzle_date, epoch_for(game)),
            "displayDate": display_date(p.puzzle_date),
            "theme": p.theme,
            "difficulty": p.difficulty,
        }
        for p in rows
    ]
    return ArchivePage(
        items=items,
        page=page,
        limit=limit,
        sort="desc" if descending else "asc",
        total=total,
        next_cursor=rows[-1].puzzle_date.isoformat() if has_more and rows else None,
    )
