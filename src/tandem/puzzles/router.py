"""Public puzzle delivery router."""

from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from tandem.database import get_session
from tandem.errors import NotFound
from tandem.puzzles.catalog_service import list_puzzles
from tandem.puzzles.delivery_service import (
    archive_etag,
    archive_page,
    deliver,
    etag_matches,
    fetch_batch,
    puzzle_view,
)
from tandem.puzzles.games import parse_game
from tandem.puzzles.numbering import et_today
from tandem.puzzles.play_stats import record_ping
from tandem.puzzles.schemas import BatchRequest, StatsPing
from tandem.schemas import DATE_PATTERN, parse_date_param

router = APIRouter(prefix="/api", tags=["Puzzles"])

ARCHIVE_CACHE_CONTROL = "private, max-age=300"


@router.get("/puzzle")
async def get_tandem_puzzle(
    date_: str | None = Query(default=None, alias="date", pattern=DATE_PATTERN),
    number: int | None = Query(default=None),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Tandem puzzle of record; ``puzzle`` is null when nothing was authored."""
    return await deliver(db, "tandem", requested=parse_date_param(date_), number=number)


@router.post("/puzzle")
async def record_stats(body: StatsPing, db: AsyncSession = Depends(get_session)) -> dict[str, Any]:
    """Anonymous play counters."""
    game = parse_game(body.game)
    puzzle_date = date.fromisoformat(body.date)
    if puzzle_date > et_today():
        raise NotFound("Puzzle not available yet")
    await record_ping(
        db,
        game,
        puzzle_date,
        body.event,
        time_taken=body.time_taken,
        mistakes=body.mistakes,
        hints_used=body.hints_used,
    )
    return {"success": True}


@router.get("/puzzles/paginated", response_model=None)
async def paginated_archive(
    request: Request,
    response: Response,
    game: str = "tandem",
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    sort: str = Query(default="desc", pattern="^(asc|desc)$"),
    cursor: str | None = Query(default=None, pattern=DATE_PATTERN),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any] | Response:
    """Archive listing with a strong ETag; answers 304 when the client copy is current."""
    result = await archive_page(
        db, parse_game(game), page=page, limit=limit, sort=sort, cursor=parse_date_param(cursor)
    )
    etag = archive_etag(result.page, result.limit, result.sort, result.total, cursor)
    headers = {"ETag": etag, "Cache-Control": ARCHIVE_CACHE_CONTROL}
    if etag_matches(request.headers.get("if-none-match"), etag):
        return Response(status_code=304, headers=headers)

    response.headers.update(headers)
    return {
        "success": True,
        "puzzles": result.items,
        "pagination": {
            "page": result.page,
            "limit": result.limit,
            "sort": result.sort,
            "total": result.total,
            "totalPages": result.total_pages,
            "hasMore": result.has_more,
            "nextCursor": result.next_cursor,
        },
    }


@router.post("/puzzles/batch")
async def batch_puzzles(body: BatchRequest, db: AsyncSession = Depends(get_session)) -> dict[str, Any]:
    """Up to 100 dates at once; unavailable dates map to null."""
    dates = [date.fromisoformat(d) for d in body.dates]
    puzzles = await fetch_batch(db, parse_game(body.game), dates)
    return {"success": True, "puzzles": puzzles}


@router.get("/{game_slug}/puzzle")
async def get_game_puzzle(
    game_slug: str,
    date_: str | None = Query(default=None, alias="date", pattern=DATE_PATTERN),
    number: int | None = Query(default=None),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Puzzle of record for any game."""
    return await deliver(db, parse_game(game_slug), requested=parse_date_param(date_), number=number)


@router.get("/{game_slug}/archive")
async def game_archive(
    game_slug: str,
    from_: str | None = Query(default=None, alias="from", pattern=DATE_PATTERN),
    to: str | None = Query(default=None, pattern=DATE_PATTERN),
    limit: int = Query(default=100, ge=1, le=366),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """End-user archive range, clamped to already-delivered dates."""
    game = parse_game(game_slug)
    today = et_today()
    upper = min(parse_date_param(to) or today, today)
    puzzles = await list_puzzles(db, game, from_date=parse_date_param(from_), to_date=upper, limit=limit)
    return {"success": True, "puzzles": [puzzle_view(p) for p in puzzles]}
