"""Admin catalog router: /api/admin/<game>/puzzles."""

from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tandem.auth.dependencies import require_admin
from tandem.auth.identity import Identity
from tandem.database import get_session
from tandem.puzzles import catalog_service
from tandem.puzzles.catalog_service import serialize_puzzle
from tandem.puzzles.games import parse_game
from tandem.puzzles.schemas import BulkImportRequest, PuzzlePatch, PuzzleWrite
from tandem.schemas import DATE_PATTERN, parse_date_param

router = APIRouter(prefix="/api/admin", tags=["Admin Puzzles"])


@router.get("/{game_slug}/puzzles")
async def list_puzzles(
    game_slug: str,
    from_: str | None = Query(default=None, alias="from", pattern=DATE_PATTERN),
    to: str | None = Query(default=None, pattern=DATE_PATTERN),
    limit: int = Query(default=100, ge=1, le=500),
    _admin: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    puzzles = await catalog_service.list_puzzles(
        db,
        parse_game(game_slug),
        from_date=parse_date_param(from_),
        to_date=parse_date_param(to),
        limit=limit,
    )
    return {"success": True, "puzzles": [serialize_puzzle(p) for p in puzzles], "count": len(puzzles)}


@router.get("/{game_slug}/puzzles/{puzzle_id}")
async def get_puzzle(
    game_slug: str,
    puzzle_id: int,
    _admin: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    puzzle = await catalog_service.get_by_id(db, parse_game(game_slug), puzzle_id)
    return {"success": True, "puzzle": serialize_puzzle(puzzle)}


@router.post("/{game_slug}/puzzles", status_code=201)
async def create_puzzle(
    game_slug: str,
    body: PuzzleWrite,
    admin: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Create a puzzle; 409 if the date is already taken."""
    puzzle = await catalog_service.create_puzzle(
        db,
        parse_game(game_slug),
        date.fromisoformat(body.date),
        body.puzzle,
        created_by=admin.admin_name,
    )
    await db.commit()
    return {"success": True, "puzzle": serialize_puzzle(puzzle)}


@router.put("/{game_slug}/puzzles/{puzzle_id}")
async def update_puzzle(
    game_slug: str,
    puzzle_id: int,
    body: PuzzlePatch,
    _admin: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    puzzle = await catalog_service.update_puzzle(
        db,
        parse_game(game_slug),
        puzzle_id,
        new_date=parse_date_param(body.date),
        patch=body.puzzle,
    )
    await db.commit()
    return {"success": True, "puzzle": serialize_puzzle(puzzle)}


@router.delete("/{game_slug}/puzzles/{puzzle_id}")
async def delete_puzzle(
    game_slug: str,
    puzzle_id: int,
    _admin: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    await catalog_service.delete_puzzle(db, parse_game(game_slug), puzzle_id)
    await db.commit()
    return {"success": True, "deleted": puzzle_id}


@router.post("/bulk-import")
async def bulk_import(
    body: BulkImportRequest,
    admin: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Import up to 365 puzzles; dates that already exist are skipped."""
    items = [(date.fromisoformat(p.date), p.puzzle) for p in body.puzzles]
    outcome = await catalog_service.bulk_import(db, parse_game(body.game), items, created_by=admin.admin_name)
    await db.commit()
    return {
        "success": not outcome.errors,
        "created": outcome.created,
        "skipped": outcome.skipped,
        "errors": outcome.errors,
    }
