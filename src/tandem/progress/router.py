"""Completion and aggregate-stats router."""

from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tandem.auth.dependencies import get_current_user
from tandem.database import get_session
from tandem.db.models import User
from tandem.progress import stats_service
from tandem.progress.schemas import CompletionRequest, StatsSyncRequest
from tandem.puzzles.games import parse_game

router = APIRouter(prefix="/api", tags=["Progress"])

# Stats endpoints, one per game.
STATS_PATHS = {
    "tandem": "/user-stats",
    "cryptic": "/user-cryptic-stats",
    "mini": "/user-mini-stats",
    "reel": "/user-reel-stats",
    "soup": "/user-soup-stats",
}


@router.post("/{game_slug}/complete")
async def complete_puzzle(
    game_slug: str,
    body: CompletionRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Record a completion; idempotent per (user, game, date)."""
    return await stats_service.submit_completion(
        db,
        user.id,
        parse_game(game_slug),
        date.fromisoformat(body.puzzle_date),
        time_taken=body.time_taken,
        mistakes=body.mistakes,
        hints_used=body.hints_used,
        claimed_number=body.puzzle_number,
        extra=body.metadata,
    )


def _register_stats_routes(game: str, path: str) -> None:
    async def read_stats(
        user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_session),
    ) -> dict[str, Any]:
        snapshot = await stats_service.get_stats(db, user.id, game)
        return {"success": True, "game": game, "stats": stats_service.stats_view(snapshot)}

    async def merge_stats(
        body: StatsSyncRequest,
        user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_session),
    ) -> dict[str, Any]:
        merged = await stats_service.sync_stats(db, user.id, game, body.to_snapshot())
        return {"success": True, "game": game, "stats": stats_service.stats_view(merged)}

    router.add_api_route(path, read_stats, methods=["GET"], name=f"get_{game}_stats")
    router.add_api_route(path, merge_stats, methods=["POST"], name=f"merge_{game}_stats")


for _game, _path in STATS_PATHS.items():
    _register_stats_routes(_game, _path)
