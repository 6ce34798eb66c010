"""Leaderboard router: /api/leaderboard/*."""

from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tandem.auth.dependencies import get_current_user, get_optional_user_id
from tandem.config import get_settings
from tandem.database import get_session
from tandem.db.models import User
from tandem.errors import NotFound
from tandem.leaderboard import service
from tandem.leaderboard.schemas import DailyScoreRequest, PreferencesRequest, StreakScoreRequest
from tandem.puzzles.games import parse_game
from tandem.puzzles.numbering import et_today
from tandem.schemas import DATE_PATTERN, parse_date_param

router = APIRouter(prefix="/api/leaderboard", tags=["Leaderboards"])


@router.get("/daily")
async def daily_board(
    game: str = "tandem",
    date_: str | None = Query(default=None, alias="date", pattern=DATE_PATTERN),
    limit: int = Query(default=10, ge=1, le=100),
    viewer_id: str | None = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Fastest times for one puzzle (defaults to today ET)."""
    puzzle_date = parse_date_param(date_) or et_today()
    return await service.get_board(
        db, parse_game(game), service.DAILY_SPEED, puzzle_date=puzzle_date, limit=limit, viewer_id=viewer_id
    )


@router.post("/daily")
async def submit_daily(
    body: DailyScoreRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    puzzle_date = date.fromisoformat(body.puzzle_date)
    if puzzle_date > et_today():
        raise NotFound("Puzzle not available yet")
    return await service.submit_score(
        db,
        user.id,
        parse_game(body.game),
        service.DAILY_SPEED,
        body.score,
        puzzle_date=puzzle_date,
        details=body.metadata,
        cooldown_seconds=get_settings().leaderboard_cooldown_seconds,
    )


@router.get("/streak")
async def streak_board(
    game: str = "tandem",
    limit: int = Query(default=10, ge=1, le=100),
    viewer_id: str | None = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Longest streaks for a game, all time."""
    return await service.get_board(db, parse_game(game), service.BEST_STREAK, limit=limit, viewer_id=viewer_id)


@router.post("/streak")
async def submit_streak(
    body: StreakScoreRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    return await service.submit_score(
        db,
        user.id,
        parse_game(body.game),
        service.BEST_STREAK,
        body.streak,
        details=body.metadata,
        cooldown_seconds=get_settings().leaderboard_cooldown_seconds,
    )


@router.get("/preferences")
async def read_preferences(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    return {"success": True, "preferences": await service.get_preferences(db, user.id)}


@router.post("/preferences")
async def update_preferences(
    body: PreferencesRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    prefs = await service.set_preferences(db, user.id, enabled=body.enabled, show_on_global=body.show_on_global)
    return {"success": True, "preferences": prefs}
