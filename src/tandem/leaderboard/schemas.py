"""Leaderboard request bodies."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from tandem.schemas import ApiModel, DateStr


class DailyScoreRequest(ApiModel):
    game: str
    puzzle_date: DateStr
    score: int = Field(ge=1, le=7200)
    metadata: dict[str, Any] | None = None


class StreakScoreRequest(ApiModel):
    game: str
    streak: int = Field(ge=1, le=10000)
    metadata: dict[str, Any] | None = None


class PreferencesRequest(ApiModel):
    enabled: bool | None = None
    show_on_global: bool | None = None
