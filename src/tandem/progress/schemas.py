"""Request bodies for completion and stats sync."""

from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import Field

from tandem.progress.streaks import StatsSnapshot
from tandem.schemas import ApiModel, DateStr


class CompletionRequest(ApiModel):
    puzzle_date: DateStr
    puzzle_number: int | None = Field(default=None, ge=1)
    time_taken: int | None = Field(default=None, ge=0, le=86400)
    mistakes: int = Field(default=0, ge=0, le=100)
    hints_used: int = Field(default=0, ge=0, le=10)
    metadata: dict[str, Any] | None = None


class StatsSyncRequest(ApiModel):
    """A device's copy of its aggregate stats for one game."""

    played: int = Field(default=0, ge=0, le=100_000)
    total_completed: int = Field(default=0, ge=0, le=100_000)
    perfect_solves: int = Field(default=0, ge=0, le=100_000)
    current_streak: int = Field(default=0, ge=0, le=10_000)
    longest_streak: int = Field(default=0, ge=0, le=10_000)
    last_played_date: DateStr | None = None
    best_time: int | None = Field(default=None, ge=0)
    average_time: float | None = Field(default=None, ge=0)
    completed_puzzles: dict[DateStr, dict[str, Any]] = Field(default_factory=dict)

    def to_snapshot(self) -> StatsSnapshot:
        return StatsSnapshot(
            played=self.played,
            total_completed=self.total_completed,
            perfect_solves=self.perfect_solves,
            current_streak=self.current_streak,
            longest_streak=max(self.longest_streak, self.current_streak),
            last_played_date=date.fromisoformat(self.last_played_date) if self.last_played_date else None,
            best_time=self.best_time,
            average_time=self.average_time,
            completed_puzzles=self.completed_puzzles,
        )
