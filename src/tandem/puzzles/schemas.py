"""Request bodies for puzzle delivery and catalog endpoints."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field

from tandem.schemas import ApiModel, DateStr


class PuzzleWrite(ApiModel):
    date: DateStr
    puzzle: dict[str, Any]


class PuzzlePatch(ApiModel):
    date: DateStr | None = None
    puzzle: dict[str, Any] | None = None


class BulkImportRequest(ApiModel):
    game: str = "tandem"
    puzzles: list[PuzzleWrite] = Field(min_length=1, max_length=365)


class BatchRequest(ApiModel):
    game: str = "tandem"
    dates: list[DateStr] = Field(min_length=1, max_length=100)


class StatsPing(ApiModel):
    date: DateStr
    game: str = "tandem"
    event: Literal["view", "start", "complete", "share"] = "complete"
    time_taken: int | None = Field(default=None, ge=0, le=7200)
    mistakes: int = Field(default=0, ge=0, le=100)
    hints_used: int = Field(default=0, ge=0, le=10)
