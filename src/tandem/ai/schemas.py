"""AI assist request bodies."""

from __future__ import annotations

from typing import Literal

from pydantic import Field, model_validator

from tandem.schemas import ApiModel


class SuggestThemesRequest(ApiModel):
    recent_themes: list[str] = Field(default_factory=list, max_length=200)
    count: int = Field(default=5, ge=1, le=20)


class SuggestConnectionsRequest(ApiModel):
    difficulty: Literal["easiest", "easy", "medium", "hard", "hardest"] = "medium"
    recent_connections: list[str] = Field(default_factory=list, max_length=200)
    existing_connections: list[str] = Field(default_factory=list, max_length=16)


class SuggestWordsRequest(ApiModel):
    """Either ``pattern`` or a partial ``grid`` with the selected cell."""

    pattern: str | None = Field(default=None, max_length=5)
    grid: list[list[str]] | None = Field(default=None, min_length=5, max_length=5)
    row: int | None = Field(default=None, ge=0, le=4)
    col: int | None = Field(default=None, ge=0, le=4)
    direction: Literal["across", "down"] = "across"
    constraints: list[str] = Field(default_factory=list, max_length=20)
    limit: int = Field(default=20, ge=1, le=100)

    @model_validator(mode="after")
    def _pattern_or_grid(self) -> SuggestWordsRequest:
        if self.pattern is None and (self.grid is None or self.row is None or self.col is None):
            raise ValueError("Provide a pattern, or a grid with row and col")
        if self.grid is not None and any(len(line) != 5 for line in self.grid):
            raise ValueError("Grid must be 5x5")
        return self


class HintPuzzle(ApiModel):
    emoji: str | None = Field(default=None, max_length=32)
    answer: str = Field(min_length=1, max_length=40)


class GenerateHintsRequest(ApiModel):
    theme: str = Field(min_length=1, max_length=200)
    puzzles: list[HintPuzzle] = Field(min_length=1, max_length=4)


class RegenerateEmojiRequest(ApiModel):
    theme: str = Field(min_length=1, max_length=200)
    answer: str = Field(min_length=1, max_length=40)
    context: list[str] = Field(default_factory=list, max_length=8)


class AssessHint(ApiModel):
    type: str = Field(max_length=32)
    text: str = Field(max_length=500)


class AssessDifficultyRequest(ApiModel):
    clue: str = Field(min_length=1, max_length=500)
    answer: str = Field(min_length=1, max_length=40)
    hints: list[AssessHint] = Field(default_factory=list, max_length=4)
