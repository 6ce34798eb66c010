"""User puzzle submission bodies."""

from __future__ import annotations

from pydantic import Field

from tandem.puzzles.payloads import ReelDifficulty
from tandem.schemas import ApiModel, DateStr


class SubmittedMovie(ApiModel):
    imdb_id: str = Field(min_length=1, max_length=16)
    title: str = Field(min_length=1, max_length=200)
    year: int | None = Field(default=None, ge=1870, le=2100)
    poster: str | None = Field(default=None, max_length=500)


class SubmittedGroup(ApiModel):
    connection: str = Field(min_length=1, max_length=200)
    difficulty: ReelDifficulty | None = None
    movies: list[SubmittedMovie] = Field(min_length=4, max_length=4)


class SubmissionRequest(ApiModel):
    display_name: str = Field(min_length=1, max_length=64)
    is_anonymous: bool = False
    groups: list[SubmittedGroup] = Field(min_length=4, max_length=4)


class ApproveRequest(ApiModel):
    date: DateStr
    admin_notes: str | None = Field(default=None, max_length=2000)


class RejectRequest(ApiModel):
    admin_notes: str | None = Field(default=None, max_length=2000)
