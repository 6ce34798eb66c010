"""Co-op and creative-save request bodies."""

from __future__ import annotations

from typing import Literal

from pydantic import Field

from tandem.schemas import ApiModel


class Element(ApiModel):
    name: str = Field(min_length=1, max_length=64)
    emoji: str | None = Field(default=None, max_length=32)
    is_first_discovery: bool | None = None


class CreateSessionRequest(ApiModel):
    mode: Literal["creative", "daily"] = "creative"
    seed_slot: int | None = Field(default=None, ge=1, le=3)


class JoinSessionRequest(ApiModel):
    invite_code: str = Field(min_length=1, max_length=16)


class SessionProgressRequest(ApiModel):
    session_id: str = Field(min_length=1, max_length=64)
    element_bank: list[Element] | None = Field(default=None, max_length=2000)
    total_moves: int | None = Field(default=None, ge=0, le=1_000_000)
    total_discoveries: int | None = Field(default=None, ge=0, le=1_000_000)
    first_discovery_elements: list[str] | None = Field(default=None, max_length=2000)
    end: Literal["completed", "abandoned"] | None = None


class CreativeSaveRequest(ApiModel):
    element_bank: list[Element] = Field(max_length=2000)
    total_moves: int = Field(default=0, ge=0, le=1_000_000)
    total_discoveries: int = Field(default=0, ge=0, le=1_000_000)
    first_discoveries: int = Field(default=0, ge=0, le=1_000_000)
    first_discovery_elements: list[str] | None = Field(default=None, max_length=2000)


class CoopSaveRequest(CreativeSaveRequest):
    session_id: str = Field(min_length=1, max_length=64)


class MatchmakeRequest(ApiModel):
    action: Literal["join", "heartbeat", "cancel"]
    mode: Literal["daily", "creative"] = "creative"
