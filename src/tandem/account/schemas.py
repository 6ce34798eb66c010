"""Account request bodies."""

from __future__ import annotations

from pydantic import Field

from tandem.schemas import ApiModel


class AccountDeleteRequest(ApiModel):
    confirmation_text: str | None = Field(default=None, max_length=32)
    apple_refresh_token: str | None = Field(default=None, max_length=4096)


class UsernameRequest(ApiModel):
    username: str = Field(max_length=64)


class AvatarRequest(ApiModel):
    avatar_id: str = Field(min_length=1, max_length=64)
