"""Pydantic schemas for admin authentication."""

from __future__ import annotations

from pydantic import BaseModel, Field


class AdminLoginRequest(BaseModel):
    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=1, max_length=256)


class AdminUser(BaseModel):
    username: str
    role: str = "admin"


class AdminLoginResponse(BaseModel):
    success: bool = True
    token: str
    csrfToken: str  # noqa: N815
    expiresIn: int  # noqa: N815
    user: AdminUser


class AdminVerifyResponse(BaseModel):
    success: bool = True
    valid: bool = True
    user: AdminUser
