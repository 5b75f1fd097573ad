"""Auth-related data models."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Credentials(BaseModel):
    """An access/refresh token pair and the instant the access token expires."""
    model_config = ConfigDict(frozen=True)

    access_token: str = Field(min_length=1)
    refresh_token: str = Field(min_length=1)
    expires_at: datetime


class TokenResponse(BaseModel):
    """Response from /auth/refresh-token (and the token part of /auth/login)."""
    model_config = ConfigDict(populate_by_name=True)

    token: str | None = None
    refresh_token: str | None = Field(default=None, alias="refreshToken")
    expires_in: int = Field(default=3600, alias="expiresIn")

    def to_credentials(self, now: datetime) -> Credentials:
        """Convert the relative lifetime into an absolute expiry."""
        return Credentials(
            access_token=self.token or "",
            refresh_token=self.refresh_token or "",
            expires_at=now + timedelta(seconds=self.expires_in),
        )


class LoginResponse(TokenResponse):
    """Response from /auth/login."""
    user: dict[str, Any] | None = None


class TokenStatus(BaseModel):
    """Current state of the stored session."""
    has_token: bool
    is_expired: bool
    expires_at: datetime | None = None
    seconds_remaining: int | None = None
    should_refresh: bool = False
