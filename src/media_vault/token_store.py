"""Durable storage of the session's credentials.

The access token, refresh token and expiry live under three logical keys of a
``KeyValueStore``. They are written together and read together: a partial set
is reported as no session at all.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from pydantic import ValidationError

from media_vault.config import Settings
from media_vault.exceptions import TokenStorageError
from media_vault.models.auth import Credentials, TokenStatus
from media_vault.storage import KeyValueStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _to_millis(instant: datetime) -> str:
    return str(int(instant.timestamp() * 1000))


def _from_millis(raw: str) -> datetime | None:
    try:
        return datetime.fromtimestamp(int(raw) / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


class TokenStore:
    """Reads and writes ``Credentials`` through a key-value store."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        token_key: str = "media_vault_token",
        refresh_token_key: str = "media_vault_refresh_token",
        expiry_key: str = "media_vault_token_expiry",
        refresh_before_expiry: int = 300,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._token_key = token_key
        self._refresh_token_key = refresh_token_key
        self._expiry_key = expiry_key
        self._refresh_before_expiry = timedelta(seconds=refresh_before_expiry)
        self._clock = clock

    @classmethod
    def from_settings(cls, store: KeyValueStore, settings: Settings, clock: Clock = utc_now) -> TokenStore:
        return cls(
            store,
            token_key=settings.token_key,
            refresh_token_key=settings.refresh_token_key,
            expiry_key=settings.token_expiry_key,
            refresh_before_expiry=settings.refresh_before_expiry,
            clock=clock,
        )

    def now(self) -> datetime:
        return self._clock()

    # ── reads ─────────────────────────────────────────────────────────

    def get(self) -> Credentials | None:
        """Return the stored credentials, or None unless all three parts exist."""
        access_token = self._store.get(self._token_key)
        refresh_token = self._store.get(self._refresh_token_key)
        raw_expiry = self._store.get(self._expiry_key)
        if not access_token or not refresh_token or not raw_expiry:
            return None

        expires_at = _from_millis(raw_expiry)
        if expires_at is None:
            return None
        return Credentials(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
        )

    def get_access_token(self) -> str | None:
        return self._store.get(self._token_key) or None

    def get_refresh_token(self) -> str | None:
        return self._store.get(self._refresh_token_key) or None

    def is_valid(self) -> bool:
        """True only if credentials exist and now is strictly before expiry."""
        credentials = self.get()
        if credentials is None:
            return False
        return self.now() < credentials.expires_at

    def should_refresh(self) -> bool:
        """True when the stored access token expires within the refresh window."""
        credentials = self.get()
        if credentials is None:
            return False
        return credentials.expires_at - self.now() < self._refresh_before_expiry

    def get_status(self) -> TokenStatus:
        """Get the current session status."""
        credentials = self.get()
        if credentials is None:
            return TokenStatus(has_token=False, is_expired=True)

        now = self.now()
        is_expired = now >= credentials.expires_at
        seconds_remaining = None
        if not is_expired:
            seconds_remaining = int((credentials.expires_at - now).total_seconds())

        return TokenStatus(
            has_token=True,
            is_expired=is_expired,
            expires_at=credentials.expires_at,
            seconds_remaining=seconds_remaining,
            should_refresh=self.should_refresh(),
        )

    # ── writes ────────────────────────────────────────────────────────

    def set(self, credentials: Credentials) -> bool:
        """Replace the stored credentials. Returns False if they were not persisted."""
        if not credentials.access_token or not credentials.refresh_token:
            return False
        try:
            self._store.update({
                self._token_key: credentials.access_token,
                self._refresh_token_key: credentials.refresh_token,
                self._expiry_key: _to_millis(credentials.expires_at),
            })
        except TokenStorageError as e:
            logger.error(f"Failed to store credentials: {e}")
            return False
        return True

    def set_tokens(self, access_token: str, refresh_token: str, expires_in: int) -> bool:
        """Store a token pair whose access token lives ``expires_in`` seconds from now."""
        try:
            credentials = Credentials(
                access_token=access_token,
                refresh_token=refresh_token,
                expires_at=self.now() + timedelta(seconds=expires_in),
            )
        except ValidationError:
            return False
        return self.set(credentials)

    def clear(self) -> bool:
        """Delete all stored credentials."""
        try:
            self._store.delete(self._token_key, self._refresh_token_key, self._expiry_key)
        except TokenStorageError as e:
            logger.error(f"Failed to clear credentials: {e}")
            return False
        return True
