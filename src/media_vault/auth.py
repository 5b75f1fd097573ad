"""Session endpoints of the Media Vault API.

Every call here goes over a bare httpx client: no token injection, no 401
interception. The refresh call in particular must never pass back through the
client it is recovering.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from media_vault.classifier import ResponseErrorClassifier
from media_vault.config import Config
from media_vault.exceptions import (
    ApplicationError,
    NetworkUnreachableError,
    RefreshError,
    TokenStorageError,
)
from media_vault.models.auth import Credentials, LoginResponse, TokenResponse
from media_vault.signals import SessionSignal, SignalBus
from media_vault.token_store import TokenStore

logger = logging.getLogger(__name__)

LOGIN_PATH = "/auth/login"
LOGOUT_PATH = "/auth/logout"
REFRESH_PATH = "/auth/refresh-token"
REGISTER_PATH = "/auth/register"
FORGOT_PASSWORD_PATH = "/auth/forgot-password"
RESET_PASSWORD_PATH = "/auth/reset-password"


class AuthManager:
    """Login, logout, token refresh and account calls against the auth endpoints."""

    def __init__(
        self,
        config: Config,
        tokens: TokenStore,
        signals: SignalBus | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._tokens = tokens
        self._signals = signals or SignalBus()
        self._classifier = ResponseErrorClassifier()
        self._http = httpx.AsyncClient(
            base_url=config.api_base_url,
            timeout=config.settings.timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    @property
    def signals(self) -> SignalBus:
        return self._signals

    async def _post(self, path: str, body: dict, headers: dict[str, str] | None = None) -> httpx.Response:
        try:
            return await self._http.post(path, json=body, headers=headers)
        except httpx.TransportError as e:
            raise NetworkUnreachableError() from e

    async def refresh_credentials(self, refresh_token: str) -> Credentials:
        """Exchange a refresh token for a new token pair.

        Raises:
            RefreshError: The endpoint rejected the token or returned no tokens.
            NetworkUnreachableError: The server could not be reached.
        """
        response = await self._post(REFRESH_PATH, {"refreshToken": refresh_token})

        if not response.is_success:
            detail = self._classifier.extract_message(response) or response.reason_phrase
            raise RefreshError(
                f"Token refresh failed (HTTP {response.status_code}): {detail}",
                status_code=response.status_code,
            )

        try:
            data = TokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise RefreshError(f"Token refresh failed: malformed response ({e})") from e

        if not data.token or not data.refresh_token:
            raise RefreshError("Token refresh failed: response did not include new tokens")
        return data.to_credentials(self._tokens.now())

    async def login(self, email: str, password: str, remember_me: bool = False) -> LoginResponse:
        """Authenticate with email and password and store the session.

        Raises:
            UnauthorizedError / ApplicationError: The server rejected the login.
            TokenStorageError: The tokens could not be persisted.
        """
        response = await self._post(
            LOGIN_PATH,
            {"email": email, "password": password, "rememberMe": remember_me},
        )
        if not response.is_success:
            raise self._classifier.to_error(response)

        try:
            data = LoginResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ApplicationError(
                "Login failed: malformed response from server", status_code=response.status_code
            ) from e
        if not data.token or not data.refresh_token:
            raise ApplicationError(
                "Login failed: response did not include session tokens",
                status_code=response.status_code,
            )
        if not self._tokens.set_tokens(data.token, data.refresh_token, data.expires_in):
            raise TokenStorageError("Failed to store session tokens")

        logger.info(f"Logged in as {email}")
        self._signals.emit(SessionSignal.LOGIN)
        return data

    async def logout(self) -> None:
        """Clear the local session, then tell the server (best-effort)."""
        access_token = self._tokens.get_access_token()
        refresh_token = self._tokens.get_refresh_token()

        self._tokens.clear()
        self._signals.emit(SessionSignal.LOGOUT)

        if not refresh_token:
            return

        headers = {}
        if access_token:
            headers["Authorization"] = f"{self._config.settings.token_type} {access_token}"
        try:
            response = await self._post(LOGOUT_PATH, {"refreshToken": refresh_token}, headers)
        except NetworkUnreachableError as e:
            logger.warning(f"Server logout skipped: {e}")
            return
        if not response.is_success:
            logger.warning(f"Server logout failed (HTTP {response.status_code})")

    def is_authenticated(self) -> bool:
        """True when a session is stored and its access token has not expired."""
        return self._tokens.is_valid()

    async def _account_call(self, path: str, body: dict) -> dict[str, Any]:
        """POST an unauthenticated account request and return its JSON body.

        None of these calls touch the stored session.
        """
        response = await self._post(path, body)
        if not response.is_success:
            raise self._classifier.to_error(response)
        try:
            data = response.json()
        except ValueError:
            data = None
        return data if isinstance(data, dict) else {}

    async def register(self, email: str, password: str, name: str) -> dict[str, Any]:
        """Create an account. The server may hold it for admin approval.

        Registration does not sign in; call ``login`` afterwards.
        """
        data = await self._account_call(
            REGISTER_PATH, {"email": email, "password": password, "name": name}
        )
        logger.info(f"Registered account {email}")
        return data

    async def forgot_password(self, email: str) -> dict[str, Any]:
        """Ask the server to email a password reset link."""
        return await self._account_call(FORGOT_PASSWORD_PATH, {"email": email})

    async def reset_password(self, token: str, password: str) -> dict[str, Any]:
        """Set a new password using the token from the reset email."""
        return await self._account_call(RESET_PASSWORD_PATH, {"token": token, "password": password})

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.aclose()
