"""HTTP client for the Media Vault API.

Attaches the session token to every request and recovers from expired tokens
transparently: a request that succeeds after a refresh looks exactly like one
that succeeded first time.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from media_vault.auth import AuthManager
from media_vault.authenticator import RequestAuthenticator
from media_vault.classifier import ErrorKind, ResponseErrorClassifier
from media_vault.config import Config
from media_vault.coordinator import RefreshCoordinator
from media_vault.exceptions import NetworkUnreachableError
from media_vault.session import SessionCoordinator
from media_vault.signals import SignalBus
from media_vault.storage import JsonFileStore, KeyValueStore
from media_vault.token_store import Clock, TokenStore, utc_now

logger = logging.getLogger(__name__)


class MediaVaultClient:
    """Authenticated HTTP client with single-flight token refresh."""

    def __init__(
        self,
        config: Config,
        tokens: TokenStore,
        auth: AuthManager,
        *,
        session: SessionCoordinator | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        proactive_refresh: bool | None = None,
        verbose: bool = False,
    ) -> None:
        self._config = config
        self._tokens = tokens
        self._auth = auth
        self._session = session or SessionCoordinator(
            tokens, RefreshCoordinator(tokens, auth.refresh_credentials, auth.signals)
        )
        self._authenticator = RequestAuthenticator(tokens, config.settings.token_type)
        self._classifier = ResponseErrorClassifier()
        self._proactive_refresh = (
            config.settings.proactive_refresh if proactive_refresh is None else proactive_refresh
        )
        self._verbose = verbose
        self._http = httpx.AsyncClient(
            base_url=config.api_base_url,
            timeout=config.settings.timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    @classmethod
    def from_config(
        cls,
        config: Config,
        *,
        store: KeyValueStore | None = None,
        signals: SignalBus | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Clock = utc_now,
        verbose: bool = False,
    ) -> MediaVaultClient:
        """Wire up a client, its token store and its auth endpoints from config."""
        store = store if store is not None else JsonFileStore(config.token_path)
        tokens = TokenStore.from_settings(store, config.settings, clock=clock)
        auth = AuthManager(config, tokens, signals=signals, transport=transport)
        return cls(config, tokens, auth, transport=transport, verbose=verbose)

    @property
    def tokens(self) -> TokenStore:
        return self._tokens

    @property
    def auth(self) -> AuthManager:
        return self._auth

    @property
    def session(self) -> SessionCoordinator:
        return self._session

    async def __aenter__(self) -> MediaVaultClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def send(self, request: httpx.Request) -> httpx.Response:
        """Send a request with the current token attached.

        Raises:
            NetworkUnreachableError: No response was received.
            UnauthorizedError: The request was rejected again after a refresh.
            SessionExpiredError: The session could not be refreshed.
            ApplicationError: Any other HTTP error.
        """
        if self._proactive_refresh:
            await self._session.ensure_fresh()

        sent_token = self._authenticator.apply(request)
        response = await self._transmit(request)
        if response.status_code < 400:
            return response

        if self._classifier.classify(response) is ErrorKind.UNAUTHORIZED:
            logger.warning(f"Got 401 for {request.method} {request.url.path}, recovering session")
            return await self._session.recover(
                sent_token, lambda token: self._replay(request, token)
            )

        raise self._classifier.to_error(response)

    async def _replay(self, request: httpx.Request, token: str) -> httpx.Response:
        """Re-send a request once with ``token``. A second 401 is not recovered."""
        self._authenticator.apply_token(request, token)
        response = await self._transmit(request)
        if response.status_code < 400:
            return response
        raise self._classifier.to_error(response)

    async def _transmit(self, request: httpx.Request) -> httpx.Response:
        if self._verbose:
            logger.info(f"{request.method} {request.url}")
        try:
            response = await self._http.send(request)
        except httpx.TransportError as e:
            logger.warning(f"No response for {request.method} {request.url}: {e}")
            raise NetworkUnreachableError() from e
        if self._verbose:
            logger.info(f"Response: {response.status_code}")
        return response

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Make an authenticated API request.

        Args:
            method: HTTP method (GET, POST, PUT, PATCH, DELETE).
            path: API path (e.g. "/files"). Appended to the API base URL.
            json: JSON request body.
            params: Query parameters.
            headers: Additional headers to include.
        """
        request = self._http.build_request(
            method, path, json=json, params=params, headers=headers
        )
        return await self.send(request)

    async def get(self, path: str, **kwargs: Any) -> httpx.Response:
        """Convenience method for GET requests."""
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> httpx.Response:
        """Convenience method for POST requests."""
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs: Any) -> httpx.Response:
        """Convenience method for PUT requests."""
        return await self.request("PUT", path, **kwargs)

    async def patch(self, path: str, **kwargs: Any) -> httpx.Response:
        """Convenience method for PATCH requests."""
        return await self.request("PATCH", path, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> httpx.Response:
        """Convenience method for DELETE requests."""
        return await self.request("DELETE", path, **kwargs)

    async def current_user(self) -> dict[str, Any]:
        """Fetch the signed-in user from /auth/me."""
        response = await self.get("/auth/me")
        try:
            data = response.json()
        except ValueError:
            return {}
        user = data.get("user") if isinstance(data, dict) else None
        return user if isinstance(user, dict) else {}

    async def close(self) -> None:
        """Close the underlying HTTP clients."""
        await self._session.aclose()
        await self._http.aclose()
        await self._auth.close()
