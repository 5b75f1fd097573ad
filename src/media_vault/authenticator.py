"""Attaches the stored access token to outgoing requests."""

from __future__ import annotations

import httpx

from media_vault.token_store import TokenStore


class RequestAuthenticator:
    """Sets ``Authorization: <token_type> <token>`` when a token is stored.

    Requests without a stored token go out unauthenticated; the server decides
    whether that is acceptable.
    """

    def __init__(self, tokens: TokenStore, token_type: str = "Bearer") -> None:
        self._tokens = tokens
        self._token_type = token_type

    def apply(self, request: httpx.Request) -> str | None:
        """Attach the current access token. Returns the token used, if any."""
        token = self._tokens.get_access_token()
        if token:
            self.apply_token(request, token)
        return token

    def apply_token(self, request: httpx.Request, token: str) -> None:
        request.headers["Authorization"] = f"{self._token_type} {token}"
