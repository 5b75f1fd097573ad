"""The 401 recovery protocol: refresh once, queue the rest, replay in order."""

from __future__ import annotations

import asyncio
import logging

import httpx

from media_vault.coordinator import RefreshCoordinator
from media_vault.request_queue import Replay, RequestQueue
from media_vault.token_store import TokenStore

logger = logging.getLogger(__name__)


class SessionCoordinator:
    """Owns the refresh state and the request queue for one client.

    One instance is shared by every request path of a ``MediaVaultClient``;
    separate clients (and separate tests) get separate coordinators.
    """

    def __init__(
        self,
        tokens: TokenStore,
        refresher: RefreshCoordinator,
        queue: RequestQueue | None = None,
    ) -> None:
        self._tokens = tokens
        self._refresher = refresher
        self._queue = queue or RequestQueue()
        self._refresher.add_listener(self._on_refresh_settled)

    @property
    def refresher(self) -> RefreshCoordinator:
        return self._refresher

    @property
    def queue(self) -> RequestQueue:
        return self._queue

    def _on_refresh_settled(self, token: str | None, error: BaseException | None) -> None:
        if error is not None:
            self._queue.reject(error)
        else:
            self._queue.resolve(token)  # type: ignore[arg-type]

    async def recover(self, sent_token: str | None, replay: Replay) -> httpx.Response:
        """Handle a first 401 for a request sent with ``sent_token``.

        If the stored token has already changed since the request went out,
        the request is replayed straight away. Otherwise it joins the queue of
        the current refresh cycle, starting one if none is running.
        """
        current = self._tokens.get_access_token()
        if not self._refresher.is_refreshing and current and current != sent_token:
            logger.info("Request used a superseded token; replaying with the current one")
            return await replay(current)

        self._refresher.refresh()
        entry = self._queue.enqueue(replay)
        try:
            return await entry.future
        except asyncio.CancelledError:
            entry.cancel()
            raise

    async def ensure_fresh(self) -> None:
        """Refresh ahead of expiry when the stored token is about to lapse."""
        if self._refresher.is_refreshing or (
            self._tokens.should_refresh() and self._tokens.get_refresh_token()
        ):
            await self._refresher.wait_for_token()

    async def refresh_now(self) -> str:
        """Force a refresh (joining one in flight). Returns the new access token."""
        return await self._refresher.wait_for_token()

    async def aclose(self) -> None:
        await self._refresher.aclose()
        await self._queue.join()
