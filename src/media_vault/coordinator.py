"""Single-flight token refresh.

At most one refresh runs at a time. The first caller that needs a refresh
moves the coordinator from ``IDLE`` to ``REFRESHING`` and every caller after it
receives the same pending future until the refresh settles.

A logout ends the session for good: a refresh still in flight is cancelled and
its result, should it arrive anyway, is never written back to the store.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable

from media_vault.exceptions import SessionExpiredError, TokenStorageError
from media_vault.models.auth import Credentials
from media_vault.signals import SessionSignal, SignalBus
from media_vault.token_store import TokenStore

logger = logging.getLogger(__name__)

RefreshFn = Callable[[str], Awaitable[Credentials]]
# Called with (token, None) on success or (None, error) on failure.
SettleListener = Callable[[str | None, BaseException | None], None]

CANCELLED_MESSAGE = "Token refresh was cancelled"
LOGGED_OUT_MESSAGE = "Session ended by logout"


class RefreshState(str, Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"


def _mark_retrieved(future: asyncio.Future[str]) -> None:
    # Waiters may all be queued requests that never await the shared future.
    if not future.cancelled():
        future.exception()


class RefreshCoordinator:
    """Owns the refresh state machine and the shared refresh future."""

    def __init__(
        self,
        tokens: TokenStore,
        refresh_fn: RefreshFn,
        signals: SignalBus | None = None,
    ) -> None:
        self._tokens = tokens
        self._refresh_fn = refresh_fn
        self._signals = signals
        self._pending: asyncio.Future[str] | None = None
        self._task: asyncio.Task[None] | None = None
        self._listeners: list[SettleListener] = []
        # Bumped on every logout; a refresh started under an older value is void.
        self._generation = 0
        self._unsubscribe = signals.on_signal(self._on_signal) if signals is not None else None
        self.refresh_count = 0

    @property
    def state(self) -> RefreshState:
        return RefreshState.IDLE if self._pending is None else RefreshState.REFRESHING

    @property
    def is_refreshing(self) -> bool:
        return self._pending is not None

    def add_listener(self, listener: SettleListener) -> None:
        """Register a callback run synchronously when a refresh settles.

        Listeners run after the state is back to IDLE and before the shared
        future resolves.
        """
        self._listeners.append(listener)

    def refresh(self) -> asyncio.Future[str]:
        """Start a refresh, or join the one in flight.

        The IDLE check and the transition to REFRESHING happen without yielding
        to the event loop.
        """
        if self._pending is not None:
            return self._pending

        loop = asyncio.get_running_loop()
        future: asyncio.Future[str] = loop.create_future()
        future.add_done_callback(_mark_retrieved)
        self._pending = future
        self.refresh_count += 1
        generation = self._generation
        self._task = loop.create_task(self._run(future, generation))
        self._task.add_done_callback(lambda _: self._settle_abandoned(future, generation))
        return future

    async def wait_for_token(self) -> str:
        """Await the shared refresh result without letting a cancelled caller cancel it."""
        return await asyncio.shield(self.refresh())

    def invalidate(self) -> None:
        """Void the current session: cancel a refresh in flight and drop its result."""
        self._generation += 1
        task = self._task
        # The failure path of _run emits LOGOUT itself; never cancel from inside it.
        if task is not None and not task.done() and task is not asyncio.current_task():
            logger.info("Logout during token refresh, cancelling it")
            task.cancel()

    def _on_signal(self, signal: SessionSignal) -> None:
        if signal is SessionSignal.LOGOUT:
            self.invalidate()

    async def _run(self, future: asyncio.Future[str], generation: int) -> None:
        logger.info("Refreshing access token")
        try:
            token = await self._refresh(generation)
        except asyncio.CancelledError:
            message = CANCELLED_MESSAGE if generation == self._generation else LOGGED_OUT_MESSAGE
            self._settle(future, None, SessionExpiredError(message))
            raise
        except Exception as e:
            logger.warning(f"Token refresh failed: {e}")
            if generation == self._generation:
                self._end_session()
            error = e
            if not isinstance(e, SessionExpiredError):
                error = SessionExpiredError(f"Session expired: {e}")
                error.__cause__ = e
            self._settle(future, None, error)
        else:
            logger.info("Access token refreshed")
            self._settle(future, token, None)

    async def _refresh(self, generation: int) -> str:
        refresh_token = self._tokens.get_refresh_token()
        if not refresh_token:
            raise SessionExpiredError("No refresh token available")

        credentials = await self._refresh_fn(refresh_token)
        if generation != self._generation:
            raise SessionExpiredError(LOGGED_OUT_MESSAGE)
        if not self._tokens.set(credentials):
            raise TokenStorageError("Failed to store refreshed tokens")
        return credentials.access_token

    def _end_session(self) -> None:
        if not self._tokens.clear():
            logger.error("Refresh failed but the stored session could not be removed")
        if self._signals is not None:
            self._signals.emit(SessionSignal.LOGOUT)

    def _settle_abandoned(self, future: asyncio.Future[str], generation: int) -> None:
        # A task cancelled before its first step never reaches _run's handlers.
        if future.done() or self._pending is not future:
            return
        message = CANCELLED_MESSAGE if generation == self._generation else LOGGED_OUT_MESSAGE
        self._settle(future, None, SessionExpiredError(message))

    def _settle(
        self,
        future: asyncio.Future[str],
        token: str | None,
        error: BaseException | None,
    ) -> None:
        self._pending = None
        self._task = None
        for listener in list(self._listeners):
            listener(token, error)
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(token)  # type: ignore[arg-type]

    async def aclose(self) -> None:
        """Cancel a refresh still in flight and stop listening for signals."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        task, future = self._task, self._pending
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if future is not None:
            self._settle_abandoned(future, self._generation)
