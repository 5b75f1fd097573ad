"""FIFO buffer of requests waiting for a token refresh to settle."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

Replay = Callable[[str], Awaitable[httpx.Response]]


@dataclass
class QueuedRequest:
    """A request that failed with 401 while a refresh was running.

    ``future`` settles exactly once: with the replayed response, with the
    replay's own error, or with the refresh error.
    """
    replay: Replay
    future: asyncio.Future[httpx.Response]
    cancelled: bool = False
    _task: asyncio.Task[None] | None = field(default=None, repr=False)

    def cancel(self) -> None:
        """Withdraw the request. It will not be replayed."""
        self.cancelled = True
        if not self.future.done():
            self.future.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()

    @property
    def pending(self) -> bool:
        return not self.cancelled and not self.future.done()


class RequestQueue:
    """Holds queued requests for one refresh cycle at a time.

    ``resolve`` and ``reject`` swap the list out before touching any entry, so
    each cycle is drained once and entries enqueued afterwards wait for the
    next cycle.
    """

    def __init__(self) -> None:
        self._entries: list[QueuedRequest] = []
        self._replays: set[asyncio.Task[None]] = set()

    def __len__(self) -> int:
        return len(self._entries)

    def enqueue(self, replay: Replay) -> QueuedRequest:
        future: asyncio.Future[httpx.Response] = asyncio.get_running_loop().create_future()
        entry = QueuedRequest(replay=replay, future=future)
        self._entries.append(entry)
        return entry

    def _drain(self) -> list[QueuedRequest]:
        entries, self._entries = self._entries, []
        live = [entry for entry in entries if entry.pending]
        skipped = len(entries) - len(live)
        if skipped:
            logger.info(f"Skipping {skipped} cancelled queued request(s)")
        return live

    def resolve(self, token: str) -> int:
        """Replay every queued request with ``token``, in enqueue order."""
        entries = self._drain()
        if entries:
            logger.info(f"Replaying {len(entries)} queued request(s) with refreshed token")
        for entry in entries:
            task = asyncio.ensure_future(self._replay(entry, token))
            entry._task = task
            self._replays.add(task)
            task.add_done_callback(self._replays.discard)
        return len(entries)

    def reject(self, error: BaseException) -> int:
        """Fail every queued request with ``error`` without replaying it."""
        entries = self._drain()
        if entries:
            logger.info(f"Failing {len(entries)} queued request(s): {error}")
        for entry in entries:
            entry.future.set_exception(error)
        return len(entries)

    @staticmethod
    async def _replay(entry: QueuedRequest, token: str) -> None:
        try:
            response = await entry.replay(token)
        except asyncio.CancelledError:
            if not entry.future.done():
                entry.future.cancel()
            raise
        except Exception as e:
            if not entry.future.done():
                entry.future.set_exception(e)
            return
        if not entry.future.done():
            entry.future.set_result(response)

    async def join(self) -> None:
        """Wait for replays already started to finish."""
        if self._replays:
            await asyncio.gather(*self._replays, return_exceptions=True)
