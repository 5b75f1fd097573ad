"""Session lifecycle signals (login / logout) and an in-process bus."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class SessionSignal(str, Enum):
    LOGIN = "login"
    LOGOUT = "logout"


SignalHandler = Callable[[SessionSignal], None]


class SignalBus:
    """Delivers session signals to subscribed handlers in subscription order."""

    def __init__(self) -> None:
        self._handlers: list[SignalHandler] = []

    def on_signal(self, handler: SignalHandler) -> Callable[[], None]:
        """Subscribe ``handler``. Returns a callable that unsubscribes it."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def emit(self, signal: SessionSignal) -> None:
        logger.info(f"Session signal: {signal.value}")
        for handler in list(self._handlers):
            try:
                handler(signal)
            except Exception:
                logger.exception(f"Handler for '{signal.value}' signal failed")
