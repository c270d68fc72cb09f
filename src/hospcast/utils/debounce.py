"""Trailing-edge debounce primitive for the event loop."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class Debouncer:
    """Coalesce bursts of calls into one call after ``delay_seconds`` of quiet.

    Each ``trigger`` cancels the pending timer and starts a new one; only the
    arguments of the last trigger reach ``handler``.
    """

    def __init__(
        self,
        handler: Callable[..., Any],
        *,
        delay_seconds: float,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0")
        self._handler = handler
        self._delay = float(delay_seconds)
        self._loop = loop
        self._pending: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def trigger(self, *args: Any) -> None:
        loop = self._loop or asyncio.get_running_loop()
        if self._pending is not None:
            self._pending.cancel()
        self._pending = loop.call_later(self._delay, self._fire, args)

    def cancel(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _fire(self, args: tuple[Any, ...]) -> None:
        self._pending = None
        try:
            self._handler(*args)
        except Exception:
            logger.exception("debounced handler failed")
