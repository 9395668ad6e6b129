"""Trailing-edge debouncer for continuous controls (volume, seek).

Each ``schedule()`` cancels the pending timer and arms a new one, so only the
latest action fires once the input has been quiet for ``delay`` seconds.
Use one instance per control; instances never cancel each other.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

Action = Callable[[], Awaitable[object]]


class Debouncer:
    def __init__(self, delay: float, *, name: str = "debouncer"):
        self.delay = delay
        self.name = name
        self._handle: asyncio.TimerHandle | None = None
        self._running: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self, action: Action) -> None:
        """Replace any pending action with *action* and restart the window."""
        if self._handle is not None:
            self._handle.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire, action)

    def cancel(self) -> None:
        """Drop the pending action, if any. Already-fired actions keep running."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    async def wait(self) -> None:
        """Wait for fired actions to finish (used on shutdown and in tests)."""
        if self._running:
            await asyncio.gather(*self._running, return_exceptions=True)

    def _fire(self, action: Action) -> None:
        self._handle = None
        task = asyncio.ensure_future(self._run(action))
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    async def _run(self, action: Action) -> None:
        try:
            await action()
        except Exception:
            logger.exception("Debounced %s action failed", self.name)
