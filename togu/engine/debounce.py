"""
togu.engine.debounce — Single-Slot Cancellable Timer
=====================================================

Collapses a burst of triggers into one action that runs after a quiet
period.  Each :meth:`Debouncer.schedule` replaces the pending action;
an action that has already started is left to finish.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class Debouncer:
    def __init__(
        self,
        delay: float,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        name: str = "debounce",
    ) -> None:
        self.delay = delay
        self._sleep = sleep
        self._name = name
        self._pending: asyncio.Task | None = None
        self._running: set[asyncio.Task] = set()

    @property
    def has_pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def schedule(self, action: Callable[[], Awaitable[None]]) -> asyncio.Task:
        """Run *action* after the quiet period unless superseded first."""
        self.cancel()
        task = asyncio.get_running_loop().create_task(
            self._fire(action), name=self._name
        )
        self._pending = task
        self._running.add(task)
        task.add_done_callback(self._running.discard)
        return task

    def cancel(self) -> None:
        """Cancel the unfired action, if any."""
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def _fire(self, action: Callable[[], Awaitable[None]]) -> None:
        await self._sleep(self.delay)
        # Past this point the action is no longer cancellable by schedule().
        if self._pending is asyncio.current_task():
            self._pending = None
        try:
            await action()
        except Exception:
            logger.exception("Debounced action failed", extra={"task": self._name})

    async def flush(self) -> None:
        """Wait for every scheduled or running action to finish."""
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)
