"""
togu.engine.jobs — Detached Background Jobs
============================================

Point awards and milestone checks run after the triggering write has
already succeeded, so their failures must never reach the caller.
:class:`BackgroundJobs` keeps a strong reference to every spawned task
(the event loop only holds weak ones), logs failures, and lets tests and
shutdown wait for outstanding work with :meth:`drain`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class BackgroundJobs:
    """Fire-and-forget task set with a logged error channel."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task:
        """Schedule *coro* on the running loop and return its task."""
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Background job %s failed",
                task.get_name(),
                exc_info=exc,
                extra={"task": task.get_name()},
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait until every job (including jobs spawned by jobs) has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
