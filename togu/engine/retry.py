"""
togu.engine.retry — Bounded Retry & Polling
============================================

One helper covers both uses the engine has for "try again later":

* **Retry** — the feed re-fetches a page after transient failures
  (delays ``0, 1, 2, 4``: one attempt plus three retries).
* **Poll** — the badge path re-reads a count until the store has indexed
  a fresh write (``stop_when=lambda n: n >= 1``).

``delays`` lists the wait before each attempt.  The sleep function is
injectable so tests run without real waiting.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from togu.errors import TransientNetworkError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    *,
    delays: Sequence[float],
    stop_when: Callable[[T], bool] | None = None,
    retry_on: tuple[type[BaseException], ...] = (TransientNetworkError,),
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Call *func* up to ``len(delays)`` times.

    Returns the first result accepted by *stop_when* (or the first result
    at all when *stop_when* is None).  When every attempt is exhausted:

    * if the last attempt returned a value, that value is returned;
    * if it raised one of *retry_on*, the exception is re-raised.

    Exceptions outside *retry_on* propagate immediately.

    Raises
    ------
    ValueError
        If *delays* is empty.
    """
    if not delays:
        raise ValueError("delays must contain at least one entry")

    attempts = len(delays)
    for attempt, delay in enumerate(delays, start=1):
        if delay > 0:
            await sleep(delay)
        try:
            result = await func()
        except retry_on as exc:
            if attempt == attempts:
                raise
            logger.info("Attempt %d/%d failed: %s", attempt, attempts, exc)
            continue
        if stop_when is None or stop_when(result) or attempt == attempts:
            return result
        logger.debug("Attempt %d/%d not settled yet: %r", attempt, attempts, result)

    raise AssertionError("unreachable")
