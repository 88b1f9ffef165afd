"""
togu.services.notifications — Badge Notification Sink
=======================================================

Single-slot, timed, dismissible toast for newly earned badges, plus a
bounded history of every ``BadgeEarned`` event emitted this session.

``show()`` replaces whatever is in the slot and schedules an
auto-dismiss; the timer only clears the slot if it still holds the badge
it was started for, so a newer toast is never cut short.

Badge grants are shared across sessions, so the awarder talks to a
:class:`NotificationRouter`, which hands each event to the earner's sink
only.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime

logger = logging.getLogger(__name__)

DEFAULT_HISTORY = 50


@dataclass(frozen=True, slots=True)
class BadgeEarned:
    badge_name: str
    user_id: str | None
    earned_at: datetime

    def to_dict(self) -> dict[str, str | None]:
        return {
            "badge_name": self.badge_name,
            "user_id": self.user_id,
            "earned_at": self.earned_at.isoformat(),
        }


class NotificationSink:
    def __init__(
        self,
        display_seconds: float = 4.0,
        *,
        history: int = DEFAULT_HISTORY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.display_seconds = display_seconds
        self._sleep = sleep
        self._current: BadgeEarned | None = None
        self._history: deque[BadgeEarned] = deque(maxlen=history)
        self._timer: asyncio.Task | None = None

    @property
    def current(self) -> BadgeEarned | None:
        return self._current

    @property
    def history(self) -> list[BadgeEarned]:
        return list(self._history)

    def show(self, badge_name: str, user_id: str | None = None) -> BadgeEarned:
        """Put *badge_name* in the slot and start its auto-dismiss timer."""
        event = BadgeEarned(badge_name, user_id, datetime.now(UTC))
        self._current = event
        self._history.append(event)
        logger.info("Badge earned: %s (user %s)", badge_name, user_id)

        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._timer = None
        else:
            self._timer = loop.create_task(
                self._auto_dismiss(event), name=f"dismiss-{badge_name}"
            )
        return event

    def dismiss(self) -> None:
        self._current = None
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _auto_dismiss(self, event: BadgeEarned) -> None:
        await self._sleep(self.display_seconds)
        if self._current is event:
            self._current = None


class NotificationRouter:
    """Delivers each badge event to the sink of the user who earned it.

    Sessions register their sink once their user id is known.  Events for
    a user with no registered sink are logged and dropped.
    """

    def __init__(self) -> None:
        self._sinks: dict[str, NotificationSink] = {}

    def register(self, user_id: str, sink: NotificationSink) -> None:
        self._sinks[user_id] = sink

    def unregister(self, user_id: str, sink: NotificationSink) -> None:
        if self._sinks.get(user_id) is sink:
            del self._sinks[user_id]

    def sink_for(self, user_id: str) -> NotificationSink | None:
        return self._sinks.get(user_id)

    def show(self, badge_name: str, user_id: str) -> BadgeEarned | None:
        sink = self._sinks.get(user_id)
        if sink is None:
            logger.debug("No open session for %s, %r not shown", user_id, badge_name)
            return None
        return sink.show(badge_name, user_id)
