"""Cache invalidation gate.

Writers call `invalidate()` after creating, updating or deleting an event.
It does not fetch anything; it only makes sure the next fetch is not served
from the throttle.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from schedule_dashboard.calendar.state import CacheState

logger = logging.getLogger(__name__)


class InvalidationGate:
    """Marks cached data as stale."""

    def __init__(self, state: CacheState, clock: Callable[[], datetime]):
        self.state = state
        self._clock = clock

    def invalidate(self) -> None:
        """Forget the last fetch and record the invalidation time."""
        self.state.last_fetch = None
        self.state.last_invalidation = self._clock()
        logger.info("Cache invalidated; next fetch will bypass throttle")

    def invalidated_within(self, now: datetime, seconds: float) -> bool:
        """Check whether an invalidation happened less than `seconds` ago."""
        if self.state.last_invalidation is None:
            return False
        return (now - self.state.last_invalidation).total_seconds() < seconds
