"""In-memory event store.

Holds every event fetched during the session. A fetch for a window is the
authority for that window only: cached events starting inside it are
replaced by the fresh result (so events deleted upstream disappear), and
events starting outside it are kept.

Merging is range-scoped, not id-scoped. Two overlapping but different
windows can leave two copies of the same event in the store unless
`dedupe_by_id` is enabled, in which case the most recently fetched copy wins.
"""

from __future__ import annotations

import logging

from schedule_dashboard.models.event import NormalizedEvent
from schedule_dashboard.models.window import FetchWindow

logger = logging.getLogger(__name__)


class EventStore:
    """Range-merging store of normalized events."""

    def __init__(self, dedupe_by_id: bool = False):
        self.dedupe_by_id = dedupe_by_id
        self._events: list[NormalizedEvent] = []

    def __len__(self) -> int:
        return len(self._events)

    @property
    def events(self) -> tuple[NormalizedEvent, ...]:
        """Snapshot of all cached events in insertion order."""
        return tuple(self._events)

    def merge(self, window: FetchWindow, fresh: list[NormalizedEvent]) -> None:
        """Replace the cached contents of `window` with `fresh`."""
        kept = [e for e in self._events if not window.contains(e.start)]
        dropped = len(self._events) - len(kept)
        merged = kept + list(fresh)

        if self.dedupe_by_id:
            merged = self._dedupe(merged)

        self._events = merged
        logger.debug(
            f"Merged window {window}: {len(fresh)} fetched, "
            f"{dropped} replaced, {len(self._events)} cached"
        )

    @staticmethod
    def _dedupe(events: list[NormalizedEvent]) -> list[NormalizedEvent]:
        # Later entries are fresher; keep the last copy at its own position
        last_index = {event.id: i for i, event in enumerate(events)}
        return [e for i, e in enumerate(events) if last_index[e.id] == i]

    def query_range(self, window: FetchWindow) -> list[NormalizedEvent]:
        """Return cached events starting inside `window`, inclusive."""
        return [e for e in self._events if window.contains(e.start)]
