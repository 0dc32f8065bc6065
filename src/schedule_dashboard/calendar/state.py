"""Fetch bookkeeping for one dashboard session."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from schedule_dashboard.models.window import FetchWindow


@dataclass(frozen=True)
class LastFetch:
    """The most recently completed fetch."""

    window: FetchWindow
    fetched_at: datetime


@dataclass
class CacheState:
    """Throttle and guard state shared by the coordinator and the gate.

    Attributes:
        last_fetch: Most recent successful fetch, cleared by invalidation
        fetch_in_flight: True while a fetch or the handshake is awaiting the proxy
        last_invalidation: When the cache was last invalidated (None: never)
    """

    last_fetch: LastFetch | None = None
    fetch_in_flight: bool = False
    last_invalidation: datetime | None = None
