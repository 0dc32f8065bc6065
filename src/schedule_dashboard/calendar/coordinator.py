"""Fetch coordination.

Decides, for each request of a window, whether the calendar proxy is
actually called. The checks run in this order:

1. Invalid window: logged, nothing else happens
2. Proxy not connected: start the handshake and stop (caller asks again).
   A handshake already under way holds the same guard as a fetch
3. Another fetch in flight: the request is dropped, not queued
4. Same window fetched within the throttle interval, and no recent
   invalidation: cached data is fresh enough
5. Otherwise fetch, normalize and merge into the store

Only one fetch or handshake is ever awaiting the proxy. The guard is
released on every exit path, including failures, which end up in `error`
instead of being raised to the dashboard.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from schedule_dashboard.calendar.invalidation import InvalidationGate
from schedule_dashboard.calendar.normalizer import normalize_events
from schedule_dashboard.calendar.state import CacheState, LastFetch
from schedule_dashboard.calendar.store import EventStore
from schedule_dashboard.config import Settings
from schedule_dashboard.mcp.client import McpCalendarClient, McpError
from schedule_dashboard.mcp.decode import DecodeFailure, decode_event_list
from schedule_dashboard.models.window import FetchWindow, InstantLike, InvalidWindowError

logger = logging.getLogger(__name__)

DEFAULT_FETCH_ERROR = "Failed to fetch calendar events"


class FetchCoordinator:
    """Throttled, single-flight fetching of event windows."""

    def __init__(
        self,
        client: McpCalendarClient,
        store: EventStore,
        state: CacheState,
        gate: InvalidationGate,
        settings: Settings,
        clock: Callable[[], datetime],
    ):
        """Initialize the coordinator.

        Args:
            client: Calendar proxy client
            store: Store that receives fetched events
            state: Throttle and guard state for this session
            gate: Invalidation gate sharing `state`
            settings: Fetch settings (interval, calendar, timezone)
            clock: Returns the current aware datetime
        """
        self.client = client
        self.store = store
        self.state = state
        self.gate = gate
        self.settings = settings
        self._clock = clock

        self.loading = False
        self.error: str | None = None

    async def request_range(self, start: InstantLike, end: InstantLike) -> None:
        """Bring the store up to date for the window [start, end]."""
        try:
            window = FetchWindow.from_bounds(start, end, self.settings.tzinfo)
        except InvalidWindowError as e:
            logger.error(f"Invalid date range provided: {e}")
            return

        if not self.client.connected:
            await self._connect()
            return

        if self.state.fetch_in_flight:
            logger.debug(f"Fetch already in progress, skipping {window}")
            return

        now = self._clock()
        if self._is_fresh(window, now):
            logger.debug(f"Using cached data for {window}")
            return

        await self._fetch(window, now)

    def _is_fresh(self, window: FetchWindow, now: datetime) -> bool:
        """Check whether `window` was fetched recently enough to skip."""
        if self.gate.invalidated_within(now, self.settings.invalidation_bypass_seconds):
            logger.debug("Cache was recently invalidated, bypassing throttle")
            return False

        last = self.state.last_fetch
        if last is None or last.window.key != window.key:
            return False

        elapsed = (now - last.fetched_at).total_seconds()
        return elapsed < self.settings.min_fetch_interval_seconds

    async def _connect(self) -> None:
        if self.state.fetch_in_flight:
            logger.debug("Handshake already in progress")
            return

        self.state.fetch_in_flight = True
        self.error = None
        try:
            await self.client.connect()
        except McpError as e:
            self.error = f"Failed to connect to calendar: {e}"
            logger.warning(self.error)
        except Exception as e:
            self.error = f"Failed to connect to calendar: {e}"
            logger.exception(f"Unexpected error connecting to calendar: {e}")
        finally:
            self.state.fetch_in_flight = False

    async def _fetch(self, window: FetchWindow, now: datetime) -> None:
        self.state.fetch_in_flight = True
        self.loading = True
        self.error = None

        try:
            content = await self.client.call_tool(
                "list_events",
                {
                    "calendarId": self.settings.calendar_id,
                    "timeMin": window.time_min,
                    "timeMax": window.time_max,
                    "maxResults": self.settings.max_results,
                },
            )

            decoded = decode_event_list(content)
            if isinstance(decoded, DecodeFailure):
                raise decoded.to_error()

            events = normalize_events(decoded.items, self._clock(), self.settings.tzinfo)
            self.state.last_fetch = LastFetch(window=window, fetched_at=now)
            self.store.merge(window, events)
            logger.info(f"Fetched {len(events)} events for {window}")
        except McpError as e:
            self.error = str(e) or DEFAULT_FETCH_ERROR
            logger.warning(f"Calendar fetch failed for {window}: {e}")
        except Exception as e:
            self.error = str(e) or DEFAULT_FETCH_ERROR
            logger.exception(f"Unexpected error fetching {window}: {e}")
        finally:
            self.loading = False
            self.state.fetch_in_flight = False
