"""Calendar session.

One `CalendarSession` backs the dashboard for the lifetime of a client
session. It owns the event store and fetch bookkeeping, and is the only
way the rest of the dashboard reads or refreshes calendar data.

Example:
    ```python
    async with CalendarSession() as session:
        await session.fetch_events(start, end)   # first call connects
        await session.fetch_events(start, end)
        for event in session.get_events(start, end):
            print(event.time_label, event.title)

        await session.create_event("Coffee chat", start, end)
        await session.fetch_events(start, end)   # not throttled
    ```
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, datetime, timezone
from typing import Any

from pydantic import ValidationError

from schedule_dashboard.calendar.coordinator import FetchCoordinator
from schedule_dashboard.calendar.invalidation import InvalidationGate
from schedule_dashboard.calendar.normalizer import normalize_event
from schedule_dashboard.calendar.state import CacheState
from schedule_dashboard.calendar.store import EventStore
from schedule_dashboard.config import Settings, get_settings
from schedule_dashboard.mcp.client import McpCalendarClient
from schedule_dashboard.mcp.decode import DecodeFailure, decode_event_object
from schedule_dashboard.models.event import NormalizedEvent, RawEvent
from schedule_dashboard.models.window import FetchWindow, InstantLike, InvalidWindowError

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CalendarSession:
    """Cached, throttled access to the calendar for one dashboard session."""

    def __init__(
        self,
        client: McpCalendarClient | None = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize the session.

        Args:
            client: Calendar proxy client (built from settings if omitted)
            settings: Application settings (global settings if omitted)
            clock: Returns the current aware datetime
        """
        self.settings = settings or get_settings()
        self.client = client or McpCalendarClient.from_settings(self.settings)
        self._clock = clock

        self.state = CacheState()
        self.store = EventStore(dedupe_by_id=self.settings.dedupe_events_by_id)
        self.gate = InvalidationGate(self.state, clock)
        self.coordinator = FetchCoordinator(
            client=self.client,
            store=self.store,
            state=self.state,
            gate=self.gate,
            settings=self.settings,
            clock=clock,
        )

    async def __aenter__(self) -> CalendarSession:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    @property
    def loading(self) -> bool:
        return self.coordinator.loading

    @property
    def error(self) -> str | None:
        return self.coordinator.error

    @property
    def connected(self) -> bool:
        return self.client.connected

    @property
    def events(self) -> tuple[NormalizedEvent, ...]:
        """Every cached event, regardless of window."""
        return self.store.events

    async def fetch_events(self, start: InstantLike, end: InstantLike) -> None:
        """Refresh the cache for [start, end]. Never raises for fetch errors."""
        await self.coordinator.request_range(start, end)

    def get_events(self, start: InstantLike, end: InstantLike) -> list[NormalizedEvent]:
        """Cached events starting within [start, end]."""
        try:
            window = FetchWindow.from_bounds(start, end, self.settings.tzinfo)
        except InvalidWindowError as e:
            logger.error(f"Invalid date range provided: {e}")
            return []
        return self.store.query_range(window)

    def invalidate_cache(self) -> None:
        """Make the next fetch bypass the throttle. Does not fetch."""
        self.gate.invalidate()

    async def create_event(
        self,
        summary: str,
        start: datetime | date,
        end: datetime | date,
        location: str | None = None,
        description: str | None = None,
    ) -> NormalizedEvent | None:
        """Create an event on the configured calendar.

        Returns:
            The created event as the proxy reported it, or None if the reply
            could not be read

        Raises:
            McpError: If the proxy rejects the request
        """
        arguments: dict[str, Any] = {
            "calendarId": self.settings.calendar_id,
            "summary": summary,
            "start": self._boundary(start),
            "end": self._boundary(end),
        }
        if location is not None:
            arguments["location"] = location
        if description is not None:
            arguments["description"] = description

        return await self._write("create_event", arguments)

    async def update_event(
        self,
        event_id: str,
        summary: str | None = None,
        start: datetime | date | None = None,
        end: datetime | date | None = None,
        location: str | None = None,
        description: str | None = None,
    ) -> NormalizedEvent | None:
        """Update an event. Only provided fields are changed.

        Raises:
            McpError: If the proxy rejects the request
        """
        arguments: dict[str, Any] = {
            "calendarId": self.settings.calendar_id,
            "eventId": event_id,
        }
        if summary is not None:
            arguments["summary"] = summary
        if start is not None:
            arguments["start"] = self._boundary(start)
        if end is not None:
            arguments["end"] = self._boundary(end)
        if location is not None:
            arguments["location"] = location
        if description is not None:
            arguments["description"] = description

        return await self._write("update_event", arguments)

    async def _write(self, tool: str, arguments: dict[str, Any]) -> NormalizedEvent | None:
        if not self.client.connected:
            await self.client.connect()

        content = await self.client.call_tool(tool, arguments)
        self.invalidate_cache()

        decoded = decode_event_object(content)
        if isinstance(decoded, DecodeFailure):
            logger.warning(f"{tool} succeeded but the reply was unreadable: {decoded.reason}")
            return None

        try:
            raw = RawEvent.model_validate(decoded)
        except ValidationError as e:
            logger.warning(f"{tool} returned a malformed event: {e.error_count()} error(s)")
            return None
        return normalize_event(raw, self._clock(), self.settings.tzinfo)

    def _boundary(self, value: datetime | date) -> dict[str, str]:
        """Build a provider boundary; plain dates make all-day boundaries."""
        if isinstance(value, datetime):
            if value.tzinfo is None:
                value = value.replace(tzinfo=self.settings.tzinfo)
            return {"dateTime": value.isoformat(), "timeZone": self.settings.timezone}
        return {"date": value.isoformat()}
