"""Event normalization.

Turns raw provider events into `NormalizedEvent` records:

- Timed boundaries (`dateTime`) keep their offset; values without one are
  read in the boundary's `timeZone`, falling back to the display timezone
- All-day boundaries (`date`) start at local midnight
- A missing end collapses the event to its start
- Category comes from the title, status from comparing the event with `now`

Events whose start is missing or unparseable are skipped. Nothing here
raises for bad provider data.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from datetime import date, datetime, time, tzinfo
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import ValidationError

from schedule_dashboard.models.event import (
    DEFAULT_EVENT_TITLE,
    EventBoundary,
    EventPriority,
    NormalizedEvent,
    RawEvent,
    TemporalStatus,
    classify_event,
)

logger = logging.getLogger(__name__)


def _boundary_zone(boundary: EventBoundary, default: tzinfo) -> tzinfo:
    if not boundary.time_zone:
        return default
    try:
        return ZoneInfo(boundary.time_zone)
    except (ZoneInfoNotFoundError, ValueError):
        return default


def _parse_boundary(
    boundary: EventBoundary | None,
    tz: tzinfo,
) -> tuple[datetime, bool] | None:
    """Parse a boundary into (instant, all_day).

    Returns None when the boundary has neither a timestamp nor a date.

    Raises:
        ValueError: If the timestamp or date is malformed
    """
    if boundary is None:
        return None

    if boundary.date_time:
        instant = datetime.fromisoformat(boundary.date_time.replace("Z", "+00:00"))
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=_boundary_zone(boundary, tz))
        return instant, False

    if boundary.date:
        day = date.fromisoformat(boundary.date)
        return datetime.combine(day, time.min, tzinfo=_boundary_zone(boundary, tz)), True

    return None


def derive_status(start: datetime, end: datetime, now: datetime) -> TemporalStatus:
    """Classify an event as completed, current or upcoming at `now`."""
    if end < now:
        return TemporalStatus.COMPLETED
    if start <= now <= end:
        return TemporalStatus.CURRENT
    return TemporalStatus.UPCOMING


def duration_minutes(start: datetime, end: datetime) -> int:
    """Whole minutes between start and end, rounding halves up."""
    return math.floor((end - start).total_seconds() / 60 + 0.5)


def normalize_event(raw: RawEvent, now: datetime, tz: tzinfo) -> NormalizedEvent | None:
    """Normalize a single provider event.

    Args:
        raw: Event as returned by the provider
        now: Reference instant for the temporal status
        tz: Display timezone

    Returns:
        The normalized event, or None if it has no usable start
    """
    try:
        parsed_start = _parse_boundary(raw.start, tz)
        if parsed_start is None:
            logger.debug(f"Skipping event {raw.id}: no start time")
            return None
        parsed_end = _parse_boundary(raw.end, tz) or parsed_start

        start, all_day = parsed_start
        end, _ = parsed_end
        time_label = start.astimezone(tz).strftime("%H:%M")
    except (ValueError, OverflowError) as e:
        logger.warning(f"Skipping event {raw.id}: invalid date ({e})")
        return None

    title = raw.summary or DEFAULT_EVENT_TITLE

    return NormalizedEvent(
        id=raw.id,
        title=title,
        start=start,
        end=end,
        duration_minutes=duration_minutes(start, end),
        category=classify_event(title),
        status=derive_status(start, end, now),
        all_day=all_day,
        time_label=time_label,
        priority=EventPriority.HARD_BLOCK,
        location=raw.location,
        description=raw.description,
    )


def normalize_events(
    items: Iterable[Any],
    now: datetime,
    tz: tzinfo,
) -> list[NormalizedEvent]:
    """Validate and normalize a batch of raw event mappings.

    Items that fail validation or normalization are logged and dropped; the
    rest of the batch is still returned.
    """
    events: list[NormalizedEvent] = []
    skipped = 0

    for item in items:
        try:
            raw = RawEvent.model_validate(item)
        except ValidationError as e:
            logger.warning(f"Skipping malformed event: {e.error_count()} validation error(s)")
            skipped += 1
            continue

        event = normalize_event(raw, now, tz)
        if event is None:
            skipped += 1
            continue
        events.append(event)

    if skipped:
        logger.info(f"Normalized {len(events)} events, skipped {skipped}")

    return events
