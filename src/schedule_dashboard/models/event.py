"""Event models for calendar integration."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_EVENT_TITLE = "Untitled Event"


class EventCategory(str, Enum):
    """Display category of an event, derived from its title."""

    CLASS = "class"
    MEETING = "meeting"
    STUDY = "study"
    WORKOUT = "workout"
    NETWORKING = "networking"
    RECRUITING = "recruiting"
    BUFFER = "buffer"


class TemporalStatus(str, Enum):
    """Where an event sits relative to the moment it was normalized."""

    COMPLETED = "completed"
    CURRENT = "current"
    UPCOMING = "upcoming"


class EventPriority(str, Enum):
    """How firmly an event occupies its time slot."""

    HARD_BLOCK = "hard-block"  # Events on the calendar
    FLEXIBLE = "flexible"
    OPTIONAL = "optional"


class EventBoundary(BaseModel):
    """Start or end of a provider event.

    Timed events carry `dateTime`; all-day events carry `date` (YYYY-MM-DD).
    Both are kept as strings so that unparseable values reach the normalizer
    instead of failing validation of the whole event.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    date_time: str | None = Field(default=None, alias="dateTime")
    date: str | None = None
    time_zone: str | None = Field(default=None, alias="timeZone")


class RawEvent(BaseModel):
    """A calendar event exactly as the provider returned it."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    id: str = Field(..., min_length=1, description="Provider event identifier")
    summary: str | None = Field(default=None, description="Event title")
    start: EventBoundary | None = None
    end: EventBoundary | None = None
    location: str | None = None
    description: str | None = None


class NormalizedEvent(BaseModel):
    """Canonical event record served to the dashboard."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Stable identifier of the remote event")
    title: str = Field(default=DEFAULT_EVENT_TITLE, description="Display title")
    start: datetime = Field(..., description="Event start (timezone-aware)")
    end: datetime = Field(..., description="Event end (timezone-aware)")
    duration_minutes: int = Field(
        ..., description="Rounded duration; zero or negative for malformed input"
    )
    category: EventCategory = EventCategory.MEETING
    status: TemporalStatus = TemporalStatus.UPCOMING
    all_day: bool = False
    time_label: str = Field(default="", description="Start time as HH:MM")
    priority: EventPriority = EventPriority.HARD_BLOCK
    location: str | None = None
    description: str | None = None


# Checked in order; the first category with a matching keyword wins.
CATEGORY_KEYWORDS: list[tuple[EventCategory, tuple[str, ...]]] = [
    (EventCategory.CLASS, ("class", "course", "lecture")),
    (EventCategory.STUDY, ("study", "homework", "assignment")),
    (EventCategory.WORKOUT, ("gym", "workout", "exercise")),
    (EventCategory.NETWORKING, ("coffee", "networking", "chat")),
    (EventCategory.RECRUITING, ("recruiting", "interview", "info session")),
    (EventCategory.BUFFER, ("buffer", "travel")),
]


def classify_event(title: str) -> EventCategory:
    """Detect the event category from its title."""
    text = title.lower()

    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return category

    return EventCategory.MEETING
