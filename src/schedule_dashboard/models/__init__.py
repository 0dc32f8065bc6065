"""Domain models for the schedule dashboard."""

from schedule_dashboard.models.event import (
    CATEGORY_KEYWORDS,
    EventBoundary,
    EventCategory,
    EventPriority,
    NormalizedEvent,
    RawEvent,
    TemporalStatus,
    classify_event,
)
from schedule_dashboard.models.window import (
    FetchWindow,
    InvalidWindowError,
    day_window,
    month_window,
    week_window,
)

__all__ = [
    # Event
    "CATEGORY_KEYWORDS",
    "EventBoundary",
    "EventCategory",
    "EventPriority",
    "NormalizedEvent",
    "RawEvent",
    "TemporalStatus",
    "classify_event",
    # Window
    "FetchWindow",
    "InvalidWindowError",
    "day_window",
    "month_window",
    "week_window",
]
