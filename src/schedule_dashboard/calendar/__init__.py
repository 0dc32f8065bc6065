"""Calendar synchronization and caching.

Keeps an in-memory copy of the user's calendar for the dashboard, fetched
through the calendar tool proxy.

## Components

- **normalizer**: raw provider event -> `NormalizedEvent` (category, status)
- **store**: range-merging in-memory event store
- **coordinator**: throttled, single-flight fetching of windows
- **invalidation**: lets writers bypass the throttle on the next fetch
- **session**: the interface the dashboard uses

## Fetch Flow

1. The dashboard asks for a window (day, week or month)
2. The coordinator decides whether the proxy must be called
3. `list_events` results are decoded and normalized
4. The store replaces its contents for that window
5. The dashboard reads the window back from the store
"""

from schedule_dashboard.calendar.coordinator import FetchCoordinator
from schedule_dashboard.calendar.invalidation import InvalidationGate
from schedule_dashboard.calendar.normalizer import normalize_event, normalize_events
from schedule_dashboard.calendar.session import CalendarSession
from schedule_dashboard.calendar.state import CacheState, LastFetch
from schedule_dashboard.calendar.store import EventStore

__all__ = [
    "CacheState",
    "CalendarSession",
    "EventStore",
    "FetchCoordinator",
    "InvalidationGate",
    "LastFetch",
    "normalize_event",
    "normalize_events",
]
