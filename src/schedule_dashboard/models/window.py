"""Fetch windows.

A window is the `(start, end)` pair of instants that scopes both a fetch
against the calendar proxy and a query against the local event store.
Windows are compared by their serialized boundaries, so two windows built
from different datetime objects for the same instants are identical.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Union

InstantLike = Union[datetime, date, str]


class InvalidWindowError(ValueError):
    """Raised when window boundaries cannot be parsed into instants."""


def parse_instant(value: InstantLike, tz: tzinfo) -> datetime:
    """Parse a datetime, date or ISO-8601 string into an aware datetime.

    Naive values and plain dates are interpreted in `tz`.

    Raises:
        InvalidWindowError: If the value is not a recognizable instant
    """
    if isinstance(value, datetime):
        instant = value
    elif isinstance(value, date):
        instant = datetime.combine(value, time.min)
    elif isinstance(value, str) and value.strip():
        try:
            instant = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as e:
            raise InvalidWindowError(f"Unparseable instant: {value!r}") from e
    else:
        raise InvalidWindowError(f"Unparseable instant: {value!r}")

    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=tz)
    return instant


def serialize_instant(instant: datetime) -> str:
    """Serialize an instant as UTC ISO-8601 with millisecond precision."""
    return (
        instant.astimezone(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


@dataclass(frozen=True)
class FetchWindow:
    """An inclusive range of instants."""

    start: datetime
    end: datetime

    @classmethod
    def from_bounds(
        cls,
        start: InstantLike,
        end: InstantLike,
        tz: tzinfo = timezone.utc,
    ) -> FetchWindow:
        """Build a window, parsing both boundaries.

        Raises:
            InvalidWindowError: If either boundary is invalid
        """
        return cls(start=parse_instant(start, tz), end=parse_instant(end, tz))

    @property
    def time_min(self) -> str:
        return serialize_instant(self.start)

    @property
    def time_max(self) -> str:
        return serialize_instant(self.end)

    @property
    def key(self) -> tuple[str, str]:
        """Identity of the window for throttling."""
        return (self.time_min, self.time_max)

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant <= self.end

    def __str__(self) -> str:
        return f"[{self.time_min}, {self.time_max}]"


def _local_midnight(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def _until(next_start: datetime) -> datetime:
    # Windows are inclusive, so they stop one millisecond before the next one
    return next_start - timedelta(milliseconds=1)


def day_window(reference: datetime, tz: tzinfo) -> FetchWindow:
    """Window covering the local day that contains `reference`."""
    day = reference.astimezone(tz).date()
    return FetchWindow(
        start=_local_midnight(day, tz),
        end=_until(_local_midnight(day + timedelta(days=1), tz)),
    )


def week_window(reference: datetime, tz: tzinfo) -> FetchWindow:
    """Window covering the local week (Sunday to Saturday) of `reference`."""
    day = reference.astimezone(tz).date()
    first = day - timedelta(days=(day.weekday() + 1) % 7)
    return FetchWindow(
        start=_local_midnight(first, tz),
        end=_until(_local_midnight(first + timedelta(days=7), tz)),
    )


def month_window(reference: datetime, tz: tzinfo) -> FetchWindow:
    """Window covering the local calendar month of `reference`."""
    day = reference.astimezone(tz).date()
    first = day.replace(day=1)
    if first.month == 12:
        next_first = first.replace(year=first.year + 1, month=1)
    else:
        next_first = first.replace(month=first.month + 1)
    return FetchWindow(
        start=_local_midnight(first, tz),
        end=_until(_local_midnight(next_first, tz)),
    )
