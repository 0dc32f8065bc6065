"""Command-line interface for the schedule dashboard.

Talks to the calendar proxy the same way the dashboard does, which makes it
handy for checking a proxy deployment.
"""

import argparse
import asyncio
import logging
import sys

from schedule_dashboard.calendar.session import CalendarSession, utcnow
from schedule_dashboard.config import get_settings
from schedule_dashboard.mcp.client import McpCalendarClient, McpError
from schedule_dashboard.models.window import (
    InvalidWindowError,
    day_window,
    month_window,
    parse_instant,
    week_window,
)

WINDOW_BUILDERS = {
    "day": day_window,
    "week": week_window,
    "month": month_window,
}


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def _show_events(period: str, date_text: str | None) -> int:
    settings = get_settings()
    tz = settings.tzinfo

    if date_text:
        try:
            reference = parse_instant(date_text, tz)
        except InvalidWindowError as e:
            print(f"Invalid date: {e}", file=sys.stderr)
            return 2
    else:
        reference = utcnow()
    window = WINDOW_BUILDERS[period](reference, tz)

    async with CalendarSession(settings=settings) as session:
        # The first request only performs the handshake
        await session.fetch_events(window.start, window.end)
        if session.connected:
            await session.fetch_events(window.start, window.end)

        if session.error:
            print(f"Error: {session.error}", file=sys.stderr)
            return 1

        events = sorted(session.get_events(window.start, window.end), key=lambda e: e.start)

    print(f"{len(events)} events in {window}")
    for event in events:
        day = event.start.astimezone(tz).strftime("%a %d %b")
        when = "all day" if event.all_day else f"{event.time_label} ({event.duration_minutes} min)"
        print(f"  {day} {when:<16} [{event.category.value:<10}] {event.status.value:<9} {event.title}")
    return 0


async def _show_tools() -> int:
    settings = get_settings()
    async with McpCalendarClient.from_settings(settings) as client:
        try:
            await client.connect()
        except McpError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    for tool in client.tools:
        print(f"  {tool.name:<16} {tool.description or ''}")
    return 0


def main() -> int:
    """Main entry point for the CLI."""
    settings = get_settings()
    parser = argparse.ArgumentParser(
        description=f"{settings.app_name} - Inspect calendar data served by the calendar proxy"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"{settings.app_name} {settings.app_version}",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: LOG_LEVEL setting, or DEBUG when DEBUG=true)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    events_parser = subparsers.add_parser(
        "events", help="Fetch and list events for a day, week or month"
    )
    events_parser.add_argument(
        "period",
        nargs="?",
        choices=sorted(WINDOW_BUILDERS),
        default="day",
        help="Window to show",
    )
    events_parser.add_argument(
        "--date",
        help="Any date inside the window (ISO-8601, default: today)",
    )

    subparsers.add_parser("tools", help="List tools offered by the calendar proxy")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return 0

    configure_logging(args.log_level or ("DEBUG" if settings.debug else settings.log_level))

    if args.command == "events":
        return asyncio.run(_show_events(args.period, args.date))
    return asyncio.run(_show_tools())


if __name__ == "__main__":
    sys.exit(main())
