"""Tests for fetch coordination: throttling, invalidation and the in-flight guard."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from schedule_dashboard.calendar.session import CalendarSession
from schedule_dashboard.mcp.client import JsonRpcError, McpTransportError

UTC = timezone.utc
START = datetime(2026, 1, 21, 0, 0, tzinfo=UTC)
END = datetime(2026, 1, 21, 23, 59, 59, tzinfo=UTC)


@pytest.fixture
def session(fake_client, settings, clock) -> CalendarSession:
    return CalendarSession(client=fake_client, settings=settings, clock=clock)


class TestThrottle:
    """Tests for skipping identical recent fetches."""

    @pytest.mark.asyncio
    async def test_identical_window_within_interval_fetches_once(self, session, fake_client):
        await session.fetch_events(START, END)
        await session.fetch_events(START, END)

        assert len(fake_client.list_events_calls) == 1

    @pytest.mark.asyncio
    async def test_identical_window_as_strings_is_throttled(self, session, fake_client):
        await session.fetch_events(START, END)
        await session.fetch_events("2026-01-21T00:00:00Z", "2026-01-21T23:59:59.000Z")

        assert len(fake_client.list_events_calls) == 1

    @pytest.mark.asyncio
    async def test_refetch_after_interval(self, session, fake_client, clock):
        await session.fetch_events(START, END)
        clock.advance(2.0)
        await session.fetch_events(START, END)

        assert len(fake_client.list_events_calls) == 2

    @pytest.mark.asyncio
    async def test_different_window_is_not_throttled(self, session, fake_client):
        await session.fetch_events(START, END)
        await session.fetch_events(START, END + timedelta(days=1))

        assert len(fake_client.list_events_calls) == 2

    @pytest.mark.asyncio
    async def test_throttle_only_remembers_last_window(self, session, fake_client):
        await session.fetch_events(START, END)
        await session.fetch_events(START + timedelta(days=1), END + timedelta(days=1))
        await session.fetch_events(START, END)

        assert len(fake_client.list_events_calls) == 3


class TestInvalidation:
    """Tests for the invalidation bypass."""

    @pytest.mark.asyncio
    async def test_invalidate_then_fetch_hits_network(self, session, fake_client):
        await session.fetch_events(START, END)
        session.invalidate_cache()
        await session.fetch_events(START, END)

        assert len(fake_client.list_events_calls) == 2

    @pytest.mark.asyncio
    async def test_invalidate_does_not_fetch(self, session, fake_client):
        session.invalidate_cache()
        session.invalidate_cache()

        assert fake_client.calls == []
        assert session.state.last_fetch is None
        assert session.state.last_invalidation is not None

    @pytest.mark.asyncio
    async def test_invalidation_clears_last_fetch_beyond_bypass_window(
        self, session, fake_client, clock
    ):
        await session.fetch_events(START, END)
        session.invalidate_cache()
        clock.advance(1.5)
        await session.fetch_events(START, END)

        assert len(fake_client.list_events_calls) == 2

    @pytest.mark.asyncio
    async def test_fetches_inside_bypass_window_are_not_throttled(
        self, session, fake_client, clock
    ):
        session.invalidate_cache()
        await session.fetch_events(START, END)
        clock.advance(0.5)
        await session.fetch_events(START, END)

        assert len(fake_client.list_events_calls) == 2

        clock.advance(0.6)
        await session.fetch_events(START, END)

        assert len(fake_client.list_events_calls) == 2


class TestInFlightGuard:
    """Tests for single-flight fetching."""

    @pytest.mark.asyncio
    async def test_concurrent_requests_issue_one_call(self, session, fake_client):
        fake_client.release = asyncio.Event()

        first = asyncio.create_task(session.fetch_events(START, END))
        await asyncio.sleep(0)
        assert session.loading is True
        assert session.state.fetch_in_flight is True

        await session.fetch_events(START + timedelta(days=1), END + timedelta(days=1))
        assert len(fake_client.list_events_calls) == 1

        fake_client.release.set()
        await first

        assert len(fake_client.list_events_calls) == 1
        assert session.loading is False
        assert session.state.fetch_in_flight is False

    @pytest.mark.asyncio
    async def test_guard_released_after_failure(self, session, fake_client):
        fake_client.responses = [McpTransportError("Connection refused")]

        await session.fetch_events(START, END)

        assert session.state.fetch_in_flight is False
        assert session.loading is False

        await session.fetch_events(START, END)
        assert len(fake_client.list_events_calls) == 2


class TestFetchResults:
    """Tests for what a fetch does to the store and session state."""

    @pytest.mark.asyncio
    async def test_list_events_arguments(self, session, fake_client):
        await session.fetch_events(START, END)

        assert fake_client.list_events_calls == [
            {
                "calendarId": "primary",
                "timeMin": "2026-01-21T00:00:00.000Z",
                "timeMax": "2026-01-21T23:59:59.000Z",
                "maxResults": 250,
            }
        ]

    @pytest.mark.asyncio
    async def test_events_are_normalized_and_stored(
        self, session, fake_client, make_raw_event, text_content, clock
    ):
        fake_client.default_response = text_content(
            [
                make_raw_event("gym", clock.now - timedelta(hours=3), summary="Gym"),
                make_raw_event("class", clock.now - timedelta(minutes=30), summary="Finance class"),
                make_raw_event("chat", clock.now + timedelta(hours=2), summary="Coffee chat"),
            ]
        )

        await session.fetch_events(START, END)

        events = {e.id: e for e in session.get_events(START, END)}
        assert events["gym"].status.value == "completed"
        assert events["class"].status.value == "current"
        assert events["chat"].status.value == "upcoming"
        assert events["chat"].category.value == "networking"
        assert session.error is None

    @pytest.mark.asyncio
    async def test_direct_array_payload(self, session, fake_client, make_raw_event):
        fake_client.default_response = [make_raw_event("a", START + timedelta(hours=9))]

        await session.fetch_events(START, END)

        assert [e.id for e in session.events] == ["a"]

    @pytest.mark.asyncio
    async def test_malformed_events_are_skipped(
        self, session, fake_client, make_raw_event, text_content
    ):
        fake_client.default_response = text_content(
            [
                make_raw_event("ok", START + timedelta(hours=9)),
                {"id": "no-start", "summary": "Ghost"},
                {"id": "bad", "start": {"dateTime": "tomorrow-ish"}},
            ]
        )

        await session.fetch_events(START, END)

        assert [e.id for e in session.events] == ["ok"]
        assert session.error is None

    @pytest.mark.asyncio
    async def test_refetch_replaces_window_and_keeps_others(
        self, session, fake_client, make_raw_event, text_content
    ):
        nine, three_pm = START + timedelta(hours=9), START + timedelta(hours=15)
        fake_client.responses = [
            text_content(
                [
                    make_raw_event("A", START + timedelta(hours=10)),
                    make_raw_event("B", START + timedelta(hours=14)),
                ]
            ),
            text_content([make_raw_event("C", START + timedelta(hours=14, minutes=30))]),
        ]

        await session.fetch_events(nine, three_pm)
        await session.fetch_events(START + timedelta(hours=13), START + timedelta(hours=16))

        assert sorted(e.id for e in session.events) == ["A", "C"]

    @pytest.mark.asyncio
    async def test_last_fetch_recorded(self, session, clock):
        await session.fetch_events(START, END)

        assert session.state.last_fetch.fetched_at == clock.now
        assert session.state.last_fetch.window.time_min == "2026-01-21T00:00:00.000Z"


class TestErrors:
    """Tests for the error taxonomy."""

    @pytest.mark.asyncio
    async def test_invalid_window_is_silent_noop(self, session, fake_client):
        await session.fetch_events("not a date", END)

        assert fake_client.calls == []
        assert session.error is None

    @pytest.mark.asyncio
    async def test_transport_failure_sets_error(self, session, fake_client):
        fake_client.responses = [McpTransportError("Connection refused")]

        await session.fetch_events(START, END)

        assert session.error == "Connection refused"
        assert session.loading is False

    @pytest.mark.asyncio
    async def test_json_rpc_error_sets_error(self, session, fake_client):
        fake_client.responses = [JsonRpcError("OAuth2 not authenticated", code=-32001)]

        await session.fetch_events(START, END)

        assert session.error == "OAuth2 not authenticated"

    @pytest.mark.asyncio
    async def test_empty_error_message_gets_default(self, session, fake_client):
        fake_client.responses = [McpTransportError("")]

        await session.fetch_events(START, END)

        assert session.error == "Failed to fetch calendar events"

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_captured(self, session, fake_client):
        fake_client.responses = [RuntimeError("boom")]

        await session.fetch_events(START, END)

        assert session.error == "boom"
        assert session.state.fetch_in_flight is False

    @pytest.mark.asyncio
    async def test_failure_leaves_cache_untouched(
        self, session, fake_client, make_raw_event, text_content
    ):
        fake_client.responses = [
            text_content([make_raw_event("A", START + timedelta(hours=10))]),
            McpTransportError("timeout"),
        ]

        await session.fetch_events(START, END)
        session.invalidate_cache()
        await session.fetch_events(START, END)

        assert [e.id for e in session.events] == ["A"]
        assert session.error == "timeout"

    @pytest.mark.asyncio
    async def test_undecodable_payload_is_an_error(self, session, fake_client):
        fake_client.default_response = [{"type": "text", "text": "quota exceeded"}]

        await session.fetch_events(START, END)

        assert "Could not decode calendar events" in session.error
        assert session.state.last_fetch is None

    @pytest.mark.asyncio
    async def test_successful_fetch_clears_previous_error(self, session, fake_client):
        fake_client.responses = [McpTransportError("down")]
        await session.fetch_events(START, END)
        assert session.error == "down"

        await session.fetch_events(START, END)

        assert session.error is None


class TestConnection:
    """Tests for the connect-then-return bootstrap."""

    @pytest.mark.asyncio
    async def test_first_request_only_connects(self, settings, clock, disconnected_client):
        client = disconnected_client
        session = CalendarSession(client=client, settings=settings, clock=clock)

        await session.fetch_events(START, END)

        assert client.connect_calls == 1
        assert client.calls == []
        assert session.connected is True

        await session.fetch_events(START, END)

        assert len(client.list_events_calls) == 1

    @pytest.mark.asyncio
    async def test_connect_failure_sets_error(self, settings, clock, disconnected_client):
        client = disconnected_client
        client.connect_error = McpTransportError("Connection refused")
        session = CalendarSession(client=client, settings=settings, clock=clock)

        await session.fetch_events(START, END)

        assert session.error == "Failed to connect to calendar: Connection refused"
        assert session.connected is False
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_unexpected_connect_failure_is_captured(
        self, settings, clock, disconnected_client
    ):
        disconnected_client.connect_error = TypeError("'NoneType' object is not iterable")
        session = CalendarSession(client=disconnected_client, settings=settings, clock=clock)

        await session.fetch_events(START, END)

        assert session.error == "Failed to connect to calendar: 'NoneType' object is not iterable"
        assert session.state.fetch_in_flight is False

    @pytest.mark.asyncio
    async def test_concurrent_requests_share_one_handshake(
        self, settings, clock, disconnected_client
    ):
        client = disconnected_client
        client.release = asyncio.Event()
        session = CalendarSession(client=client, settings=settings, clock=clock)

        first = asyncio.create_task(session.fetch_events(START, END))
        await asyncio.sleep(0)
        await session.fetch_events(START, END)

        assert client.connect_calls == 1

        client.release.set()
        await first

        assert client.connect_calls == 1
        assert session.connected is True
        assert session.state.fetch_in_flight is False
