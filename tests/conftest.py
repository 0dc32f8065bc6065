"""Pytest fixtures for schedule dashboard tests.

This module provides test fixtures that ensure:
1. No calls reach a real calendar proxy
2. Time is controlled by a fake clock
3. Isolated test environment with controlled configuration
"""

import asyncio
import json
import os
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

# Set test environment BEFORE importing application modules
os.environ.setdefault("MCP_SERVER_URL", "http://proxy.test/mcp")
os.environ.setdefault("TIMEZONE", "UTC")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from schedule_dashboard.config import Settings


# =============================================================================
# Test Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Reset settings cache before each test to ensure clean state."""
    from schedule_dashboard.config import get_settings
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    """Settings with the default throttle values and no .env file."""
    return Settings(
        _env_file=None,
        mcp_server_url="http://proxy.test/mcp",
        timezone="UTC",
        calendar_id="primary",
        max_results=250,
        min_fetch_interval_ms=2000,
        invalidation_bypass_ms=1000,
    )


# =============================================================================
# Clock
# =============================================================================


NOW = datetime(2026, 1, 21, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# Calendar proxy
# =============================================================================


class FakeToolClient:
    """Stand-in for McpCalendarClient that records tool calls.

    `responses` is a queue of tool results (or exceptions to raise); once it
    is empty `default_response` is returned. Setting `release` to an
    asyncio.Event makes every call (and the handshake) wait for it, which
    keeps a fetch in flight for as long as a test needs.
    """

    def __init__(self, connected: bool = True):
        self.connected = connected
        self.connect_calls = 0
        self.connect_error: Exception | None = None
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.responses: list[Any] = []
        self.default_response: Any = [{"type": "text", "text": "[]"}]
        self.release: asyncio.Event | None = None
        self.closed = False

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.release is not None:
            await self.release.wait()
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> Any:
        self.calls.append((name, arguments or {}))
        if self.release is not None:
            await self.release.wait()
        response = self.responses.pop(0) if self.responses else self.default_response
        if isinstance(response, Exception):
            raise response
        return response

    async def aclose(self) -> None:
        self.closed = True
        self.connected = False

    @property
    def list_events_calls(self) -> list[dict[str, Any]]:
        return [args for name, args in self.calls if name == "list_events"]


@pytest.fixture
def fake_client() -> FakeToolClient:
    return FakeToolClient()


@pytest.fixture
def disconnected_client() -> FakeToolClient:
    return FakeToolClient(connected=False)


# =============================================================================
# Provider payloads
# =============================================================================


@pytest.fixture
def make_raw_event():
    """Factory for provider event mappings with timed boundaries."""

    def _make(
        event_id: str,
        start: datetime,
        end: datetime | None = None,
        summary: str | None = "Team sync",
        **extra: Any,
    ) -> dict[str, Any]:
        event: dict[str, Any] = {
            "id": event_id,
            "start": {"dateTime": start.isoformat()},
            "end": {"dateTime": (end or start + timedelta(hours=1)).isoformat()},
        }
        if summary is not None:
            event["summary"] = summary
        event.update(extra)
        return event

    return _make


@pytest.fixture
def text_content():
    """Wrap raw events the way the proxy does: JSON inside a text item."""

    def _wrap(events: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return [{"type": "text", "text": json.dumps(events)}]

    return _wrap
