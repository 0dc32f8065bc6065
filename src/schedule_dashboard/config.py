"""Application configuration.

Configuration is loaded from environment variables using pydantic-settings.
Values can also be placed in a local `.env` file.

## Optional Environment Variables

- MCP_SERVER_URL: JSON-RPC endpoint of the calendar proxy
  (default: http://localhost:3000/mcp)
- MCP_REQUEST_TIMEOUT_SECONDS: Per-request HTTP timeout (default: 30)
- CALENDAR_ID: Calendar to read events from (default: primary)
- MIN_FETCH_INTERVAL_MS: Throttle interval for identical windows (default: 2000)
- INVALIDATION_BYPASS_MS: How long an invalidation bypasses the throttle
  (default: 1000)
- TIMEZONE: Display timezone, also used for all-day dates (default: UTC)
- LOG_LEVEL: Logging level for the CLI (default: INFO)
- DEBUG: Log at DEBUG level regardless of LOG_LEVEL (default: false)

## Example .env file

```
MCP_SERVER_URL=http://localhost:3000/mcp
CALENDAR_ID=primary
TIMEZONE=America/New_York
```
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Schedule Dashboard"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Calendar proxy
    mcp_server_url: str = Field(
        default="http://localhost:3000/mcp",
        description="JSON-RPC endpoint of the calendar tool proxy",
    )
    mcp_request_timeout_seconds: float = Field(default=30.0, gt=0, le=300)
    mcp_client_name: str = "schedule-dashboard"

    # Event fetching
    calendar_id: str = "primary"
    max_results: int = Field(default=250, ge=1, le=2500)
    min_fetch_interval_ms: int = Field(
        default=2000,
        ge=0,
        description="Identical windows fetched within this interval are served from cache",
    )
    invalidation_bypass_ms: int = Field(
        default=1000,
        ge=0,
        description="Window after invalidate_cache() during which the throttle is skipped",
    )
    dedupe_events_by_id: bool = False

    # Display
    timezone: str = "UTC"

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Ensure the timezone is a known IANA name."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v

    @property
    def tzinfo(self) -> ZoneInfo:
        """Display timezone as a tzinfo object."""
        return ZoneInfo(self.timezone)

    @property
    def min_fetch_interval_seconds(self) -> float:
        return self.min_fetch_interval_ms / 1000

    @property
    def invalidation_bypass_seconds(self) -> float:
        return self.invalidation_bypass_ms / 1000


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Settings are loaded once and cached. To reload, clear the cache:
    ```python
    get_settings.cache_clear()
    ```
    """
    return Settings()


def get_settings_uncached() -> Settings:
    """Get fresh settings without caching.

    Useful for testing when environment variables change.
    """
    return Settings()
