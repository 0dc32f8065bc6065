"""Decoding of `list_events` tool results.

The proxy wraps provider data as MCP text content, but some deployments
return the event array directly. Decoding tries the shapes in a fixed order:

1. A content item with `"type": "text"` whose text is a JSON array of events
2. A direct array whose first item is event-shaped (a mapping with an `id`)
3. An empty array, meaning no events

Anything else decodes to `DecodeFailure` rather than an empty result, so a
broken proxy is reported instead of silently clearing the dashboard.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from schedule_dashboard.mcp.client import McpPayloadError


class PayloadShape(str, Enum):
    """How the events were found in the tool result."""

    TEXT = "text"
    ARRAY = "array"


@dataclass(frozen=True)
class DecodedEvents:
    """Raw event mappings extracted from a tool result."""

    shape: PayloadShape
    items: list[Any] = field(default_factory=list)


@dataclass(frozen=True)
class DecodeFailure:
    """A tool result that matched none of the known shapes."""

    reason: str

    def to_error(self) -> McpPayloadError:
        return McpPayloadError(f"Could not decode calendar events: {self.reason}")


EventListDecode = Union[DecodedEvents, DecodeFailure]


def _is_event_shaped(item: Any) -> bool:
    return isinstance(item, dict) and "id" in item


def _find_text_item(content: list[Any]) -> dict[str, Any] | None:
    for item in content:
        if isinstance(item, dict) and item.get("type") == "text" and item.get("text"):
            return item
    return None


def decode_event_list(content: Any) -> EventListDecode:
    """Decode a `list_events` result into raw event items."""
    if not isinstance(content, list):
        return DecodeFailure(f"expected a list, got {type(content).__name__}")

    text_item = _find_text_item(content)
    if text_item is not None:
        text = text_item["text"]
        if not isinstance(text, str):
            return DecodeFailure("text content is not a string")
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as e:
            return DecodeFailure(f"text content is not valid JSON ({e.msg})")
        if not isinstance(parsed, list):
            return DecodeFailure(
                f"text content holds {type(parsed).__name__}, not an event list"
            )
        return DecodedEvents(shape=PayloadShape.TEXT, items=parsed)

    if not content:
        return DecodedEvents(shape=PayloadShape.ARRAY)

    if _is_event_shaped(content[0]):
        return DecodedEvents(shape=PayloadShape.ARRAY, items=list(content))

    return DecodeFailure("result is neither text-wrapped JSON nor an event array")


def decode_event_object(content: Any) -> dict[str, Any] | DecodeFailure:
    """Decode the single event returned by `create_event` or `update_event`."""
    if isinstance(content, dict):
        return content
    if not isinstance(content, list):
        return DecodeFailure(f"expected a list, got {type(content).__name__}")

    text_item = _find_text_item(content)
    if text_item is None:
        if content and _is_event_shaped(content[0]):
            return content[0]
        return DecodeFailure("result holds no event")

    try:
        parsed = json.loads(text_item["text"])
    except (TypeError, json.JSONDecodeError):
        return DecodeFailure("text content is not valid JSON")
    if not _is_event_shaped(parsed):
        return DecodeFailure("text content is not an event")
    return parsed
