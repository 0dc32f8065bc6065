"""Calendar tool proxy client."""

from schedule_dashboard.mcp.client import (
    JsonRpcError,
    McpAuthenticationError,
    McpCalendarClient,
    McpError,
    McpHttpError,
    McpPayloadError,
    McpTool,
    McpToolError,
    McpTransportError,
)
from schedule_dashboard.mcp.decode import (
    DecodedEvents,
    DecodeFailure,
    PayloadShape,
    decode_event_list,
    decode_event_object,
)

__all__ = [
    "JsonRpcError",
    "McpAuthenticationError",
    "McpCalendarClient",
    "McpError",
    "McpHttpError",
    "McpPayloadError",
    "McpTool",
    "McpToolError",
    "McpTransportError",
    "DecodedEvents",
    "DecodeFailure",
    "PayloadShape",
    "decode_event_list",
    "decode_event_object",
]
