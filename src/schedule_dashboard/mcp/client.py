"""JSON-RPC client for the calendar tool proxy.

The dashboard does not talk to the calendar provider directly. A thin proxy
exposes the provider as named "tools" over JSON-RPC 2.0 on a single HTTP
endpoint, and this module is the client side of that contract.

## Wire Contract

Every request is an HTTP POST of one JSON-RPC message to the proxy URL:

```json
{"jsonrpc": "2.0", "id": 1, "method": "tools/call",
 "params": {"name": "list_events", "arguments": {"calendarId": "primary"}}}
```

Supported methods:
- `initialize`: handshake, returns `serverInfo` and `capabilities`
- `notifications/initialized`: acknowledgement (no `id`)
- `tools/list`: available tools with their input schemas
- `tools/call`: invoke a tool, returns `{"content": [...]}`

## Tools Used by the Dashboard

| Tool | Arguments | Notes |
|------|-----------|-------|
| list_events | calendarId, timeMin, timeMax, maxResults | ISO-8601 bounds |
| create_event | calendarId, summary, start, end, location, description | |
| update_event | calendarId, eventId, plus fields to change | Partial update |

## Failure Modes

- Network errors and timeouts: retried, then `McpTransportError`
- HTTP status >= 400: `McpHttpError` (`McpAuthenticationError` for 401/403)
- JSON-RPC `error` object: `JsonRpcError`
- Tool result flagged `isError`: `McpToolError`
- Body that is not a JSON-RPC response: `McpPayloadError`
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from schedule_dashboard.config import Settings

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"


class McpError(Exception):
    """Base exception for calendar proxy errors."""

    def __init__(self, message: str, server_url: str | None = None):
        super().__init__(message)
        self.server_url = server_url


class McpTransportError(McpError):
    """Raised when the proxy cannot be reached or does not answer in time."""

    pass


class McpHttpError(McpError):
    """Raised when the proxy answers with an HTTP error status."""

    def __init__(
        self,
        message: str,
        server_url: str | None = None,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message, server_url=server_url)
        self.status_code = status_code
        self.response_body = response_body


class McpAuthenticationError(McpHttpError):
    """Raised when the proxy rejects our credentials."""

    pass


class JsonRpcError(McpError):
    """Raised when the proxy returns a JSON-RPC error object."""

    def __init__(
        self,
        message: str,
        code: int | None = None,
        data: Any = None,
        server_url: str | None = None,
    ):
        super().__init__(message, server_url=server_url)
        self.code = code
        self.data = data


class McpToolError(McpError):
    """Raised when a tool call completes but reports failure."""

    def __init__(self, tool: str, message: str, server_url: str | None = None):
        super().__init__(message, server_url=server_url)
        self.tool = tool


class McpPayloadError(McpError):
    """Raised when a response cannot be decoded."""

    pass


@dataclass
class McpTool:
    """A tool advertised by the proxy."""

    name: str
    description: str | None = None
    input_schema: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> McpTool:
        """Create from a `tools/list` entry."""
        return cls(
            name=data["name"],
            description=data.get("description"),
            input_schema=data.get("inputSchema") or {},
        )


def _content_text(content: Any) -> str:
    """Join the text items of a tool result's content list."""
    if not isinstance(content, list):
        return ""
    texts = [
        item.get("text", "")
        for item in content
        if isinstance(item, dict) and item.get("type") == "text"
    ]
    return "\n".join(t for t in texts if t)


class McpCalendarClient:
    """Client for the calendar tool proxy.

    Example:
        ```python
        async with McpCalendarClient("http://localhost:3000/mcp") as client:
            await client.connect()
            content = await client.call_tool(
                "list_events",
                {"calendarId": "primary", "timeMin": "...", "timeMax": "..."},
            )
        ```
    """

    def __init__(
        self,
        server_url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
        client_name: str = "schedule-dashboard",
        client_version: str = "0.1.0",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            server_url: JSON-RPC endpoint of the proxy
            headers: Extra headers sent with every request
            timeout: Request timeout in seconds
            client_name: Name reported in the handshake
            client_version: Version reported in the handshake
            transport: Optional httpx transport (used by tests)
        """
        self.server_url = server_url
        self.headers = headers or {}
        self.timeout = timeout
        self.client_name = client_name
        self.client_version = client_version
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._request_id = 0
        self._connected = False

        self.server_info: dict[str, Any] = {}
        self.tools: list[McpTool] = []

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> McpCalendarClient:
        return cls(
            server_url=settings.mcp_server_url,
            timeout=settings.mcp_request_timeout_seconds,
            client_name=settings.mcp_client_name,
            client_version=settings.app_version,
            transport=transport,
        )

    async def __aenter__(self) -> McpCalendarClient:
        """Enter async context manager."""
        self._get_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager."""
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client. A later call reconnects from scratch."""
        if self._client:
            await self._client.aclose()
            self._client = None
        self._connected = False

    @property
    def connected(self) -> bool:
        """Whether the initialize handshake has completed."""
        return self._connected

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def _get_default_headers(self) -> dict[str, str]:
        """Get default headers for requests."""
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
        }
        headers.update(self.headers)
        return headers

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
        reraise=True,
    )
    async def _post(self, message: dict[str, Any]) -> httpx.Response:
        """POST one JSON-RPC message with retry logic."""
        client = self._get_client()
        return await client.post(
            self.server_url,
            json=message,
            headers=self._get_default_headers(),
        )

    async def _send(self, message: dict[str, Any]) -> httpx.Response:
        """Send a message and map HTTP-level failures to McpError.

        Raises:
            McpTransportError: If the proxy cannot be reached
            McpAuthenticationError: On 401/403
            McpHttpError: On any other status >= 400
        """
        try:
            response = await self._post(message)
        except httpx.HTTPError as e:
            raise McpTransportError(
                f"Request to {self.server_url} failed: {e}",
                server_url=self.server_url,
            ) from e

        if response.status_code in (401, 403):
            raise McpAuthenticationError(
                f"Calendar proxy rejected credentials: {response.status_code}",
                server_url=self.server_url,
                status_code=response.status_code,
                response_body=response.text,
            )

        if response.status_code >= 400:
            raise McpHttpError(
                f"Calendar proxy request failed: {response.status_code}",
                server_url=self.server_url,
                status_code=response.status_code,
                response_body=response.text,
            )

        return response

    async def _request(self, method: str, params: dict[str, Any] | None = None) -> Any:
        """Send a JSON-RPC request and return its `result`.

        Raises:
            JsonRpcError: If the response carries an error object
            McpPayloadError: If the body is not a JSON-RPC response
        """
        self._request_id += 1
        message: dict[str, Any] = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
        }
        if params is not None:
            message["params"] = params

        logger.debug(f"JSON-RPC request {self._request_id}: {method}")
        response = await self._send(message)

        try:
            body = response.json()
        except ValueError as e:
            raise McpPayloadError(
                f"Response to {method} is not valid JSON",
                server_url=self.server_url,
            ) from e

        if not isinstance(body, dict):
            raise McpPayloadError(
                f"Response to {method} is not a JSON-RPC object",
                server_url=self.server_url,
            )

        error = body.get("error")
        if error:
            if not isinstance(error, dict):
                error = {"message": str(error)}
            raise JsonRpcError(
                error.get("message") or "Unknown JSON-RPC error",
                code=error.get("code"),
                data=error.get("data"),
                server_url=self.server_url,
            )

        return body.get("result")

    async def _notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        """Send a JSON-RPC notification. The response body is ignored."""
        message: dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            message["params"] = params
        await self._send(message)

    async def connect(self) -> None:
        """Perform the initialize handshake and load the tool list.

        Raises:
            McpError: If the handshake fails
        """
        result = await self._request(
            "initialize",
            {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": {
                    "name": self.client_name,
                    "version": self.client_version,
                },
            },
        )
        if isinstance(result, dict):
            self.server_info = result.get("serverInfo") or {}

        await self._notify("notifications/initialized")
        self._connected = True

        # A proxy without tools/list is still usable
        try:
            self.tools = await self.list_tools()
        except McpError as e:
            logger.warning(f"Could not list tools from {self.server_url}: {e}")

        logger.info(
            f"Connected to {self.server_info.get('name', self.server_url)} "
            f"({len(self.tools)} tools)"
        )

    async def list_tools(self) -> list[McpTool]:
        """List tools advertised by the proxy.

        Entries without a string `name` are skipped.

        Raises:
            McpPayloadError: If `tools` is present but not a list
        """
        result = await self._request("tools/list")
        items = (result.get("tools") if isinstance(result, dict) else None) or []
        if not isinstance(items, list):
            raise McpPayloadError(
                f"tools/list returned {type(items).__name__}, not a list",
                server_url=self.server_url,
            )

        tools = []
        for item in items:
            if not isinstance(item, dict) or not isinstance(item.get("name"), str):
                logger.debug(f"Skipping malformed tool entry: {item!r}")
                continue
            tools.append(McpTool.from_api(item))
        return tools

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> Any:
        """Call a tool and return its result content.

        Args:
            name: Tool name
            arguments: Tool arguments

        Returns:
            The `content` list of the tool result, or the raw result when the
            proxy does not wrap it

        Raises:
            McpToolError: If the tool reports failure
        """
        result = await self._request(
            "tools/call",
            {"name": name, "arguments": arguments or {}},
        )

        if isinstance(result, dict):
            content = result.get("content")
            if result.get("isError"):
                raise McpToolError(
                    name,
                    _content_text(content) or f"Tool {name} failed",
                    server_url=self.server_url,
                )
            if content is not None:
                return content
        return result
