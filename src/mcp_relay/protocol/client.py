"""Per-server tool protocol client.

One ToolProtocolClient exists per running tool server. It speaks the tool
protocol subset (initialize, tools/list, tools/call, shutdown) over the
server's stdio channel and caches the server's tool descriptors.

Discovery and call failures never raise out of this layer: list_tools()
degrades to an empty list and call_tool() returns a ToolCallFailure.
"""

import asyncio
import logging
from typing import Any

from mcp_relay.exceptions import JsonRpcError, McpRelayError, TransportError
from mcp_relay.protocol.jsonrpc import StdioChannel
from mcp_relay.protocol.types import (
    ToolCallFailure,
    ToolCallOutcome,
    ToolCallSuccess,
    ToolDescriptor,
    render_content,
)
from mcp_relay.servers.types import ServerHandle

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
SHUTDOWN_TIMEOUT = 1.0
CLIENT_INFO = {"name": "mcp-relay", "version": "0.1.0"}


class ToolProtocolClient:
    """Client for the tools exposed by a single tool server.

    Attributes:
        server_id: Id of the server this client talks to
        channel: The stdio channel, or None for servers without one
    """

    def __init__(self, server_id: str, channel: StdioChannel | None) -> None:
        """Initialize the client.

        Args:
            server_id: Id of the server this client talks to
            channel: Stdio channel to the server; None for detached servers
        """
        self.server_id = server_id
        self.channel = channel
        self._tools: list[ToolDescriptor] | None = None
        self._initialized = False

    @classmethod
    def for_handle(cls, handle: ServerHandle) -> "ToolProtocolClient":
        """Build a client for a supervised server handle."""
        if not handle.transport.has_channel:
            return cls(handle.id, None)
        return cls(handle.id, StdioChannel(handle.id, handle.process))

    @property
    def is_connected(self) -> bool:
        """Whether the server's channel is still open."""
        return self.channel is not None and self.channel.is_open

    async def connect(self) -> bool:
        """Perform the initialize handshake and prime the tool cache.

        Servers that reject initialize are still used; the result only says
        whether the handshake succeeded.

        Returns:
            bool: True if the server accepted initialize
        """
        if self.channel is None:
            logger.warning(
                f"Tool server {self.server_id} has no protocol channel; "
                "its tools are unavailable"
            )
            return False

        try:
            await self.channel.request(
                "initialize",
                {
                    "protocolVersion": PROTOCOL_VERSION,
                    "capabilities": {},
                    "clientInfo": CLIENT_INFO,
                },
            )
            await self.channel.notify("notifications/initialized")
            self._initialized = True
            logger.debug(f"Initialized protocol session with {self.server_id}")
        except McpRelayError as e:
            logger.warning(f"Tool server {self.server_id} rejected initialize: {e}")

        await self.list_tools(use_cache=False)
        return self._initialized

    async def list_tools(self, use_cache: bool = True) -> list[ToolDescriptor]:
        """List the tools the server provides.

        Args:
            use_cache: Return the cached descriptors when available

        Returns:
            list[ToolDescriptor]: The server's tools, empty on any failure
        """
        if use_cache and self._tools is not None:
            return list(self._tools)

        if self.channel is None:
            return []

        try:
            result = await self.channel.request("tools/list", {})
            tools = self._parse_tools(result)
        except McpRelayError as e:
            logger.warning(f"Failed to list tools from {self.server_id}: {e}")
            return []
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Malformed tools/list response from {self.server_id}: {e}")
            return []

        self._tools = tools
        logger.info(
            f"Discovered {len(tools)} tools on {self.server_id}: "
            f"{[tool.name for tool in tools]}"
        )
        return list(tools)

    def invalidate_cache(self) -> None:
        """Drop the cached tool descriptors."""
        self._tools = None

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> ToolCallOutcome:
        """Call a tool on the server.

        Args:
            name: Tool name as advertised by this server
            arguments: Tool arguments

        Returns:
            ToolCallOutcome: Success with the result content, or a failure
        """
        if self.channel is None or not self.channel.is_open:
            return ToolCallFailure(
                tool_name=name,
                reason=f"server {self.server_id} is not running",
                server_id=self.server_id,
                transport_error=True,
            )

        tools = await self.list_tools()
        if not any(tool.name == name for tool in tools):
            return ToolCallFailure(
                tool_name=name,
                reason=f"server {self.server_id} has no tool '{name}'",
                server_id=self.server_id,
            )

        logger.info(f"Calling {self.server_id}.{name} with {arguments}")
        try:
            result = await self.channel.request(
                "tools/call", {"name": name, "arguments": arguments}
            )
        except JsonRpcError as e:
            logger.warning(f"{self.server_id}.{name} returned an error: {e.message}")
            return ToolCallFailure(
                tool_name=name, reason=e.message, server_id=self.server_id
            )
        except TransportError as e:
            logger.error(f"Transport failure calling {self.server_id}.{name}: {e}")
            return ToolCallFailure(
                tool_name=name,
                reason=str(e),
                server_id=self.server_id,
                transport_error=True,
            )

        if not isinstance(result, dict):
            return ToolCallFailure(
                tool_name=name,
                reason=f"malformed tools/call result from {self.server_id}",
                server_id=self.server_id,
                transport_error=True,
            )

        content = result.get("content")
        content = content if isinstance(content, list) else []
        if result.get("isError"):
            return ToolCallFailure(
                tool_name=name,
                reason=render_content(content) or "tool reported an error",
                server_id=self.server_id,
            )

        return ToolCallSuccess(tool_name=name, server_id=self.server_id, result=content)

    async def shutdown(self) -> None:
        """Send the optional shutdown request, ignoring servers without it."""
        if self.channel is None or not self.channel.is_open:
            return
        try:
            await asyncio.wait_for(
                self.channel.request("shutdown", {}), timeout=SHUTDOWN_TIMEOUT
            )
        except asyncio.TimeoutError:
            logger.debug(f"Tool server {self.server_id} did not answer shutdown")
        except McpRelayError as e:
            logger.debug(f"Tool server {self.server_id} ignored shutdown: {e}")

    @staticmethod
    def _parse_tools(result: Any) -> list[ToolDescriptor]:
        if isinstance(result, dict):
            entries = result.get("tools", [])
        elif isinstance(result, list):
            entries = result
        else:
            raise ValueError(f"unexpected result type {type(result).__name__}")

        return [
            ToolDescriptor.from_protocol(entry)
            for entry in entries
            if isinstance(entry, dict) and entry.get("name")
        ]
