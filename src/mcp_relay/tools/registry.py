"""Aggregated tool index across all connected tool servers.

The registry maps every advertised tool name to the ordered list of servers
that provide it and routes calls to the owning server. Names can be
qualified with a server id (``server.tool`` or ``server__tool``) to bypass
the lookup; unqualified names resolve to the first owner in initialization
order.
"""

import asyncio
import json
import logging
from typing import Any, Iterable

from mcp_relay.protocol.client import ToolProtocolClient
from mcp_relay.protocol.types import (
    ToolCallFailure,
    ToolCallOutcome,
    ToolCallRequest,
    ToolDescriptor,
)
from mcp_relay.tools.extract import format_tool_call

logger = logging.getLogger(__name__)

QUALIFIED_SEPARATORS = ("__", ".")


class ToolRegistry:
    """Index of tools provided by the connected tool servers."""

    def __init__(self) -> None:
        self._clients: dict[str, ToolProtocolClient] = {}
        self._tools: dict[str, list[ToolDescriptor]] = {}
        self._owners: dict[str, list[str]] = {}

    @property
    def server_ids(self) -> list[str]:
        """Ids of the registered servers in initialization order."""
        return list(self._clients)

    def get_client(self, server_id: str) -> ToolProtocolClient | None:
        return self._clients.get(server_id)

    async def initialize(self, clients: Iterable[ToolProtocolClient]) -> None:
        """Rebuild the index from the given clients.

        Every client is queried concurrently. A client whose listing fails
        contributes no tools but stays registered, so qualified calls still
        reach it.

        Args:
            clients: Connected clients, in the order used for disambiguation
        """
        clients = list(clients)
        results = await asyncio.gather(
            *(client.list_tools() for client in clients), return_exceptions=True
        )

        self._clients = {}
        self._tools = {}
        self._owners = {}

        for client, result in zip(clients, results):
            self._clients[client.server_id] = client
            if isinstance(result, BaseException):
                logger.warning(
                    f"Could not list tools for {client.server_id}: {result}"
                )
                result = []
            self._tools[client.server_id] = result
            for tool in result:
                owners = self._owners.setdefault(tool.name, [])
                if client.server_id not in owners:
                    owners.append(client.server_id)

        for name, owners in self._owners.items():
            if len(owners) > 1:
                logger.warning(
                    f"Tool '{name}' is provided by several servers {owners}; "
                    f"unqualified calls go to {owners[0]}"
                )

        logger.info(
            f"Tool registry initialized: {len(self._owners)} tools "
            f"from {len(self._clients)} servers"
        )

    async def refresh(self) -> None:
        """Re-query every registered server, bypassing the tool caches."""
        clients = list(self._clients.values())
        for client in clients:
            client.invalidate_cache()
        await self.initialize(clients)

    def owners(self, tool_name: str) -> list[str]:
        """Servers advertising an unqualified tool name, in order."""
        return list(self._owners.get(tool_name, []))

    def resolve(self, tool_name: str) -> str | None:
        """Resolve a tool name to the id of the server that should run it.

        Args:
            tool_name: Unqualified or server-qualified tool name

        Returns:
            str | None: The server id, or None if no server provides the tool
        """
        server_ids, _ = self._route(tool_name)
        return server_ids[0] if server_ids else None

    async def call_tool(
        self, tool_name: str, arguments: dict[str, Any]
    ) -> ToolCallOutcome:
        """Route a call to the owning server.

        Owners of an unqualified name are tried in order. The next owner is
        only tried when the previous one failed at the transport level; an
        error reported by the tool itself is returned as is.

        Returns:
            ToolCallOutcome: Never raises
        """
        server_ids, name = self._route(tool_name)
        if not server_ids:
            return ToolCallFailure(
                tool_name=tool_name,
                reason=f"no connected server provides tool '{tool_name}'",
            )

        outcome: ToolCallOutcome | None = None
        for server_id in server_ids:
            client = self._clients[server_id]
            try:
                outcome = await client.call_tool(name, arguments)
            except Exception as e:
                logger.error(f"Unexpected error calling {server_id}.{name}: {e}")
                outcome = ToolCallFailure(
                    tool_name=name,
                    reason=str(e),
                    server_id=server_id,
                    transport_error=True,
                )

            if not isinstance(outcome, ToolCallFailure) or not outcome.transport_error:
                return outcome
            logger.warning(f"Call to {server_id}.{name} failed: {outcome.reason}")

        return outcome

    async def execute(self, request: ToolCallRequest) -> ToolCallOutcome:
        """Convenience wrapper around call_tool for a parsed request."""
        return await self.call_tool(request.tool_name, request.arguments)

    def get_all_tools(self) -> dict[str, list[ToolDescriptor]]:
        """Tool descriptors per server id."""
        return {server_id: list(tools) for server_id, tools in self._tools.items()}

    def has_tools(self) -> bool:
        return bool(self._owners)

    def to_ollama_tools(self) -> list[dict[str, Any]]:
        """Convert all tools to the Ollama function-tool format.

        Tools are named ``<server>__<tool>`` so structured calls route back
        to the exact server.
        """
        ollama_tools = []
        for server_id, tools in self._tools.items():
            for tool in tools:
                parameters = tool.input_schema or {"type": "object", "properties": {}}
                ollama_tools.append(
                    {
                        "type": "function",
                        "function": {
                            "name": f"{server_id}__{tool.name}",
                            "description": f"[{server_id}] {tool.description}".strip(),
                            "parameters": parameters,
                        },
                    }
                )
        return ollama_tools

    def describe_tools(self) -> str:
        """Render the available tools as a system prompt block.

        Returns an empty string when no tools are registered.
        """
        if not self.has_tools():
            return ""

        lines = [
            "You can use the following tools. To call one, write a line of the form:",
            "tools/call <server> <tool> <JSON arguments>",
            "",
        ]
        example: ToolCallRequest | None = None

        for server_id, tools in self._tools.items():
            if not tools:
                continue
            lines.append(f"Server {server_id}:")
            for tool in tools:
                if tool.description:
                    lines.append(f"- {tool.name}: {tool.description}")
                else:
                    lines.append(f"- {tool.name}")
                if tool.input_schema:
                    lines.append(f"  arguments: {json.dumps(tool.input_schema)}")
                if example is None:
                    example = ToolCallRequest(
                        tool_name=f"{server_id}.{tool.name}",
                        arguments=_example_arguments(tool.input_schema),
                    )
            lines.append("")

        if example is not None:
            lines.append(f"Example: {format_tool_call(example)}")
        return "\n".join(lines).strip()

    def _route(self, tool_name: str) -> tuple[list[str], str]:
        """Return the candidate servers and the tool name to send them."""
        for separator in QUALIFIED_SEPARATORS:
            server_id, found, tool = tool_name.partition(separator)
            if found and tool and server_id in self._clients:
                return [server_id], tool

        return self.owners(tool_name), tool_name


def _example_arguments(schema: dict[str, Any]) -> dict[str, Any]:
    properties = schema.get("properties") if isinstance(schema, dict) else None
    if not isinstance(properties, dict):
        return {}
    return {name: "..." for name in schema.get("required", [])[:2] if name in properties}
