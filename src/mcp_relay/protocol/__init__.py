"""Tool protocol layer.

JSON-RPC 2.0 over newline-delimited stdio, the per-server ToolProtocolClient,
and the tool descriptor and call outcome types.
"""

from mcp_relay.protocol.client import ToolProtocolClient
from mcp_relay.protocol.jsonrpc import StdioChannel
from mcp_relay.protocol.types import (
    ToolCallFailure,
    ToolCallOutcome,
    ToolCallRequest,
    ToolCallSuccess,
    ToolDescriptor,
)

__all__ = [
    "StdioChannel",
    "ToolCallFailure",
    "ToolCallOutcome",
    "ToolCallRequest",
    "ToolCallSuccess",
    "ToolDescriptor",
    "ToolProtocolClient",
]
