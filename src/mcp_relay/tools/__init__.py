"""Tool routing and tool-call extraction.

This package provides the ToolRegistry, which indexes the tools of all
connected servers, and the extractor that turns model output into
ToolCallRequest objects.
"""

from mcp_relay.tools.extract import (
    extract_tool_calls,
    format_tool_call,
    from_structured_calls,
)
from mcp_relay.tools.registry import ToolRegistry

__all__ = [
    "ToolRegistry",
    "extract_tool_calls",
    "format_tool_call",
    "from_structured_calls",
]
