"""Data types for tool discovery and tool calls.

ToolCallOutcome is a tagged union of ToolCallSuccess and ToolCallFailure.
Outcomes only live for the duration of one round trip.
"""

from dataclasses import dataclass, field
from typing import Any, Literal


@dataclass
class ToolDescriptor:
    """A named, schema-described tool advertised by a tool server."""

    name: str
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def from_protocol(data: dict[str, Any]) -> "ToolDescriptor":
        """Create a ToolDescriptor from a tools/list entry.

        Servers use either "inputSchema" (MCP) or "parameters" for the schema.
        """
        schema = data.get("inputSchema")
        if schema is None:
            schema = data.get("parameters")
        return ToolDescriptor(
            name=str(data["name"]),
            description=str(data.get("description") or ""),
            input_schema=schema if isinstance(schema, dict) else {},
        )


@dataclass
class ToolCallRequest:
    """A tool invocation parsed from model output, not yet routed to a server."""

    tool_name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    call_id: str | None = None


@dataclass
class ToolCallSuccess:
    """A tool call that returned content."""

    tool_name: str
    server_id: str
    result: list[dict[str, Any]] = field(default_factory=list)
    status: Literal["success"] = "success"

    @property
    def text(self) -> str:
        return render_content(self.result)


@dataclass
class ToolCallFailure:
    """A tool call that failed.

    transport_error marks failures at the transport/exception level (server
    not running, pipe closed, malformed response) as opposed to an error the
    tool itself reported.
    """

    tool_name: str
    reason: str
    server_id: str | None = None
    transport_error: bool = False
    status: Literal["error"] = "error"

    @property
    def text(self) -> str:
        return f"tool call failed: {self.reason}"


ToolCallOutcome = ToolCallSuccess | ToolCallFailure


def render_content(content: list[dict[str, Any]]) -> str:
    """Render tool result content items as plain text.

    Text items contribute their text. Resource items contribute their embedded
    text, or a "[Resource: uri (mimeType)]" placeholder when they have none.
    """
    parts: list[str] = []
    for item in content:
        if not isinstance(item, dict):
            continue
        item_type = item.get("type")
        if item_type == "text" and item.get("text"):
            parts.append(str(item["text"]))
        elif item_type == "resource" and isinstance(item.get("resource"), dict):
            resource = item["resource"]
            if resource.get("text"):
                parts.append(str(resource["text"]))
            else:
                parts.append(
                    f"[Resource: {resource.get('uri', '')} "
                    f"({resource.get('mimeType', 'unknown')})]"
                )
    return "\n".join(parts)
