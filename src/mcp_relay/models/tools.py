"""Pydantic models for the tool endpoints."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ToolInfo(BaseModel):
    """A tool advertised by a server."""

    name: str = Field(description="Tool name as advertised by the server")
    qualified_name: str = Field(description="Server-qualified name: server.tool")
    description: str = Field(default="", description="Tool description")
    input_schema: dict[str, Any] = Field(
        default_factory=dict, description="JSON schema of the tool arguments"
    )


class ServerTools(BaseModel):
    """Tools of one server."""

    server_id: str
    tools: list[ToolInfo] = Field(default_factory=list)


class ToolListResponse(BaseModel):
    """Response body for GET /api/v1/tools."""

    servers: list[ServerTools] = Field(default_factory=list)
    ambiguous: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Unqualified tool names provided by more than one server",
    )


class ToolCallBody(BaseModel):
    """Request body for POST /api/v1/tools/call."""

    tool: str = Field(min_length=1, description="Unqualified or server-qualified tool name")
    arguments: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {"tool": "filesystem.list_directory", "arguments": {"path": "/tmp"}},
            ]
        }
    )


class ToolOutcome(BaseModel):
    """Outcome of one tool call."""

    tool_name: str
    server_id: str | None = None
    status: Literal["success", "error"]
    text: str = Field(description="Rendered result, or the failure message")
    content: list[dict[str, Any]] = Field(
        default_factory=list, description="Raw content items of a successful call"
    )
