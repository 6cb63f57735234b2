"""Pydantic models for the tool server endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field


class ServerStatus(BaseModel):
    """A configured tool server and its runtime state."""

    id: str = Field(description="Server identifier from the config file")
    name: str = Field(description="Human-readable server name")
    command: str = Field(description="Executable used to launch the server")
    args: list[str] = Field(default_factory=list, description="Command arguments")
    transport: str = Field(description="stdio, detached or container")
    capabilities: list[str] = Field(
        default_factory=list, description="Capability tags declared in the config"
    )
    running: bool = Field(description="Whether the server process is alive")
    connected: bool = Field(
        default=False, description="Whether a protocol client is attached"
    )
    pid: int | None = Field(default=None, description="Process id when running")
    container_name: str | None = Field(
        default=None, description="Container name for container servers"
    )
    started_at: datetime | None = Field(
        default=None, description="UTC start time when running"
    )
    tool_count: int = Field(default=0, description="Number of discovered tools")


class ServerListResponse(BaseModel):
    """Response body for GET /api/v1/servers."""

    servers: list[ServerStatus] = Field(default_factory=list)
