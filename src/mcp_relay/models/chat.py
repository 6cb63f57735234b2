"""Pydantic models for chat API requests, responses and SSE events."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from mcp_relay.models.tools import ToolOutcome


class ChatMessage(BaseModel):
    """A conversation message in Ollama format."""

    role: Literal["system", "user", "assistant", "tool"]
    content: str = ""
    tool_calls: list[dict[str, Any]] | None = None
    tool_call_id: str | None = None

    def to_ollama(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ChatRequest(BaseModel):
    """Request body for POST /api/v1/chat and POST /api/v1/chat/stream."""

    messages: list[ChatMessage] = Field(
        min_length=1, description="Conversation so far, oldest first"
    )
    model: str | None = Field(
        default=None, description="Model to use; defaults to the configured model"
    )
    options: dict[str, Any] | None = Field(
        default=None, description="Model parameters (temperature, etc.)"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "messages": [{"role": "user", "content": "list files in /tmp"}],
                    "model": "llama3.2:latest",
                }
            ]
        }
    )


class ChatResponse(BaseModel):
    """Response body for the non-streaming chat endpoint."""

    content: str = Field(description="Final assistant content")
    model: str = Field(description="Model that generated the reply")
    messages: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Input messages plus everything the round trip appended",
    )
    tool_outcomes: list[ToolOutcome] = Field(default_factory=list)


class StateEvent(BaseModel):
    """SSE event: the round trip changed state."""

    state: str


class ToolCallEvent(BaseModel):
    """SSE event: a tool call is about to be executed."""

    tool_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    call_id: str | None = None


class ToolResultEvent(BaseModel):
    """SSE event: a tool call finished."""

    tool_name: str
    server_id: str | None = None
    status: Literal["success", "error"]
    text: str


class ContentEvent(BaseModel):
    """SSE event: the final assistant content."""

    content: str
    model: str


class ErrorEvent(BaseModel):
    """SSE event: the round trip failed."""

    code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class DoneEvent(BaseModel):
    """SSE event: the stream is complete."""

    tool_calls: int = 0
