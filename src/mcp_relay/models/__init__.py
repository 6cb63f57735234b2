"""Pydantic models for API request and response schemas.

This package contains all Pydantic models used for validating and
serializing API requests and responses across all endpoints.
"""

from mcp_relay.models.chat import ChatMessage, ChatRequest, ChatResponse
from mcp_relay.models.health import HealthResponse
from mcp_relay.models.servers import ServerListResponse, ServerStatus
from mcp_relay.models.tools import (
    ToolCallBody,
    ToolInfo,
    ToolListResponse,
    ToolOutcome,
)

__all__ = [
    "ChatMessage",
    "ChatRequest",
    "ChatResponse",
    "HealthResponse",
    "ServerListResponse",
    "ServerStatus",
    "ToolCallBody",
    "ToolInfo",
    "ToolListResponse",
    "ToolOutcome",
]
