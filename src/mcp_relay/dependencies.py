"""Dependency injection providers for FastAPI endpoints.

This module provides FastAPI dependency functions that read the objects the
lifespan stored in app.state.
"""

from functools import lru_cache

from fastapi import HTTPException, Request

from mcp_relay.config import McpRelaySettings
from mcp_relay.context import ToolContext
from mcp_relay.ollama import OllamaClient


@lru_cache
def get_settings() -> McpRelaySettings:
    """Get the application settings instance.

    Cached so the same settings instance is reused across requests. Settings
    are loaded from environment variables with the MCP_RELAY_ prefix.

    Returns:
        McpRelaySettings: The application configuration settings.
    """
    return McpRelaySettings()


def get_app_settings(request: Request) -> McpRelaySettings:
    """Get the settings the app was created with.

    Routers use this instead of get_settings() so tests can inject their own
    isolated settings.
    """
    return request.app.state.settings


def get_ollama_client(request: Request) -> OllamaClient:
    """Get the Ollama client from app state.

    Raises:
        HTTPException: If the Ollama client is not initialized (503 Service Unavailable).
    """
    if not hasattr(request.app.state, "ollama_client"):
        raise HTTPException(
            status_code=503,
            detail="Ollama client not initialized",
        )
    return request.app.state.ollama_client


def get_tool_context(request: Request) -> ToolContext:
    """Get the tool context from app state.

    Raises:
        HTTPException: If the tool context is not initialized (503 Service Unavailable).
    """
    if not hasattr(request.app.state, "tool_context"):
        raise HTTPException(
            status_code=503,
            detail="Tool context not initialized",
        )
    return request.app.state.tool_context
