"""FastAPI routers for API endpoints.

Each router module defines the endpoints of one resource: health, tool
servers, tools and chat.
"""

from mcp_relay.routers import chat, health, servers, tools

__all__ = ["chat", "health", "servers", "tools"]
