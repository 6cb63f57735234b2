"""Tool-server configuration and process supervision.

This package loads tool-server definitions from the JSON config file and
manages the lifecycle of the tool-server subprocesses.
"""

from mcp_relay.servers.config_store import ServerConfigStore
from mcp_relay.servers.supervisor import ToolServerSupervisor, build_server_env
from mcp_relay.servers.types import ServerConfig, ServerHandle, TransportKind

__all__ = [
    "ServerConfig",
    "ServerConfigStore",
    "ServerHandle",
    "ToolServerSupervisor",
    "TransportKind",
    "build_server_env",
]
