"""Configuration module for mcp-relay using pydantic-settings."""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class McpRelaySettings(BaseSettings):
    """Main configuration settings for mcp-relay.

    All settings can be overridden via environment variables with the
    MCP_RELAY_ prefix. For example, MCP_RELAY_OLLAMA_HOST will override the
    ollama_host setting.
    """

    # Server
    host: str = "127.0.0.1"
    port: int = 8000

    # Ollama
    ollama_host: str = "http://localhost:11434"
    model: str = "llama3.2:latest"
    native_tool_calls: bool = True

    # Data directories (relative to data_dir)
    data_dir: str = "."
    servers_config: str = "mcp_servers.json"
    logs_dir: str = "logs"

    # Tool servers
    server_log_level: Literal["quiet", "info", "debug"] = "quiet"
    interactive_server_logs: bool = False
    startup_timeout: float = Field(default=5.0, gt=0)
    stop_grace_period: float = Field(default=2.5, gt=0)

    # CORS
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="MCP_RELAY_")

    # --- Resolved paths (computed from data_dir + relative paths) ---

    @property
    def resolved_servers_config(self) -> Path:
        """Get the full path to the tool server config file."""
        return Path(self.data_dir) / self.servers_config

    @property
    def resolved_logs_dir(self) -> Path:
        """Get the full path to the tool server log directory."""
        return Path(self.data_dir) / self.logs_dir
