"""CLI entry point for mcp-relay.

This module provides the command-line interface for starting mcp-relay. It
can be invoked as `mcp-relay` (via the script entry point) or
`python -m mcp_relay`.
"""

import argparse
import logging
import sys

import uvicorn

from mcp_relay import __version__, create_app
from mcp_relay.config import McpRelaySettings


def main() -> None:
    """Main entry point for the mcp-relay CLI.

    Parses command-line arguments and starts the uvicorn server with the
    FastAPI application. CLI flags override environment variables.
    """
    parser = argparse.ArgumentParser(
        prog="mcp-relay",
        description="Tool-server orchestration for local Ollama models",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"mcp-relay {__version__}",
    )

    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind the server to (default: 127.0.0.1, can be set via MCP_RELAY_HOST)",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind the server to (default: 8000, can be set via MCP_RELAY_PORT)",
    )

    parser.add_argument(
        "--ollama-host",
        type=str,
        default=None,
        help="Ollama server URL (default: http://localhost:11434, can be set via MCP_RELAY_OLLAMA_HOST)",
    )

    parser.add_argument(
        "--model",
        type=str,
        default=None,
        help="Default model for chat requests (can be set via MCP_RELAY_MODEL)",
    )

    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Base directory for config and logs (default: ., can be set via MCP_RELAY_DATA_DIR)",
    )

    parser.add_argument(
        "--servers-config",
        type=str,
        default=None,
        help="Tool server config file relative to the data dir (default: mcp_servers.json)",
    )

    parser.add_argument(
        "--server-log-level",
        type=str,
        default=None,
        choices=["quiet", "info", "debug"],
        help="Verbosity requested from tool servers (default: quiet)",
    )

    parser.add_argument(
        "--interactive-server-logs",
        action="store_true",
        help="Relay tool server stderr through the log instead of log files",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO, can be set via MCP_RELAY_LOG_LEVEL)",
    )

    args = parser.parse_args()

    settings_kwargs = {}
    if args.host is not None:
        settings_kwargs["host"] = args.host
    if args.port is not None:
        settings_kwargs["port"] = args.port
    if args.ollama_host is not None:
        settings_kwargs["ollama_host"] = args.ollama_host
    if args.model is not None:
        settings_kwargs["model"] = args.model
    if args.data_dir is not None:
        settings_kwargs["data_dir"] = args.data_dir
    if args.servers_config is not None:
        settings_kwargs["servers_config"] = args.servers_config
    if args.server_log_level is not None:
        settings_kwargs["server_log_level"] = args.server_log_level
    if args.interactive_server_logs:
        settings_kwargs["interactive_server_logs"] = True
    if args.log_level is not None:
        settings_kwargs["log_level"] = args.log_level

    settings = McpRelaySettings(**settings_kwargs)

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = create_app(settings=settings)

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    sys.exit(main())
