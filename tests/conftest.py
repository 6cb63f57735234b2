"""Pytest configuration and shared fixtures for mcp-relay tests.

This module provides common fixtures used across all test modules,
including test app creation, async client setup and the fixture tool server.
"""

import json
import sys
from pathlib import Path
from types import MappingProxyType

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from mcp_relay import create_app
from mcp_relay.config import McpRelaySettings
from mcp_relay.servers.types import ServerConfig, TransportKind

ECHO_SERVER = Path(__file__).parent / "fixtures" / "echo_server.py"


@pytest.fixture
def test_settings(tmp_path):
    """Create test settings with isolated temporary directories.

    Args:
        tmp_path: Pytest fixture providing a temporary directory.

    Returns:
        McpRelaySettings: Settings instance configured for testing.
    """
    return McpRelaySettings(
        host="127.0.0.1",
        port=8000,
        ollama_host="http://localhost:11434",
        model="llama3.2:latest",
        data_dir=str(tmp_path),
        servers_config="mcp_servers.json",
        logs_dir="logs",
        startup_timeout=2.0,
        stop_grace_period=1.0,
        log_level="DEBUG",
        cors_origins=["*"],
    )


@pytest.fixture
def make_server_config():
    """Factory for ServerConfig records that launch the fixture tool server."""

    def _make(
        server_id: str,
        *server_args: str,
        transport: TransportKind = TransportKind.STDIO,
        env: dict[str, str] | None = None,
    ) -> ServerConfig:
        return ServerConfig(
            id=server_id,
            name=server_id,
            command=sys.executable,
            args=(str(ECHO_SERVER), "--name", server_id, *server_args),
            env=MappingProxyType(env or {}),
            transport=transport,
        )

    return _make


@pytest.fixture
def write_servers_config(test_settings):
    """Write an mcpServers config file into the test data directory."""

    def _write(servers: dict[str, list[str]]) -> Path:
        path = test_settings.resolved_servers_config
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(
                {
                    "mcpServers": {
                        server_id: {
                            "command": sys.executable,
                            "args": [str(ECHO_SERVER), "--name", server_id, *args],
                        }
                        for server_id, args in servers.items()
                    }
                }
            ),
            encoding="utf-8",
        )
        return path

    return _write


@pytest.fixture
def test_app(test_settings):
    """Create a FastAPI test application instance.

    Args:
        test_settings: Test settings fixture.

    Returns:
        FastAPI: Configured test application.
    """
    return create_app(settings=test_settings)


@pytest_asyncio.fixture
async def async_client(test_app):
    """Create an async HTTP client for testing FastAPI endpoints.

    Args:
        test_app: Test application fixture.

    Yields:
        AsyncClient: Async HTTP client for making test requests.
    """
    # Trigger the lifespan startup manually for tests
    async with test_app.router.lifespan_context(test_app):
        transport = ASGITransport(app=test_app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
