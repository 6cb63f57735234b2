"""Pytest configuration for integration tests.

This module provides integration-test-specific fixtures: a mocked Ollama
client and a tool server config with two fixture servers.
"""

from unittest.mock import AsyncMock, patch

import pytest

from mcp_relay.ollama import ChatCompletion


@pytest.fixture(autouse=True)
def mock_ollama_client():
    """Mock OllamaClient for all integration tests.

    This fixture patches the OllamaClient class before the app is created,
    ensuring the lifespan uses our mock instead of creating a real client.
    """
    with patch("mcp_relay.app.OllamaClient") as mock_client_class:
        mock_instance = AsyncMock()
        mock_instance.host = "http://localhost:11434"
        mock_instance.check_connection.return_value = True
        mock_instance.chat.return_value = ChatCompletion(
            content="Hello!", model="llama3.2:latest"
        )

        mock_client_class.return_value = mock_instance

        yield mock_instance


@pytest.fixture(autouse=True)
def servers_config(write_servers_config):
    """Configure a filesystem server and a search server for every test."""
    return write_servers_config(
        {
            "filesystem": ["--tools", "ls,echo,fail"],
            "search": ["--tools", "search,echo"],
        }
    )
