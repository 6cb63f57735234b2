"""Ollama client wrapper and integration layer.

This package provides the async client used to talk to the local model.
All Ollama interactions are async and use streaming by default.
"""

from mcp_relay.ollama.client import OllamaClient
from mcp_relay.ollama.types import ChatCompletion

__all__ = ["OllamaClient", "ChatCompletion"]
