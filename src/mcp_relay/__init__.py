"""mcp-relay: tool-server orchestration for locally hosted Ollama models.

This package starts tool servers speaking a JSON-RPC tool protocol, indexes
their tools, and runs chat round trips in which the model can call them.
"""

from mcp_relay.app import create_app

__version__ = "0.1.0"

__all__ = ["create_app", "__version__"]
