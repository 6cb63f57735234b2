"""Exception types shared across the tool-orchestration layer."""


class McpRelayError(Exception):
    """Base class for mcp-relay errors."""


class ServerNotFoundError(McpRelayError):
    """Raised when a server id is not present in the loaded configuration."""

    def __init__(self, server_id: str) -> None:
        self.server_id = server_id
        super().__init__(f"Server '{server_id}' not found in configuration")


class ServerStartError(McpRelayError):
    """Raised when a tool server was spawned but exited during startup."""

    def __init__(self, server_id: str, message: str) -> None:
        self.server_id = server_id
        super().__init__(f"Failed to start server '{server_id}': {message}")


class TransportError(McpRelayError):
    """Raised when the stdio channel to a tool server is closed or missing."""


class JsonRpcError(McpRelayError):
    """Raised when a tool server answers a request with a JSON-RPC error."""

    def __init__(self, code: int | None, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"JSON-RPC error {code}: {message}")
