"""Per-process tool context.

ToolContext owns the config store, the supervisor, the protocol clients and
the registry, and wires them together. The FastAPI lifespan creates one at
startup and shuts it down on exit; nothing in the package keeps module-level
state.
"""

import asyncio
import logging

from mcp_relay.config import McpRelaySettings
from mcp_relay.exceptions import ServerNotFoundError
from mcp_relay.protocol.client import ToolProtocolClient
from mcp_relay.servers.config_store import ServerConfigStore
from mcp_relay.servers.supervisor import ToolServerSupervisor
from mcp_relay.servers.types import ServerConfig, ServerHandle
from mcp_relay.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class ToolContext:
    """The tool-orchestration components of one running process.

    Attributes:
        settings: Application settings
        config_store: Loaded tool-server definitions
        supervisor: Owner of the tool-server processes
        registry: Tool index over the connected clients
    """

    def __init__(self, settings: McpRelaySettings) -> None:
        """Initialize the context without starting anything.

        Args:
            settings: Application settings
        """
        self.settings = settings
        self.config_store = ServerConfigStore(settings.resolved_servers_config)
        self.supervisor = ToolServerSupervisor(
            logs_dir=settings.resolved_logs_dir,
            log_level=settings.server_log_level,
            interactive_logs=settings.interactive_server_logs,
            startup_timeout=settings.startup_timeout,
            stop_grace_period=settings.stop_grace_period,
        )
        self.registry = ToolRegistry()
        self._clients: dict[str, ToolProtocolClient] = {}

    @property
    def configs(self) -> list[ServerConfig]:
        return self.config_store.configs

    def get_config(self, server_id: str) -> ServerConfig:
        """Return the config of a server.

        Raises:
            ServerNotFoundError: If no server with that id is configured
        """
        config = self.config_store.get(server_id)
        if config is None:
            raise ServerNotFoundError(server_id)
        return config

    async def bootstrap(self) -> list[str]:
        """Load configs, start every server and build the registry.

        Servers that fail to start are logged and skipped.

        Returns:
            list[str]: Ids of the servers that were started and connected
        """
        configs = self.config_store.load()
        if not configs:
            logger.info("No tool servers configured")
            await self.registry.initialize([])
            return []

        results = await self.supervisor.start_all(configs)

        handles = [
            result for result in results.values() if isinstance(result, ServerHandle)
        ]
        clients = [ToolProtocolClient.for_handle(handle) for handle in handles]
        connect_results = await asyncio.gather(
            *(client.connect() for client in clients), return_exceptions=True
        )
        for client, result in zip(clients, connect_results):
            if isinstance(result, BaseException):
                logger.error(
                    f"Failed to connect to tool server {client.server_id}: {result}"
                )

        self._clients = {client.server_id: client for client in clients}
        await self.registry.initialize(self._ordered_clients())

        connected = list(self._clients)
        logger.info(
            f"Tool context ready: {len(connected)}/{len(configs)} servers started"
        )
        return connected

    async def start(self, server_id: str) -> ServerHandle:
        """Start one configured server and add its tools to the registry.

        Raises:
            ServerNotFoundError: If the id is not configured
            ServerStartError: If the server exited during startup
            OSError: If the process could not be spawned
        """
        config = self.get_config(server_id)
        handle = await self.supervisor.start_server(config)

        client = self._clients.get(server_id)
        if client is None or not client.is_connected:
            client = ToolProtocolClient.for_handle(handle)
            await client.connect()
            self._clients[server_id] = client
            await self.registry.initialize(self._ordered_clients())
        return handle

    async def stop(self, server_id: str) -> None:
        """Stop one server and drop its tools from the registry.

        Raises:
            ServerNotFoundError: If the id is not configured
        """
        self.get_config(server_id)

        client = self._clients.pop(server_id, None)
        if client is not None:
            await client.shutdown()
        await self.supervisor.stop_server(server_id)
        await self.registry.initialize(self._ordered_clients())

    def reload_configs(self) -> list[ServerConfig]:
        """Re-read the config file. Running servers are left untouched."""
        return self.config_store.load()

    async def shutdown(self) -> None:
        """Ask every server to shut down, then stop all processes."""
        clients = list(self._clients.values())
        await asyncio.gather(
            *(client.shutdown() for client in clients), return_exceptions=True
        )
        self._clients = {}
        await self.supervisor.stop_all()
        await self.registry.initialize([])
        logger.info("Tool context shut down")

    def _ordered_clients(self) -> list[ToolProtocolClient]:
        # Registry disambiguation follows config file order
        order = {config.id: index for index, config in enumerate(self.configs)}
        return sorted(
            self._clients.values(),
            key=lambda client: order.get(client.server_id, len(order)),
        )
